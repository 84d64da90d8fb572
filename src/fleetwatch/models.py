from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, ClassVar, Union

from fleetwatch.errors import InvalidFieldValue

_DAILY_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class FieldType(str, Enum):
    DATE = "DATE"
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"


class Status(str, Enum):
    OK = "ok"
    WARNING = "warning"
    OVERDUE = "overdue"


def to_instant(value: Any) -> datetime:
    """Coerce a stored date representation into an aware datetime.

    Accepts datetimes (naive ones are device-local), dates, ISO-8601 strings
    and ``{"seconds": ..., "nanoseconds": ...}`` timestamp mappings. Date-only
    values are midnight UTC.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.astimezone()
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return datetime.combine(date.fromisoformat(text), time(), tzinfo=timezone.utc)
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidFieldValue(f"Unrecognised date string: {value!r}") from exc
        return parsed if parsed.tzinfo else parsed.astimezone()
    if isinstance(value, dict) and "seconds" in value:
        try:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
        except (TypeError, ValueError) as exc:
            raise InvalidFieldValue(f"Unrecognised timestamp: {value!r}") from exc
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    raise InvalidFieldValue(f"Unrecognised date value: {value!r}")


@dataclass
class DateField:
    type: ClassVar[FieldType] = FieldType.DATE
    id: str = ""
    label: str = ""
    value: datetime | None = None


@dataclass
class TextField:
    type: ClassVar[FieldType] = FieldType.TEXT
    id: str = ""
    label: str = ""
    value: str = ""


@dataclass
class NumberField:
    type: ClassVar[FieldType] = FieldType.NUMBER
    id: str = ""
    label: str = ""
    value: float | int | None = None


@dataclass
class BooleanField:
    type: ClassVar[FieldType] = FieldType.BOOLEAN
    id: str = ""
    label: str = ""
    value: bool = False


CustomField = Union[DateField, TextField, NumberField, BooleanField]

_FIELD_CLASSES: dict[FieldType, type] = {
    FieldType.DATE: DateField,
    FieldType.TEXT: TextField,
    FieldType.NUMBER: NumberField,
    FieldType.BOOLEAN: BooleanField,
}

FIELD_TEMPLATES = [
    {"label": "Insurance Deadline", "type": FieldType.DATE},
    {"label": "Tech Inspection Deadline", "type": FieldType.DATE},
    {"label": "License Plate", "type": FieldType.TEXT},
    {"label": "Mileage", "type": FieldType.NUMBER},
    {"label": "Is Active", "type": FieldType.BOOLEAN},
]


def field_from_dict(data: dict) -> CustomField:
    """Build a custom field from its stored shape.

    DATE values are coerced with :func:`to_instant`; malformed ones are kept
    as the raw value so the evaluator can report and skip them.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Custom field is not a mapping: {data!r}")
    try:
        kind = FieldType(data.get("type"))
    except ValueError as exc:
        raise ValueError(f"Unknown custom field type: {data.get('type')!r}") from exc

    field_id = str(data.get("id", ""))
    label = str(data.get("label", ""))
    raw = data.get("value")

    if kind is FieldType.DATE:
        value = raw
        if raw is not None:
            try:
                value = to_instant(raw)
            except InvalidFieldValue:
                pass
        return DateField(id=field_id, label=label, value=value)
    if kind is FieldType.TEXT:
        return TextField(id=field_id, label=label, value="" if raw is None else str(raw))
    if kind is FieldType.NUMBER:
        return NumberField(id=field_id, label=label, value=raw if isinstance(raw, (int, float)) else None)
    if kind is FieldType.BOOLEAN:
        return BooleanField(id=field_id, label=label, value=bool(raw))
    raise ValueError(f"Unhandled custom field type: {kind}")


def field_to_dict(custom_field: CustomField) -> dict:
    if isinstance(custom_field, DateField):
        value = custom_field.value.isoformat() if isinstance(custom_field.value, datetime) else custom_field.value
    elif isinstance(custom_field, (TextField, NumberField, BooleanField)):
        value = custom_field.value
    else:
        raise TypeError(f"Not a custom field: {custom_field!r}")
    return {
        "id": custom_field.id,
        "type": custom_field.type.value,
        "label": custom_field.label,
        "value": value,
    }


@dataclass
class Truck:
    id: str = ""
    name: str = ""
    note: str = ""
    custom_fields: list[CustomField] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # deprecated top-level deadlines from the pre-custom-field schema
    insurance_deadline: str | None = None
    tech_inspection_deadline: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "note": self.note,
            "custom_fields": [field_to_dict(f) for f in self.custom_fields],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def parse_daily_time(value: str) -> tuple[int, int]:
    """Split an ``HH:MM`` 24-hour string into (hour, minute)."""
    m = _DAILY_TIME_RE.match(value or "")
    if not m:
        raise ValueError(f"Daily time must be HH:MM (24-hour), got {value!r}")
    return int(m.group(1)), int(m.group(2))


@dataclass
class NotificationSettings:
    enabled: bool = True
    daily_time: str = "07:00"
    warning_days: int = 7
    timezone: str = "Europe/Vilnius"  # display only

    def __post_init__(self) -> None:
        parse_daily_time(self.daily_time)
        if isinstance(self.warning_days, bool) or not isinstance(self.warning_days, int) or self.warning_days < 1:
            raise ValueError(f"warning_days must be a positive integer, got {self.warning_days!r}")


@dataclass
class PermissionStatus:
    granted: bool = False
    can_ask_again: bool = False
    status: str = "undetermined"


@dataclass
class DeadlineStatus:
    status: Status
    days_until: int


@dataclass
class SlotStatus:
    date: datetime | None = None
    status: Status = Status.OK
    days_until: int = 0


@dataclass
class FieldStatus:
    id: str
    label: str
    date: datetime
    status: Status
    days_until: int


@dataclass
class TruckStatus:
    insurance: SlotStatus
    tech_inspection: SlotStatus
    custom_fields: list[FieldStatus]


@dataclass
class Deadline:
    label: str
    date: datetime
    days_until: int


@dataclass
class TruckWarnings:
    truck: Truck
    deadlines: list[Deadline]


@dataclass
class Summary:
    total_trucks: int
    upcoming_count: int
    overdue_count: int
    notifications_enabled: bool
    permissions_granted: bool
    next_check_time: datetime | None
    warning_days: int
    daily_time: str


def format_deadline(value: datetime | None) -> str:
    if value is None:
        return "—"
    return value.astimezone().strftime("%Y-%m-%d")
