"""Deadline classification for date-valued custom fields.

Everything here is pure: the evaluation instant is always passed in, never
read from the clock.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable

from fleetwatch.errors import InvalidFieldValue
from fleetwatch.models import (
    CustomField,
    DateField,
    DeadlineStatus,
    SlotStatus,
    Status,
    to_instant,
)

logger = logging.getLogger(__name__)

_DAY = timedelta(days=1)


def classify(deadline: datetime, now: datetime, warning_days: int) -> DeadlineStatus:
    """Classify a deadline relative to ``now``.

    ``delta < 0`` is overdue, ``0 <= delta <= warning_days`` is warning and
    anything further out is ok. Both boundaries resolve to warning.
    """
    if warning_days < 1:
        raise ValueError(f"warning_days must be a positive integer, got {warning_days!r}")
    delta = deadline - now
    days_until = math.ceil(delta / _DAY)
    if delta < timedelta(0):
        return DeadlineStatus(Status.OVERDUE, days_until)
    if delta <= timedelta(days=warning_days):
        return DeadlineStatus(Status.WARNING, days_until)
    return DeadlineStatus(Status.OK, days_until)


def field_date(custom_field: CustomField) -> datetime | None:
    """Return the instant held by a DATE field, or None when unset or malformed."""
    if not isinstance(custom_field, DateField) or custom_field.value is None:
        return None
    try:
        return to_instant(custom_field.value)
    except InvalidFieldValue:
        logger.warning(
            "Ignoring malformed date in field %s (%r): %r",
            custom_field.id, custom_field.label, custom_field.value,
        )
        return None


def evaluate(custom_field: CustomField, now: datetime, warning_days: int) -> DeadlineStatus | None:
    deadline = field_date(custom_field)
    if deadline is None:
        return None
    return classify(deadline, now, warning_days)


def date_fields(fields: Iterable[CustomField]) -> list[DateField]:
    return [f for f in fields if isinstance(f, DateField)]


def is_insurance_label(label: str) -> bool:
    return "insurance" in label.lower()


def is_tech_inspection_label(label: str) -> bool:
    lower = label.lower()
    return "tech" in lower or "inspection" in lower


def _slot(fields: Iterable[CustomField], matches, now: datetime, warning_days: int) -> SlotStatus:
    slot_field = next((f for f in date_fields(fields) if matches(f.label)), None)
    if slot_field is None:
        return SlotStatus()
    deadline = field_date(slot_field)
    if deadline is None:
        return SlotStatus()
    result = classify(deadline, now, warning_days)
    return SlotStatus(date=deadline, status=result.status, days_until=result.days_until)


def insurance_slot(fields: Iterable[CustomField], now: datetime, warning_days: int) -> SlotStatus:
    return _slot(fields, is_insurance_label, now, warning_days)


def tech_inspection_slot(fields: Iterable[CustomField], now: datetime, warning_days: int) -> SlotStatus:
    return _slot(fields, is_tech_inspection_label, now, warning_days)
