from __future__ import annotations

from datetime import datetime
from typing import Iterable

from fleetwatch.models import (
    Deadline,
    FieldStatus,
    NotificationSettings,
    Status,
    Summary,
    Truck,
    TruckStatus,
    TruckWarnings,
)
from fleetwatch.services.evaluator import (
    date_fields,
    evaluate,
    field_date,
    insurance_slot,
    tech_inspection_slot,
)


class Aggregator:
    """Fleet-wide deadline views over one snapshot of trucks.

    Nothing is cached: each call re-evaluates the snapshot against the
    ``now`` and ``warning_days`` given at construction.
    """

    def __init__(self, trucks: Iterable[Truck], now: datetime, warning_days: int):
        self.trucks = list(trucks)
        self.now = now
        self.warning_days = warning_days

    def _statuses(self, truck: Truck) -> list[Status]:
        statuses = []
        for f in date_fields(truck.custom_fields):
            result = evaluate(f, self.now, self.warning_days)
            if result is not None:
                statuses.append(result.status)
        return statuses

    def upcoming(self) -> list[Truck]:
        return [t for t in self.trucks if Status.WARNING in self._statuses(t)]

    def overdue(self) -> list[Truck]:
        return [t for t in self.trucks if Status.OVERDUE in self._statuses(t)]

    def status_for(self, truck_id: str) -> TruckStatus | None:
        truck = next((t for t in self.trucks if t.id == truck_id), None)
        if truck is None:
            return None

        fields: list[FieldStatus] = []
        for f in date_fields(truck.custom_fields):
            deadline = field_date(f)
            if deadline is None:
                continue
            result = evaluate(f, self.now, self.warning_days)
            fields.append(FieldStatus(
                id=f.id,
                label=f.label,
                date=deadline,
                status=result.status,
                days_until=result.days_until,
            ))

        return TruckStatus(
            insurance=insurance_slot(truck.custom_fields, self.now, self.warning_days),
            tech_inspection=tech_inspection_slot(truck.custom_fields, self.now, self.warning_days),
            custom_fields=fields,
        )

    def warnings(self) -> list[TruckWarnings]:
        """Trucks with approaching deadlines, each with its warning fields."""
        found: list[TruckWarnings] = []
        for truck in self.trucks:
            deadlines = []
            for f in date_fields(truck.custom_fields):
                result = evaluate(f, self.now, self.warning_days)
                if result is not None and result.status is Status.WARNING:
                    deadlines.append(Deadline(label=f.label, date=field_date(f), days_until=result.days_until))
            if deadlines:
                found.append(TruckWarnings(truck=truck, deadlines=deadlines))
        return found

    def summary(
        self,
        settings: NotificationSettings,
        permissions_granted: bool,
        next_check_time: datetime | None,
    ) -> Summary:
        return Summary(
            total_trucks=len(self.trucks),
            upcoming_count=len(self.upcoming()),
            overdue_count=len(self.overdue()),
            notifications_enabled=settings.enabled,
            permissions_granted=permissions_granted,
            next_check_time=next_check_time,
            warning_days=self.warning_days,
            daily_time=settings.daily_time,
        )
