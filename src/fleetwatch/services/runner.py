from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from fleetwatch.errors import DeliveryFailure, PermissionDenied, StoreUnavailable
from fleetwatch.models import TruckWarnings
from fleetwatch.services.aggregator import Aggregator
from fleetwatch.services.delivery import NotificationPort

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    DISABLED = "disabled"
    ALREADY_CHECKED = "already_checked"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Message:
    title: str
    body: str


@dataclass
class CheckResult:
    outcome: Outcome
    warnings: list[TruckWarnings] = field(default_factory=list)
    message: Message | None = None
    delivered: bool = False
    checked_at: datetime | None = None
    error: str | None = None


def build_message(warnings: list[TruckWarnings]) -> Message:
    total = sum(len(w.deadlines) for w in warnings)

    if len(warnings) == 1 and total == 1:
        truck = warnings[0].truck
        deadline = warnings[0].deadlines[0]
        plural = "" if deadline.days_until == 1 else "s"
        return Message(
            title=f"{truck.name} - {deadline.label} Due Soon",
            body=f"{deadline.label} expires in {deadline.days_until} day{plural}",
        )
    if len(warnings) == 1:
        return Message(
            title=f"{warnings[0].truck.name} - Multiple Deadlines",
            body=f"{total} deadlines approaching",
        )
    return Message(
        title="Truck Deadlines Warning",
        body=f"{total} deadlines approaching for {len(warnings)} trucks",
    )


def _metadata(warnings: list[TruckWarnings]) -> dict:
    return {
        "type": "deadline_warning",
        "trucks": [
            {
                "id": w.truck.id,
                "name": w.truck.name,
                "deadlines": [
                    {"label": d.label, "date": d.date.isoformat(), "days_until": d.days_until}
                    for d in w.deadlines
                ],
            }
            for w in warnings
        ],
    }


def same_local_day(a: datetime, b: datetime) -> bool:
    return a.astimezone().date() == b.astimezone().date()


class DailyCheckRunner:
    """One evaluation pass: load trucks, notify about approaching deadlines, stamp."""

    def __init__(self, trucks, settings, last_check, port: NotificationPort):
        self.trucks = trucks
        self.settings = settings
        self.last_check = last_check
        self.port = port

    async def run(self, now: datetime, force: bool = False) -> CheckResult:
        settings = await self.settings.get()
        if not settings.enabled:
            logger.info("Daily check skipped: notifications disabled")
            return CheckResult(outcome=Outcome.DISABLED)

        last_check = await self.last_check.get()
        if last_check is not None and not force and same_local_day(last_check, now):
            logger.info("Daily check already performed today at %s", last_check.isoformat())
            return CheckResult(outcome=Outcome.ALREADY_CHECKED)

        trucks = await self.trucks.list()
        warnings = Aggregator(trucks, now, settings.warning_days).warnings()

        message = None
        delivered = False
        if warnings:
            message = build_message(warnings)
            delivered = await self._deliver(message, warnings)

        await self.last_check.set(now)
        logger.info(
            "Daily check completed: %d truck(s) scanned, %d with approaching deadlines",
            len(trucks), len(warnings),
        )
        return CheckResult(
            outcome=Outcome.COMPLETED,
            warnings=warnings,
            message=message,
            delivered=delivered,
            checked_at=now,
        )

    async def _deliver(self, message: Message, warnings: list[TruckWarnings]) -> bool:
        try:
            permission = await self.port.get_permission_status()
            if not permission.granted:
                raise PermissionDenied("Notification permission not granted")
            await self.port.deliver_now(message.title, message.body, _metadata(warnings))
        except PermissionDenied:
            logger.warning("Skipping deadline notification %r: permission not granted", message.title)
            return False
        except DeliveryFailure:
            logger.exception("Failed to deliver deadline notification %r", message.title)
            return False
        return True

    async def run_manual_check(self, now: datetime | None = None) -> CheckResult:
        """Forced run for an explicit "check now"; store failures reach the caller."""
        now = now or datetime.now().astimezone()
        try:
            return await self.run(now, force=True)
        except StoreUnavailable:
            logger.exception("Manual deadline check failed")
            raise

    async def run_scheduled_check(self, now: datetime | None = None) -> CheckResult:
        now = now or datetime.now().astimezone()
        try:
            return await self.run(now)
        except StoreUnavailable as exc:
            logger.exception("Scheduled deadline check failed, will retry on next trigger")
            return CheckResult(outcome=Outcome.FAILED, error=str(exc))
