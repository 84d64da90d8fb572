from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from fleetwatch.errors import PermissionDenied
from fleetwatch.models import NotificationSettings, PermissionStatus, Summary
from fleetwatch.services.aggregator import Aggregator
from fleetwatch.services.delivery import NotificationPort
from fleetwatch.services.runner import CheckResult, DailyCheckRunner
from fleetwatch.services.scheduler import NotificationScheduler, next_trigger_time
from fleetwatch.stores import LastCheckStore, SettingsStore, TruckStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now().astimezone()


class NotificationService:
    """Owns the stores, the port and the daily check for one process.

    Built once at startup (web app factory or CLI command) and handed to
    whoever needs it.
    """

    def __init__(
        self,
        port: NotificationPort,
        trucks: TruckStore | None = None,
        settings: SettingsStore | None = None,
        last_check: LastCheckStore | None = None,
        db_path: Path | None = None,
    ):
        self.port = port
        self.trucks = trucks or TruckStore(db_path)
        self.settings = settings or SettingsStore(db_path)
        self.last_check = last_check or LastCheckStore(db_path)
        self.scheduler = NotificationScheduler(port)
        self.runner = DailyCheckRunner(self.trucks, self.settings, self.last_check, port)

    async def initialize(self) -> None:
        settings = await self.settings.get()
        permission = await self.port.get_permission_status()
        if settings.enabled and permission.granted:
            await self.scheduler.schedule_recurring(settings)

    async def get_settings(self) -> NotificationSettings:
        return await self.settings.get()

    async def update_settings(self, **changes) -> NotificationSettings:
        updated = await self.settings.set(**changes)
        await self.scheduler.schedule_recurring(updated)
        return updated

    async def get_permission_status(self) -> PermissionStatus:
        return await self.port.get_permission_status()

    async def request_permissions(self) -> PermissionStatus:
        permission = await self.port.request_permission()
        if permission.granted:
            await self.scheduler.schedule_recurring(await self.settings.get())
        return permission

    async def enable(self) -> NotificationSettings:
        permission = await self.request_permissions()
        if not permission.granted:
            raise PermissionDenied("Notification permissions not granted")
        return await self.update_settings(enabled=True)

    async def disable(self) -> NotificationSettings:
        return await self.update_settings(enabled=False)

    async def is_setup_complete(self) -> bool:
        settings = await self.settings.get()
        permission = await self.port.get_permission_status()
        return settings.enabled and permission.granted

    async def send_test_notification(self) -> None:
        await self.port.deliver_now(
            "Test Notification",
            "This is a test notification from fleetwatch!",
            {"type": "test"},
        )

    async def next_check_time(self, now: datetime | None = None) -> datetime | None:
        settings = await self.settings.get()
        if not settings.enabled:
            return None
        return next_trigger_time(settings, now or _now())

    async def aggregator(self, now: datetime | None = None) -> Aggregator:
        settings = await self.settings.get()
        trucks = await self.trucks.list()
        return Aggregator(trucks, now or _now(), settings.warning_days)

    async def summary(self, now: datetime | None = None) -> Summary:
        now = now or _now()
        settings = await self.settings.get()
        permission = await self.port.get_permission_status()
        aggregator = Aggregator(await self.trucks.list(), now, settings.warning_days)
        return aggregator.summary(
            settings,
            permissions_granted=permission.granted,
            next_check_time=await self.next_check_time(now),
        )

    async def run_manual_check(self, now: datetime | None = None) -> CheckResult:
        return await self.runner.run_manual_check(now)

    async def run_scheduled_check(self, now: datetime | None = None) -> CheckResult:
        return await self.runner.run_scheduled_check(now)
