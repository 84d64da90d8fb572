from __future__ import annotations

import logging
from datetime import datetime, time, timedelta

from fleetwatch.errors import DeliveryFailure
from fleetwatch.models import NotificationSettings, parse_daily_time
from fleetwatch.services.delivery import NotificationPort

logger = logging.getLogger(__name__)


def next_trigger_time(settings: NotificationSettings, now: datetime) -> datetime:
    """Next device-local occurrence of ``settings.daily_time`` strictly after ``now``."""
    hour, minute = parse_daily_time(settings.daily_time)
    local_now = now.astimezone()
    day = local_now.date()
    candidate = datetime.combine(day, time(hour, minute)).astimezone()
    if candidate <= local_now:
        candidate = datetime.combine(day + timedelta(days=1), time(hour, minute)).astimezone()
    return candidate


class NotificationScheduler:
    def __init__(self, port: NotificationPort):
        self.port = port

    async def schedule_recurring(self, settings: NotificationSettings) -> bool:
        """Replace the daily trigger to match ``settings``.

        Returns True when a trigger is registered afterwards.
        """
        try:
            await self.port.cancel_all_triggers()
            if not settings.enabled:
                logger.info("Notifications disabled, no daily trigger registered")
                return False
            hour, minute = parse_daily_time(settings.daily_time)
            await self.port.register_daily_trigger(hour, minute)
        except DeliveryFailure:
            logger.exception("Could not update the daily check trigger")
            return False
        logger.info("Daily check scheduled for %s", settings.daily_time)
        return True
