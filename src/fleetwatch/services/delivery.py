from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from rich.console import Console
from rich.panel import Panel

from fleetwatch.db import get_db
from fleetwatch.errors import DeliveryFailure
from fleetwatch.models import PermissionStatus

logger = logging.getLogger(__name__)

TRIGGER_KEY = "daily_trigger"


class NotificationPort(Protocol):
    """Capability to show a local notification and keep a daily trigger."""

    async def deliver_now(self, title: str, body: str, metadata: dict[str, Any]) -> None: ...

    async def register_daily_trigger(self, hour: int, minute: int) -> None: ...

    async def cancel_all_triggers(self) -> None: ...

    async def get_permission_status(self) -> PermissionStatus: ...

    async def request_permission(self) -> PermissionStatus: ...


class ConsoleNotificationPort:
    """Prints notifications to the terminal and keeps the trigger in sqlite.

    The trigger row is what ``fleetwatch schedule`` reports; an external
    scheduler (cron, systemd timer) runs ``fleetwatch check --scheduled``.
    """

    def __init__(self, console: Console | None = None, db_path: Path | None = None):
        self.console = console or Console()
        self.db_path = db_path

    async def deliver_now(self, title: str, body: str, metadata: dict[str, Any]) -> None:
        try:
            self.console.print(Panel(body, title=f"[bold yellow]{title}[/bold yellow]"))
        except Exception as exc:
            raise DeliveryFailure(f"Could not display notification: {exc}") from exc
        logger.debug("Delivered %s notification", metadata.get("type", "unknown"))

    async def register_daily_trigger(self, hour: int, minute: int) -> None:
        try:
            with get_db(self.db_path) as db:
                db.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (TRIGGER_KEY, json.dumps({"hour": hour, "minute": minute})),
                )
        except Exception as exc:
            raise DeliveryFailure(f"Could not register daily trigger: {exc}") from exc

    async def cancel_all_triggers(self) -> None:
        try:
            with get_db(self.db_path) as db:
                db.execute("DELETE FROM kv WHERE key = ?", (TRIGGER_KEY,))
        except Exception as exc:
            raise DeliveryFailure(f"Could not cancel triggers: {exc}") from exc

    async def registered_trigger(self) -> tuple[int, int] | None:
        with get_db(self.db_path) as db:
            row = db.execute("SELECT value FROM kv WHERE key = ?", (TRIGGER_KEY,)).fetchone()
        if not row:
            return None
        data = json.loads(row["value"])
        return data["hour"], data["minute"]

    async def get_permission_status(self) -> PermissionStatus:
        return PermissionStatus(granted=True, can_ask_again=False, status="granted")

    async def request_permission(self) -> PermissionStatus:
        return await self.get_permission_status()
