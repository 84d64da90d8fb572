"""sqlite-backed stores for trucks, notification settings and the last-check mark.

Methods are coroutines so callers can swap in remote stores; every sqlite
failure surfaces as :class:`StoreUnavailable`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from fleetwatch.db import get_db
from fleetwatch.errors import InvalidFieldValue, StoreUnavailable
from fleetwatch.models import (
    CustomField,
    NotificationSettings,
    Truck,
    field_from_dict,
    field_to_dict,
    to_instant,
)
from fleetwatch.services.migration import migrate_legacy_fields

logger = logging.getLogger(__name__)

SETTINGS_KEY = "notification_settings"
LAST_CHECK_KEY = "last_notification_check"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_truck(row: sqlite3.Row) -> Truck:
    """Raises ValueError or InvalidFieldValue when the row itself is unreadable."""
    stored = json.loads(row["custom_fields"] or "[]")
    if not isinstance(stored, list):
        raise ValueError(f"custom_fields is not a list: {stored!r}")
    fields: list[CustomField] = []
    for data in stored:
        try:
            fields.append(field_from_dict(data))
        except ValueError:
            logger.warning("Skipping unreadable custom field on truck %s: %r", row["id"], data)
    truck = Truck(
        id=row["id"],
        name=row["name"],
        note=row["note"],
        custom_fields=fields,
        created_at=to_instant(row["created_at"]),
        updated_at=to_instant(row["updated_at"]),
        insurance_deadline=row["insurance_deadline"],
        tech_inspection_deadline=row["tech_inspection_deadline"],
    )
    return migrate_legacy_fields(truck)


def _readable(row: sqlite3.Row) -> Truck | None:
    try:
        return _row_to_truck(row)
    except (ValueError, InvalidFieldValue):
        logger.warning("Skipping unreadable truck %s", row["id"], exc_info=True)
        return None


def _dump_fields(fields: list[CustomField]) -> str:
    return json.dumps([field_to_dict(f) for f in fields])


class TruckStore:
    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path

    async def list(self) -> list[Truck]:
        try:
            with get_db(self.db_path) as db:
                rows = db.execute("SELECT * FROM trucks ORDER BY created_at, id").fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not load trucks: {exc}") from exc
        return [t for t in map(_readable, rows) if t is not None]

    async def get(self, truck_id: str) -> Truck | None:
        try:
            with get_db(self.db_path) as db:
                row = db.execute("SELECT * FROM trucks WHERE id = ?", (truck_id,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not load truck {truck_id}: {exc}") from exc
        return _readable(row) if row else None

    async def create(
        self,
        name: str,
        note: str = "",
        custom_fields: list[CustomField] | None = None,
        insurance_deadline: str | None = None,
        tech_inspection_deadline: str | None = None,
    ) -> Truck:
        truck_id = uuid.uuid4().hex
        stamp = _utcnow().isoformat()
        try:
            with get_db(self.db_path) as db:
                db.execute(
                    """INSERT INTO trucks
                       (id, name, note, custom_fields, insurance_deadline,
                        tech_inspection_deadline, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        truck_id, name, note, _dump_fields(custom_fields or []),
                        insurance_deadline, tech_inspection_deadline, stamp, stamp,
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not create truck: {exc}") from exc
        return await self.get(truck_id)

    async def update(
        self,
        truck_id: str,
        name: str | None = None,
        note: str | None = None,
        custom_fields: list[CustomField] | None = None,
    ) -> Truck | None:
        assignments = ["updated_at = ?"]
        params: list = [_utcnow().isoformat()]
        if name is not None:
            assignments.append("name = ?")
            params.append(name)
        if note is not None:
            assignments.append("note = ?")
            params.append(note)
        if custom_fields is not None:
            assignments.append("custom_fields = ?")
            params.append(_dump_fields(custom_fields))
        params.append(truck_id)
        try:
            with get_db(self.db_path) as db:
                changed = db.execute(
                    f"UPDATE trucks SET {', '.join(assignments)} WHERE id = ?", params
                ).rowcount
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not update truck {truck_id}: {exc}") from exc
        if changed == 0:
            return None
        return await self.get(truck_id)

    async def delete(self, truck_id: str) -> bool:
        try:
            with get_db(self.db_path) as db:
                changed = db.execute("DELETE FROM trucks WHERE id = ?", (truck_id,)).rowcount
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not delete truck {truck_id}: {exc}") from exc
        return changed > 0


class _KeyValue:
    def __init__(self, key: str, db_path: Path | None = None):
        self.key = key
        self.db_path = db_path

    def _load(self):
        try:
            with get_db(self.db_path) as db:
                row = db.execute("SELECT value FROM kv WHERE key = ?", (self.key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not read {self.key}: {exc}") from exc
        if not row:
            return None
        try:
            return json.loads(row["value"])
        except ValueError:
            logger.warning("Ignoring unreadable %s value: %r", self.key, row["value"])
            return None

    def _save(self, value) -> None:
        try:
            with get_db(self.db_path) as db:
                db.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (self.key, json.dumps(value)),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not write {self.key}: {exc}") from exc

    def _remove(self) -> None:
        try:
            with get_db(self.db_path) as db:
                db.execute("DELETE FROM kv WHERE key = ?", (self.key,))
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not clear {self.key}: {exc}") from exc


class SettingsStore(_KeyValue):
    def __init__(self, db_path: Path | None = None):
        super().__init__(SETTINGS_KEY, db_path)

    async def get(self) -> NotificationSettings:
        data = self._load()
        if not data:
            return NotificationSettings()
        try:
            return NotificationSettings(**data)
        except (TypeError, ValueError):
            logger.warning("Stored notification settings are invalid, using defaults: %r", data)
            return NotificationSettings()

    async def set(self, **changes) -> NotificationSettings:
        current = await self.get()
        updated = NotificationSettings(**{**asdict(current), **changes})
        self._save(asdict(updated))
        return updated


class LastCheckStore(_KeyValue):
    def __init__(self, db_path: Path | None = None):
        super().__init__(LAST_CHECK_KEY, db_path)

    async def get(self) -> datetime | None:
        value = self._load()
        if not value:
            return None
        try:
            return to_instant(value)
        except InvalidFieldValue:
            logger.warning("Ignoring malformed last check mark %r, next run will re-stamp", value)
            return None

    async def set(self, when: datetime) -> None:
        self._save(when.isoformat())

    async def clear(self) -> None:
        self._remove()
