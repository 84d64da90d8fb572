from __future__ import annotations

from datetime import datetime, timedelta

import pytest

import fleetwatch.db as db_module
from fleetwatch.db import init_db
from fleetwatch.models import DateField, PermissionStatus, TextField, Truck


class FakePort:
    """In-memory notification port recording every call."""

    def __init__(self, granted: bool = True):
        self.delivered: list[tuple[str, str, dict]] = []
        self.trigger: tuple[int, int] | None = None
        self.cancel_calls = 0
        self.granted = granted

    async def deliver_now(self, title, body, metadata):
        self.delivered.append((title, body, metadata))

    async def register_daily_trigger(self, hour, minute):
        self.trigger = (hour, minute)

    async def cancel_all_triggers(self):
        self.cancel_calls += 1
        self.trigger = None

    async def get_permission_status(self):
        status = "granted" if self.granted else "denied"
        return PermissionStatus(granted=self.granted, can_ask_again=not self.granted, status=status)

    async def request_permission(self):
        return await self.get_permission_status()


@pytest.fixture(autouse=True)
def use_temp_db(tmp_path, monkeypatch):
    """Use a temporary database for each test."""
    test_db = tmp_path / "test.db"
    monkeypatch.setattr(db_module, "DB_PATH", test_db)
    init_db(test_db)
    return test_db


@pytest.fixture
def port():
    return FakePort()


@pytest.fixture
def now():
    return datetime(2025, 3, 10, 9, 0).astimezone()


def make_truck(truck_id: str, name: str, *fields, **legacy) -> Truck:
    return Truck(id=truck_id, name=name, custom_fields=list(fields), **legacy)


def date_field(label: str, when: datetime | None, field_id: str | None = None) -> DateField:
    return DateField(id=field_id or label.lower().replace(" ", "_"), label=label, value=when)


def text_field(label: str, value: str) -> TextField:
    return TextField(id=label.lower(), label=label, value=value)


def days(n: float) -> timedelta:
    return timedelta(days=n)
