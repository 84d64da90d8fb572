from __future__ import annotations


class FleetwatchError(Exception):
    """Base class for fleetwatch failures."""


class StoreUnavailable(FleetwatchError):
    """A truck, settings or last-check read/write failed."""


class PermissionDenied(FleetwatchError):
    """Notification permission has not been granted."""


class InvalidFieldValue(FleetwatchError):
    """A stored date value is not a recognised instant representation."""


class DeliveryFailure(FleetwatchError):
    """The notification port rejected a delivery or trigger registration."""
