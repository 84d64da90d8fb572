from __future__ import annotations

import logging
from dataclasses import replace

from fleetwatch.errors import InvalidFieldValue
from fleetwatch.models import DateField, Truck, to_instant
from fleetwatch.services.evaluator import date_fields, is_insurance_label, is_tech_inspection_label

logger = logging.getLogger(__name__)


def _legacy_field(truck: Truck, raw: str | None, field_id: str, label: str) -> DateField | None:
    if not raw or not isinstance(raw, str):
        return None
    try:
        value = to_instant(raw)
    except InvalidFieldValue:
        logger.warning("Ignoring malformed legacy %s deadline on truck %s: %r", label, truck.id, raw)
        return None
    return DateField(id=field_id, label=label, value=value)


def migrate_legacy_fields(truck: Truck) -> Truck:
    """Return a copy of ``truck`` with legacy deadlines exposed as DATE fields.

    Old records carry ``insurance_deadline`` / ``tech_inspection_deadline``
    scalars. Each one becomes a synthesized DATE field unless a DATE custom
    field already covers that slot. The stored record is never rewritten.
    """
    existing = date_fields(truck.custom_fields)
    extra: list[DateField] = []

    if not any(is_insurance_label(f.label) for f in existing):
        synthesized = _legacy_field(
            truck, truck.insurance_deadline, f"migrated_insurance_{truck.id}", "Insurance"
        )
        if synthesized:
            extra.append(synthesized)

    if not any(is_tech_inspection_label(f.label) for f in existing):
        synthesized = _legacy_field(
            truck, truck.tech_inspection_deadline, f"migrated_tech_{truck.id}", "Tech Inspection"
        )
        if synthesized:
            extra.append(synthesized)

    if not extra:
        return truck
    return replace(truck, custom_fields=[*truck.custom_fields, *extra])
