from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from fleetwatch.errors import StoreUnavailable
from fleetwatch.models import FIELD_TEMPLATES, FieldType, field_from_dict

router = APIRouter(prefix="/trucks", tags=["trucks"])


class CustomFieldIn(BaseModel):
    id: str = ""
    type: FieldType
    label: str
    value: Any = None


class TruckIn(BaseModel):
    name: str = Field(min_length=1)
    note: str = ""
    custom_fields: list[CustomFieldIn] = []


class TruckPatch(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    note: str | None = None
    custom_fields: list[CustomFieldIn] | None = None


def _service(request: Request):
    return request.app.state.notifications


def _fields(items: list[CustomFieldIn]):
    return [
        field_from_dict({**item.model_dump(), "id": item.id or uuid.uuid4().hex})
        for item in items
    ]


@router.get("")
async def list_trucks(request: Request):
    try:
        trucks = await _service(request).trucks.list()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return [t.to_dict() for t in trucks]


@router.get("/templates")
async def field_templates():
    return jsonable_encoder(FIELD_TEMPLATES)


@router.post("", status_code=201)
async def create_truck(request: Request, payload: TruckIn):
    try:
        truck = await _service(request).trucks.create(
            name=payload.name, note=payload.note, custom_fields=_fields(payload.custom_fields)
        )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return truck.to_dict()


@router.get("/{truck_id}")
async def get_truck(request: Request, truck_id: str):
    try:
        truck = await _service(request).trucks.get(truck_id)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    if truck is None:
        raise HTTPException(status_code=404, detail="Truck not found")
    return truck.to_dict()


@router.patch("/{truck_id}")
async def update_truck(request: Request, truck_id: str, payload: TruckPatch):
    fields = _fields(payload.custom_fields) if payload.custom_fields is not None else None
    try:
        truck = await _service(request).trucks.update(
            truck_id, name=payload.name, note=payload.note, custom_fields=fields
        )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    if truck is None:
        raise HTTPException(status_code=404, detail="Truck not found")
    return truck.to_dict()


@router.delete("/{truck_id}", status_code=204)
async def delete_truck(request: Request, truck_id: str):
    try:
        deleted = await _service(request).trucks.delete(truck_id)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    if not deleted:
        raise HTTPException(status_code=404, detail="Truck not found")


@router.get("/{truck_id}/status")
async def truck_status(request: Request, truck_id: str):
    try:
        aggregator = await _service(request).aggregator()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    status = aggregator.status_for(truck_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Truck not found")
    return jsonable_encoder(status)
