from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from fleetwatch.errors import DeliveryFailure, PermissionDenied, StoreUnavailable
from fleetwatch.services.runner import CheckResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class SettingsPatch(BaseModel):
    enabled: bool | None = None
    daily_time: str | None = None
    warning_days: int | None = None
    timezone: str | None = None


def _service(request: Request):
    return request.app.state.notifications


def _check_payload(result: CheckResult) -> dict:
    return jsonable_encoder({
        "outcome": result.outcome,
        "title": result.message.title if result.message else None,
        "body": result.message.body if result.message else None,
        "delivered": result.delivered,
        "checked_at": result.checked_at,
        "trucks": [
            {"id": w.truck.id, "name": w.truck.name, "deadlines": w.deadlines}
            for w in result.warnings
        ],
    })


@router.get("/summary")
async def summary(request: Request):
    try:
        return jsonable_encoder(await _service(request).summary())
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("/upcoming")
async def upcoming(request: Request):
    try:
        aggregator = await _service(request).aggregator()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return [t.to_dict() for t in aggregator.upcoming()]


@router.get("/overdue")
async def overdue(request: Request):
    try:
        aggregator = await _service(request).aggregator()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return [t.to_dict() for t in aggregator.overdue()]


@router.get("/settings")
async def get_settings(request: Request):
    try:
        return asdict(await _service(request).get_settings())
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.patch("/settings")
async def update_settings(request: Request, payload: SettingsPatch):
    try:
        settings = await _service(request).update_settings(**payload.model_dump(exclude_none=True))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return asdict(settings)


@router.get("/setup")
async def setup_status(request: Request):
    service = _service(request)
    try:
        complete = await service.is_setup_complete()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    permission = await service.get_permission_status()
    return {"complete": complete, "permission": asdict(permission)}


@router.post("/check")
async def manual_check(request: Request):
    try:
        result = await _service(request).run_manual_check()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=f"Deadline check failed: {exc}")
    return _check_payload(result)


@router.post("/enable")
async def enable(request: Request):
    try:
        settings = await _service(request).enable()
    except PermissionDenied as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return asdict(settings)


@router.post("/disable")
async def disable(request: Request):
    try:
        settings = await _service(request).disable()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return asdict(settings)


@router.post("/test")
async def send_test(request: Request):
    try:
        await _service(request).send_test_notification()
    except DeliveryFailure as exc:
        logger.exception("Test notification failed")
        raise HTTPException(status_code=502, detail=str(exc))
    return {"sent": True}
