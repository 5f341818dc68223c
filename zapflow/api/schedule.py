from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import (
    InvalidCronExpressionError, NotFoundError, ScheduleNotFoundError, TransportError,
    UnauthorizedError, ZapValidationError
)
from ..core.logging_config import get_logger
from ..models.zap_model import Zap
from ..schemas.schedule import (
    ScheduleCreateRequest, ScheduleCreateResponse, ScheduleStatusResponse, ScheduleZapRequest
)
from ..services.dependencies import TokenClaims, get_lifecycle_manager, get_zap_service, validate_token
from ..services.lifecycle_manager import LifecycleManager
from ..services.zap_service import ZapService

router = APIRouter()
logger = get_logger("schedule_api_controller")


def _load_zap(zap_service: ZapService, zap_id: Optional[str], user_id: str) -> Zap:
    if not zap_id:
        raise HTTPException(status_code=400, detail="zapId is required")
    try:
        return zap_service.get_owned_zap(zap_id, user_id)
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Access denied")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Zap not found")


@router.post("", response_model=ScheduleCreateResponse)
async def create_schedule(
    body: ScheduleCreateRequest,
    zap_service: ZapService = Depends(get_zap_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager),
    claims: TokenClaims = Depends(validate_token)
) -> ScheduleCreateResponse:
    """Create (or replace) the cron schedule of a zap"""
    if not body.cron:
        raise HTTPException(status_code=400, detail="zapId and cron are required")
    zap = _load_zap(zap_service, body.zap_id, claims.user_id)

    try:
        schedule_id = await lifecycle.create_schedule(zap, body.cron)
    except InvalidCronExpressionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ZapValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        logger.error(f"Failed to create schedule for zap {zap.id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to create schedule")

    return ScheduleCreateResponse(
        schedule_id=schedule_id,
        cron=body.cron,
        message=f"Zap scheduled with cron: {body.cron}"
    )


@router.delete("")
async def delete_schedule(
    body: ScheduleZapRequest,
    zap_service: ZapService = Depends(get_zap_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager),
    claims: TokenClaims = Depends(validate_token)
):
    """Delete the cron schedule of a zap"""
    zap = _load_zap(zap_service, body.zap_id, claims.user_id)
    try:
        await lifecycle.delete_schedule(zap)
    except ScheduleNotFoundError:
        raise HTTPException(status_code=404, detail="No schedule found")
    except TransportError as e:
        logger.error(f"Failed to delete schedule for zap {zap.id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to delete schedule")

    return {"success": True, "message": "Schedule deleted"}


@router.get("", response_model=ScheduleStatusResponse)
async def get_schedule(
    zap_id: Optional[str] = Query(None, alias="zapId"),
    zap_service: ZapService = Depends(get_zap_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager),
    claims: TokenClaims = Depends(validate_token)
) -> ScheduleStatusResponse:
    """Schedule status of a zap; lookup failures report no schedule"""
    zap = _load_zap(zap_service, zap_id, claims.user_id)
    info = await lifecycle.get_schedule(zap)
    if info is None:
        return ScheduleStatusResponse(has_schedule=False)

    return ScheduleStatusResponse(
        has_schedule=True,
        schedule_id=info.schedule_id,
        cron=info.cron or (zap.trigger.cron if zap.trigger else None),
        is_paused=info.is_paused
    )


@router.post("/pause")
async def pause_schedule(
    body: ScheduleZapRequest,
    zap_service: ZapService = Depends(get_zap_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager),
    claims: TokenClaims = Depends(validate_token)
):
    zap = _load_zap(zap_service, body.zap_id, claims.user_id)
    try:
        await lifecycle.pause_schedule(zap)
    except ScheduleNotFoundError:
        raise HTTPException(status_code=404, detail="No schedule found")
    except TransportError as e:
        logger.error(f"Failed to pause schedule for zap {zap.id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to pause schedule")

    return {"success": True, "message": "Schedule paused"}


@router.post("/resume")
async def resume_schedule(
    body: ScheduleZapRequest,
    zap_service: ZapService = Depends(get_zap_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager),
    claims: TokenClaims = Depends(validate_token)
):
    zap = _load_zap(zap_service, body.zap_id, claims.user_id)
    try:
        await lifecycle.resume_schedule(zap)
    except ScheduleNotFoundError:
        raise HTTPException(status_code=404, detail="No schedule found")
    except TransportError as e:
        logger.error(f"Failed to resume schedule for zap {zap.id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to resume schedule")

    return {"success": True, "message": "Schedule resumed"}
