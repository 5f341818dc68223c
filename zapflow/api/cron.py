from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    NotFoundError, PersistenceError, QuotaExceededError, ScheduleNotFoundError,
    TransportError, UnauthorizedError, ZapInactiveError, ZapNotFoundError
)
from ..core.logging_config import get_logger, set_request_context
from ..services.dependencies import (
    TokenClaims, get_dispatch_service, get_lifecycle_manager, get_zap_service, validate_token
)
from ..services.dispatch_service import DispatchService, SOURCE_SCHEDULE
from ..services.lifecycle_manager import LifecycleManager
from ..services.zap_service import ZapService
from .hooks import error_response, read_json_object

router = APIRouter()
logger = get_logger("cron_api_controller")


@router.post("/{zap_id}")
async def run_scheduled_zap(
    zap_id: str,
    request: Request,
    dispatcher: DispatchService = Depends(get_dispatch_service)
):
    """Scheduler callback: one cron tick of a zap"""
    set_request_context(zap_id=zap_id, operation="cron")
    body = await read_json_object(request)
    owner_hint = body.pop("userId", None)

    metadata = {
        **body,
        "triggeredBy": "schedule",
        "scheduledAt": datetime.utcnow().isoformat()
    }

    try:
        result = await dispatcher.dispatch(
            zap_id, metadata, owner_hint=str(owner_hint) if owner_hint else None, source=SOURCE_SCHEDULE
        )
    except ZapNotFoundError:
        logger.error(f"Cron tick for unknown zap {zap_id}")
        return error_response(404, "Zap not found")
    except UnauthorizedError:
        return error_response(403, "Unauthorized")
    except ZapInactiveError:
        logger.info(f"Cron tick for inactive zap {zap_id} ignored")
        return {"success": False, "message": "Zap is inactive"}
    except QuotaExceededError:
        return {"success": False, "message": "Run limit reached, schedule cancelled"}
    except (PersistenceError, TransportError) as e:
        logger.error(f"Cron dispatch failed for zap {zap_id}: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to run zap"})

    return {"success": True, "zapRunId": result.run_id}


@router.delete("/{zap_id}")
async def cancel_zap_schedule(
    zap_id: str,
    zap_service: ZapService = Depends(get_zap_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager),
    claims: TokenClaims = Depends(validate_token)
):
    """Cancel the external schedule of a zap"""
    try:
        zap = zap_service.get_owned_zap(zap_id, claims.user_id)
        schedule_id = await lifecycle.delete_schedule(zap)
    except ScheduleNotFoundError:
        raise HTTPException(status_code=404, detail="No schedule found")
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Access denied")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Zap not found")
    except TransportError as e:
        logger.error(f"Failed to cancel schedule for zap {zap_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to cancel schedule")

    return {"success": True, "message": "Schedule cancelled", "scheduleId": schedule_id}
