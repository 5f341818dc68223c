import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    PersistenceError, QuotaExceededError, TransportError, UnauthorizedError,
    ZapInactiveError, ZapNotFoundError
)
from ..core.logging_config import get_logger, set_request_context
from ..services.dependencies import get_dispatch_service
from ..services.dispatch_service import DispatchService, SOURCE_WEBHOOK

router = APIRouter()
logger = get_logger("hooks_api_controller")


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Request body as a JSON object; empty, malformed or non-object bodies read as {}"""
    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("Request body is not valid JSON, using empty payload")
        return {}
    return data if isinstance(data, dict) else {}


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@router.post("/{user_id}/{zap_id}")
async def catch_webhook(
    user_id: str,
    zap_id: str,
    request: Request,
    dispatcher: DispatchService = Depends(get_dispatch_service)
):
    """Fire a webhook-triggered zap"""
    set_request_context(zap_id=zap_id, operation="webhook")
    payload = await read_json_object(request)

    try:
        result = await dispatcher.dispatch(zap_id, payload, owner_hint=user_id, source=SOURCE_WEBHOOK)
    except ZapNotFoundError:
        logger.error(f"Webhook for unknown zap {zap_id}")
        return error_response(404, "Zap not found")
    except UnauthorizedError:
        logger.error(f"Webhook user {user_id} does not own zap {zap_id}")
        return error_response(403, "Unauthorized")
    except ZapInactiveError:
        return error_response(409, "Zap is inactive")
    except QuotaExceededError as e:
        return error_response(429, "Run limit reached", runCount=e.run_count, maxRuns=e.max_runs)
    except (PersistenceError, TransportError) as e:
        logger.error(f"Webhook dispatch failed for zap {zap_id}: {e}")
        return error_response(500, "Failed to process webhook")

    return {"success": True, "message": "Webhook received", "zapRunId": result.run_id}
