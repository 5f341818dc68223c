from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.exceptions import RunNotFoundError
from ..core.logging_config import get_logger
from ..schemas.run import WorkerRequest, WorkerResponse
from ..services.actions.registry import ActionRegistry
from ..services.dependencies import get_action_registry
from ..services.run_executor import RunExecutor
from .hooks import read_json_object

router = APIRouter()
logger = get_logger("worker_api_controller")


@router.post("", response_model=WorkerResponse)
async def execute_run(
    request: Request,
    db: Session = Depends(get_db),
    registry: ActionRegistry = Depends(get_action_registry)
) -> WorkerResponse:
    """Queue delivery endpoint: execute one zap run"""
    body = WorkerRequest.model_validate(await read_json_object(request))
    if not body.zap_run_id:
        raise HTTPException(status_code=400, detail="Missing zapRunId")

    try:
        result = await RunExecutor(db, registry).execute(body.zap_run_id)
    except RunNotFoundError:
        logger.error(f"Worker received unknown run {body.zap_run_id}")
        raise HTTPException(status_code=404, detail="Zap run not found")

    # success reports the delivery; the run outcome is in status
    return WorkerResponse(success=True, status=result.status)
