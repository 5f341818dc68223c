from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import RunNotFoundError
from ..core.logging_config import get_logger
from ..models.run_model import ZapRun
from ..schemas.run import RunList, RunResponse
from ..services.dependencies import TokenClaims, validate_token
from ..services.run_store import RunStore

router = APIRouter()
logger = get_logger("runs_api_controller")


def _to_response(run: ZapRun, zap_name: Optional[str]) -> RunResponse:
    return RunResponse(
        id=run.id,
        zap_id=run.zap_id,
        zap_name=zap_name,
        status=run.status,
        error=run.error,
        outcomes=run.outcomes,
        run_metadata=run.run_metadata or {},
        created_at=run.created_at,
        started_at=run.started_at,
        completed_at=run.completed_at
    )


@router.get("", response_model=RunList)
async def list_runs(
    limit: int = Query(settings.DEFAULT_RUNS_LIMIT, ge=1, le=settings.MAX_RUNS_LIMIT),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(validate_token)
) -> RunList:
    """Newest runs across the user's zaps"""
    rows = RunStore(db).list_runs_for_user(claims.user_id, limit)
    runs = [_to_response(run, zap_name) for run, zap_name in rows]
    return RunList(runs=runs, total=len(runs))


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: str,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(validate_token)
) -> RunResponse:
    try:
        run, zap_name = RunStore(db).get_run_for_user(run_id, claims.user_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Zap run not found")
    return _to_response(run, zap_name)
