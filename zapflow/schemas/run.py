from pydantic import Field
from typing import Dict, Any, List, Optional
from datetime import datetime

from .zap import CamelModel


class ActionOutcome(CamelModel):
    action_id: Optional[int] = None
    action_type: str
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class RunResponse(CamelModel):
    id: str
    zap_id: str
    zap_name: Optional[str] = None
    status: str
    error: Optional[str]
    outcomes: Optional[List[ActionOutcome]] = None
    run_metadata: Dict[str, Any] = Field(default_factory=dict, alias="metadata")
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RunList(CamelModel):
    success: bool = True
    runs: List[RunResponse]
    total: int


class WorkerRequest(CamelModel):
    zap_run_id: Optional[str] = None


class WorkerResponse(CamelModel):
    success: bool
    status: str
