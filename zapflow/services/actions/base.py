"""
Executor contract shared by all action types.

Each executor validates its own slice of the schemaless action metadata with a
pydantic model, then performs the side effect. Malformed metadata and failed
calls come back as a failed ActionResult instead of an exception.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel, ValidationError

from ...core.config import settings
from ...core.exceptions import ActionExecutionError
from ...core.logging_config import get_logger
from ..credential_store import Credentials

logger = get_logger("actions")


@dataclass
class ActionResult:
    success: bool
    message: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: Optional[str] = None, **data) -> "ActionResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str, **data) -> "ActionResult":
        return cls(success=False, message=message, data=data)


class ActionParams(BaseModel):
    """Base for per-action metadata models; unknown keys are tolerated"""

    class Config:
        extra = "ignore"
        populate_by_name = True


class BaseActionExecutor(ABC):
    """Parse metadata, run the side effect, report an ActionResult"""

    action_type: str = ""
    params_model: Type[ActionParams] = ActionParams
    # Provider whose stored credentials this action can use, if any
    credential_provider: Optional[str] = None

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: Optional[float] = None):
        self.transport = transport
        self.timeout = timeout if timeout is not None else settings.ACTION_HTTP_TIMEOUT_SECONDS

    async def execute(self, metadata: Optional[Dict[str, Any]], credentials: Optional[Credentials] = None) -> ActionResult:
        try:
            params = self.params_model.model_validate(metadata or {})
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            logger.warning(f"Invalid metadata for {self.action_type}: {fields}")
            return ActionResult.failure(f"Invalid metadata: {fields}")

        try:
            return await self.run(params, credentials)
        except ActionExecutionError as e:
            logger.error(f"Action {self.action_type} failed: {e.message}")
            return ActionResult.failure(e.message)
        except httpx.HTTPError as e:
            logger.error(f"Action {self.action_type} request failed: {e}")
            return ActionResult.failure(f"Request failed: {e}")

    @abstractmethod
    async def run(self, params: ActionParams, credentials: Optional[Credentials]) -> ActionResult:
        """Perform the side effect"""

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def preview(text: Optional[str], limit: int = 50) -> str:
        if not text:
            return ""
        return text if len(text) <= limit else f"{text[:limit]}..."
