"""
Action executor registry: maps the closed ActionType catalog to executors.
"""
from typing import Dict, Iterable, List, Optional, Set

import httpx

from ...core.logging_config import get_logger
from ...models.zap_model import Action, ActionType
from .base import BaseActionExecutor
from .email import SendEmailExecutor
from .http_request import HttpRequestExecutor
from .messaging import SendDiscordExecutor, SendSlackExecutor, SendSmsExecutor
from .productivity import (
    CreateNotionPageExecutor,
    CreateSpreadsheetRowExecutor,
    CreateTrelloCardExecutor,
)

logger = get_logger("action_registry")


class ActionRegistry:
    """Lookup of executors by action type"""

    def __init__(self):
        self._executors: Dict[ActionType, BaseActionExecutor] = {}

    def register(self, action_type: ActionType, executor: BaseActionExecutor) -> None:
        self._executors[action_type] = executor

    def get(self, action_type_name: Optional[str]) -> Optional[BaseActionExecutor]:
        """Executor for a stored action type; None when the type is unknown"""
        action_type = ActionType.parse(action_type_name)
        if action_type is None:
            return None
        return self._executors.get(action_type)

    def available(self) -> List[ActionType]:
        return list(self._executors.keys())

    def credential_providers_for(self, actions: Iterable[Action]) -> Set[str]:
        """Providers whose credentials at least one action in the chain can use"""
        providers = set()
        for action in actions:
            executor = self.get(action.action_type)
            if executor and executor.credential_provider:
                providers.add(executor.credential_provider)
        return providers


def create_default_registry(transport: Optional[httpx.AsyncBaseTransport] = None) -> ActionRegistry:
    """Registry with every built-in executor; transport is shared by the httpx-based ones"""
    registry = ActionRegistry()
    executors = [
        SendEmailExecutor(transport=transport),
        HttpRequestExecutor(transport=transport),
        SendSlackExecutor(transport=transport),
        SendDiscordExecutor(transport=transport),
        SendSmsExecutor(transport=transport),
        CreateSpreadsheetRowExecutor(transport=transport),
        CreateNotionPageExecutor(transport=transport),
        CreateTrelloCardExecutor(transport=transport),
    ]
    for executor in executors:
        registry.register(ActionType(executor.action_type), executor)

    logger.info(f"Action registry ready with {len(executors)} executors")
    return registry
