from .zap_model import Zap, Trigger, Action, TriggerType, ActionType
from .run_model import ZapRun, RunStatus
from .connection_model import UserConnection

__all__ = [
    "Zap",
    "Trigger",
    "Action",
    "TriggerType",
    "ActionType",
    "ZapRun",
    "RunStatus",
    "UserConnection"
]
