from .base import ActionResult, ActionParams, BaseActionExecutor
from .registry import ActionRegistry, create_default_registry

__all__ = [
    "ActionResult",
    "ActionParams",
    "BaseActionExecutor",
    "ActionRegistry",
    "create_default_registry"
]
