"""
Custom exceptions for the zapflow service.
"""
from typing import Optional


class ZapflowException(Exception):
    """Base exception for zapflow errors"""
    pass


class NotFoundError(ZapflowException):
    """Raised when a requested record does not exist"""
    pass


class ZapNotFoundError(NotFoundError):
    """Raised when a zap is not found"""
    pass


class RunNotFoundError(NotFoundError):
    """Raised when a zap run is not found"""
    pass


class UnauthorizedError(ZapflowException):
    """Raised when the caller does not own the zap"""
    pass


class ZapInactiveError(ZapflowException):
    """Raised when a firing targets a deactivated zap"""
    pass


class QuotaExceededError(ZapflowException):
    """Raised when a zap has used up its maxRuns"""
    def __init__(self, zap_id: str, run_count: int, max_runs: int):
        self.zap_id = zap_id
        self.run_count = run_count
        self.max_runs = max_runs
        super().__init__(f"Run limit reached for zap '{zap_id}' ({run_count}/{max_runs})")


class ZapValidationError(ZapflowException):
    """Raised when zap input is invalid"""
    pass


class InvalidCronExpressionError(ZapValidationError):
    """Raised when a cron expression cannot be parsed"""
    def __init__(self, expression: Optional[str], message: str):
        self.expression = expression
        super().__init__(f"Invalid cron expression '{expression}': {message}")


class ActionExecutionError(ZapflowException):
    """Raised when an action execution fails"""
    def __init__(self, action_type: str, message: str):
        self.action_type = action_type
        self.message = message
        super().__init__(f"Action '{action_type}' failed: {message}")


class TransportError(ZapflowException):
    """Raised when the run queue or the external scheduler cannot be reached"""
    pass


class ScheduleNotFoundError(TransportError):
    """Raised when the external scheduler does not know a schedule id"""
    pass


class PersistenceError(ZapflowException):
    """Raised when a database read or write fails"""
    pass
