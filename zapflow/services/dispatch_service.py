"""
Dispatch gate: turns a fired trigger into a pending ZapRun on the run queue.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    PersistenceError, QuotaExceededError, UnauthorizedError,
    ZapInactiveError, ZapNotFoundError, ZapflowException
)
from ..core.logging_config import get_logger, log_dispatch
from .lifecycle_manager import LifecycleManager
from .run_queue import RunQueue
from .run_store import RunStore

logger = get_logger("dispatch_service")

SOURCE_WEBHOOK = "webhook"
SOURCE_SCHEDULE = "schedule"


@dataclass
class DispatchResult:
    run_id: str
    zap_id: str


class DispatchService:
    """Gate checks, serialized quota enforcement, run creation and enqueue"""

    def __init__(self, db: Session, run_queue: RunQueue, lifecycle: LifecycleManager):
        self.db = db
        self.run_queue = run_queue
        self.lifecycle = lifecycle
        self.run_store = RunStore(db)

    async def dispatch(
        self,
        zap_id: str,
        payload: Optional[Dict[str, Any]] = None,
        owner_hint: Optional[str] = None,
        source: str = SOURCE_WEBHOOK
    ) -> DispatchResult:
        """
        Create and enqueue one run for a fired trigger.

        Args:
            zap_id: Zap the trigger belongs to
            payload: Triggering payload, stored as run metadata
            owner_hint: User id claimed by the caller, checked against the owner
            source: Trigger source for logging ("webhook" or "schedule")

        Raises:
            ZapNotFoundError, UnauthorizedError, ZapInactiveError,
            QuotaExceededError, PersistenceError, TransportError
        """
        try:
            zap = self.run_store.lock_zap(zap_id)
            if not zap:
                raise ZapNotFoundError(f"Zap {zap_id} not found")

            if owner_hint is not None and owner_hint != zap.user_id:
                raise UnauthorizedError(f"Zap {zap_id} does not belong to user {owner_hint}")

            if not zap.is_active:
                raise ZapInactiveError(f"Zap {zap_id} is inactive")

            quota = self.lifecycle.check_quota(zap)
            if not quota.allowed:
                # Release the row lock before talking to the scheduler
                self.db.rollback()
                log_dispatch(zap_id, source, accepted=False, reason="quota", run_count=quota.run_count)
                await self.lifecycle.on_quota_exceeded(zap)
                raise QuotaExceededError(zap_id, quota.run_count, quota.max_runs)

            run = self.run_store.add_pending_run(zap.id, payload or {})
            run_id = run.id
            self.db.commit()

        except ZapflowException as e:
            self.db.rollback()
            if not isinstance(e, QuotaExceededError):
                log_dispatch(zap_id, source, accepted=False, reason=type(e).__name__)
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create run for zap {zap_id}: {e}")
            raise PersistenceError(f"Failed to create run for zap {zap_id}")

        log_dispatch(zap_id, source, accepted=True, run_id=run_id)

        # A failed enqueue leaves the run pending
        await self.run_queue.enqueue(run_id)
        return DispatchResult(run_id=run_id, zap_id=zap_id)
