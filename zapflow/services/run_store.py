"""
Run record store: creation, claiming and finalization of ZapRun rows.

Run creation happens under a row lock on the owning Zap so the quota count and
the insert are serialized against concurrent firings of the same zap. The
pending -> running claim is a conditional UPDATE so only one delivery of a run
ever executes it.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from ..core.exceptions import RunNotFoundError
from ..core.logging_config import get_logger, log_run_transition
from ..models.run_model import RunStatus, ZapRun
from ..models.zap_model import Zap

logger = get_logger("run_store")


class RunStore:
    """Persistence operations on zap runs"""

    def __init__(self, db: Session):
        self.db = db

    def lock_zap(self, zap_id: str) -> Optional[Zap]:
        """Load a zap with SELECT ... FOR UPDATE; the lock lasts until commit/rollback"""
        return self.db.query(Zap).filter(Zap.id == zap_id).with_for_update().first()

    def count_runs(self, zap_id: str) -> int:
        return self.db.query(func.count(ZapRun.id)).filter(ZapRun.zap_id == zap_id).scalar() or 0

    def add_pending_run(self, zap_id: str, payload: Optional[Dict[str, Any]]) -> ZapRun:
        """Stage a pending run in the caller's transaction; the caller commits"""
        run = ZapRun(
            id=str(uuid.uuid4()),
            zap_id=zap_id,
            status=RunStatus.PENDING.value,
            run_metadata=payload or {}
        )
        self.db.add(run)
        self.db.flush()
        return run

    def get_run(self, run_id: str) -> ZapRun:
        run = self.db.query(ZapRun).filter(ZapRun.id == run_id).first()
        if not run:
            raise RunNotFoundError(f"Zap run {run_id} not found")
        return run

    def claim(self, run_id: str) -> bool:
        """
        Move a run from pending to running.

        Returns:
            True if this caller won the claim, False if the run was already
            running or finished (a duplicate delivery)
        """
        claimed = self.db.query(ZapRun).filter(
            ZapRun.id == run_id,
            ZapRun.status == RunStatus.PENDING.value
        ).update(
            {ZapRun.status: RunStatus.RUNNING.value, ZapRun.started_at: datetime.utcnow()},
            synchronize_session=False
        )
        self.db.commit()

        if claimed:
            log_run_transition(run_id, RunStatus.PENDING.value, RunStatus.RUNNING.value)
        return claimed == 1

    def finalize(
        self,
        run_id: str,
        status: RunStatus,
        error: Optional[str] = None,
        outcomes: Optional[List[Dict[str, Any]]] = None
    ) -> bool:
        """Move a running run to a terminal status; terminal runs are never rewritten"""
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize run {run_id} with non-terminal status {status.value}")

        values = {
            ZapRun.status: status.value,
            ZapRun.error: error if status == RunStatus.FAILED else None,
            ZapRun.completed_at: datetime.utcnow()
        }
        if outcomes is not None:
            values[ZapRun.outcomes] = outcomes

        updated = self.db.query(ZapRun).filter(
            ZapRun.id == run_id,
            ZapRun.status == RunStatus.RUNNING.value
        ).update(values, synchronize_session=False)
        self.db.commit()

        if updated:
            log_run_transition(run_id, RunStatus.RUNNING.value, status.value, error=error)
        else:
            logger.warning(f"Run {run_id} was not running; final status {status.value} not applied")
        return updated == 1

    def list_runs_for_user(self, user_id: str, limit: int) -> List[Tuple[ZapRun, str]]:
        """Newest runs across the user's zaps, paired with the zap name"""
        return self.db.query(ZapRun, Zap.name).join(
            Zap, ZapRun.zap_id == Zap.id
        ).filter(
            Zap.user_id == user_id
        ).order_by(
            desc(ZapRun.created_at)
        ).limit(limit).all()

    def get_run_for_user(self, run_id: str, user_id: str) -> Tuple[ZapRun, str]:
        row = self.db.query(ZapRun, Zap.name).join(
            Zap, ZapRun.zap_id == Zap.id
        ).filter(
            ZapRun.id == run_id,
            Zap.user_id == user_id
        ).first()
        if not row:
            raise RunNotFoundError(f"Zap run {run_id} not found")
        return row
