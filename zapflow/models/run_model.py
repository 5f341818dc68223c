from sqlalchemy import Column, String, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum

from ..core.database import Base


class RunStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.FAILED)


class ZapRun(Base):
    """One execution attempt of a zap"""
    __tablename__ = "zap_runs"

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    zap_id = Column(String(36), ForeignKey("zaps.id", ondelete="CASCADE"), nullable=False, index=True)

    # pending -> running -> success | failed
    status = Column(String(20), nullable=False, default=RunStatus.PENDING.value, index=True)

    # Triggering payload, kept for audit and replay
    run_metadata = Column("metadata", JSON, nullable=False, default=dict)

    # Last action failure; only set when failed
    error = Column(Text, nullable=True)
    # Per-action outcomes: [{action_id, action_type, success, error}]
    outcomes = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    zap = relationship("Zap", back_populates="runs")

    def __repr__(self):
        return f"<ZapRun(id={self.id}, zap_id={self.zap_id}, status={self.status})>"
