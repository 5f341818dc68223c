from sqlalchemy import Column, String, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from ..core.database import Base


class UserConnection(Base):
    """OAuth tokens a user granted for a third-party provider"""
    __tablename__ = "user_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_connections_user_provider"),
    )

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    provider = Column(String(50), nullable=False)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    email = Column(String(255), nullable=True)
    scope = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserConnection(user_id={self.user_id}, provider={self.provider})>"
