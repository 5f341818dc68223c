"""
Credential store: read access to the OAuth tokens users connected.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..core.logging_config import get_logger
from ..models.connection_model import UserConnection

logger = get_logger("credential_store")

GOOGLE_PROVIDER = "google"


@dataclass(frozen=True)
class Credentials:
    """Tokens handed to an action executor alongside its metadata"""
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class CredentialStore:
    """Maps (user, provider) to stored access/refresh tokens"""

    def __init__(self, db: Session):
        self.db = db

    def get_credentials(self, user_id: str, provider: str) -> Optional[Credentials]:
        connection = self.db.query(UserConnection).filter(
            UserConnection.user_id == user_id,
            UserConnection.provider == provider
        ).first()

        if not connection:
            return None

        logger.info(f"{provider} token available for user {user_id}")
        return Credentials(
            provider=connection.provider,
            access_token=connection.access_token,
            refresh_token=connection.refresh_token,
            expires_at=connection.expires_at
        )

    def list_connections(self, user_id: str) -> List[UserConnection]:
        return self.db.query(UserConnection).filter(
            UserConnection.user_id == user_id
        ).order_by(UserConnection.created_at).all()

    def delete_connection(self, user_id: str, provider: str) -> None:
        deleted = self.db.query(UserConnection).filter(
            UserConnection.user_id == user_id,
            UserConnection.provider == provider
        ).delete(synchronize_session=False)

        if not deleted:
            self.db.rollback()
            raise NotFoundError(f"Connection {provider} not found")

        self.db.commit()
        logger.info(f"Disconnected {provider} for user {user_id}")
