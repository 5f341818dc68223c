from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import get_db
from ..core.logging_config import get_logger, set_request_context
from .actions.registry import ActionRegistry
from .credential_store import CredentialStore
from .dispatch_service import DispatchService
from .lifecycle_manager import LifecycleManager
from .run_queue import RunQueue
from .scheduler_adapter import SchedulerAdapter
from .zap_service import ZapService

logger = get_logger("dependencies")
security = HTTPBearer(auto_error=False)


class TokenClaims(BaseModel):
    """JWT token claims"""
    user_id: str
    email: Optional[str] = None
    exp: Optional[int] = None


def decode_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token has expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"}
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user_id claim",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return TokenClaims(user_id=str(user_id), email=payload.get("email"), exp=payload.get("exp"))


async def validate_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenClaims:
    """Validate JWT token and extract claims"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"}
        )

    claims = decode_token(credentials.credentials)
    set_request_context(user_id=claims.user_id)
    logger.debug(f"Token validated for user: {claims.user_id}")
    return claims


# Clients built once in the app lifespan
def get_scheduler(request: Request) -> SchedulerAdapter:
    return request.app.state.scheduler


def get_run_queue(request: Request) -> RunQueue:
    return request.app.state.run_queue


def get_action_registry(request: Request) -> ActionRegistry:
    return request.app.state.action_registry


def get_lifecycle_manager(
    db: Session = Depends(get_db),
    scheduler: SchedulerAdapter = Depends(get_scheduler)
) -> LifecycleManager:
    return LifecycleManager(db, scheduler)


def get_dispatch_service(
    db: Session = Depends(get_db),
    run_queue: RunQueue = Depends(get_run_queue),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager)
) -> DispatchService:
    return DispatchService(db, run_queue, lifecycle)


def get_zap_service(
    db: Session = Depends(get_db),
    lifecycle: LifecycleManager = Depends(get_lifecycle_manager)
) -> ZapService:
    return ZapService(db, lifecycle)


def get_credential_store(db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)
