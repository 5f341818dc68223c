from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import NotFoundError
from ..core.logging_config import get_logger
from ..schemas.zap import ConnectionResponse
from ..services.credential_store import CredentialStore
from ..services.dependencies import TokenClaims, get_credential_store, validate_token

router = APIRouter()
logger = get_logger("connections_api_controller")


@router.get("")
async def list_connections(
    store: CredentialStore = Depends(get_credential_store),
    claims: TokenClaims = Depends(validate_token)
):
    """Providers the user has connected; tokens are never returned"""
    connections = [
        ConnectionResponse.model_validate(c).model_dump(by_alias=True, mode="json")
        for c in store.list_connections(claims.user_id)
    ]
    return {"success": True, "connections": connections}


@router.delete("")
async def disconnect(
    provider: str = Query(..., min_length=1),
    store: CredentialStore = Depends(get_credential_store),
    claims: TokenClaims = Depends(validate_token)
):
    try:
        store.delete_connection(claims.user_id, provider)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=f"No {provider} connection found")

    return {"success": True, "message": f"Disconnected {provider}"}
