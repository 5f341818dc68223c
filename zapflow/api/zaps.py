from fastapi import APIRouter, Depends, HTTPException

from ..core.exceptions import (
    NotFoundError, TransportError, UnauthorizedError, ZapValidationError
)
from ..core.logging_config import get_logger
from ..schemas.zap import ToggleRequest, ZapCreate, ZapList, ZapResponse, ZapUpdate
from ..services.dependencies import TokenClaims, get_zap_service, validate_token
from ..services.zap_service import ZapService

router = APIRouter()
logger = get_logger("zap_api_controller")


@router.get("", response_model=ZapList)
async def list_zaps(
    service: ZapService = Depends(get_zap_service),
    claims: TokenClaims = Depends(validate_token)
) -> ZapList:
    """List zaps of the authenticated user"""
    zaps = service.list_zaps(claims.user_id)
    logger.info(f"Zaps retrieved successfully ({zaps.total})")
    return zaps


@router.post("", response_model=ZapResponse)
async def create_zap(
    zap: ZapCreate,
    service: ZapService = Depends(get_zap_service),
    claims: TokenClaims = Depends(validate_token)
) -> ZapResponse:
    """Create a zap with its trigger and actions"""
    try:
        created = await service.create_zap(zap, claims.user_id)
    except ZapValidationError as e:
        logger.error(f"Error creating zap: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Zap created successfully {created.id}")
    return created


@router.get("/{zap_id}", response_model=ZapResponse)
async def get_zap(
    zap_id: str,
    service: ZapService = Depends(get_zap_service),
    claims: TokenClaims = Depends(validate_token)
) -> ZapResponse:
    try:
        return service.get_zap(zap_id, claims.user_id)
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Access denied")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Zap not found")


@router.patch("/{zap_id}", response_model=ZapResponse)
async def update_zap(
    zap_id: str,
    zap: ZapUpdate,
    service: ZapService = Depends(get_zap_service),
    claims: TokenClaims = Depends(validate_token)
) -> ZapResponse:
    """Partially update a zap"""
    try:
        updated = await service.update_zap(zap_id, claims.user_id, zap)
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Access denied")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Zap not found")
    except ZapValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        logger.error(f"Schedule update failed for zap {zap_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to update schedule")

    logger.info(f"Zap updated successfully {zap_id}")
    return updated


@router.delete("/{zap_id}")
async def delete_zap(
    zap_id: str,
    service: ZapService = Depends(get_zap_service),
    claims: TokenClaims = Depends(validate_token)
):
    """Delete a zap, its runs and its schedule"""
    try:
        await service.delete_zap(zap_id, claims.user_id)
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Access denied")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Zap not found")

    logger.info(f"Zap deleted successfully {zap_id}")
    return {"success": True, "message": "Zap deleted"}


@router.post("/{zap_id}/toggle", response_model=ZapResponse)
async def toggle_zap(
    zap_id: str,
    body: ToggleRequest,
    service: ZapService = Depends(get_zap_service),
    claims: TokenClaims = Depends(validate_token)
) -> ZapResponse:
    """Activate or deactivate a zap"""
    try:
        return await service.toggle_zap(zap_id, claims.user_id, body.is_active)
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Access denied")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Zap not found")
    except ZapValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        logger.error(f"Failed to activate schedule for zap {zap_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to update schedule")
