from fastapi import APIRouter

from ..models.zap_model import ActionType, TriggerType
from ..schemas.zap import CatalogEntry

router = APIRouter()


@router.get("/trigger/available")
async def available_triggers():
    return {
        "availableTriggers": [
            CatalogEntry(id=t.value, name=t.display_name).model_dump(by_alias=True) for t in TriggerType
        ]
    }


@router.get("/action/available")
async def available_actions():
    return {
        "availableActions": [
            CatalogEntry(id=a.value, name=a.display_name).model_dump(by_alias=True) for a in ActionType
        ]
    }
