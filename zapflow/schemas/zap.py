from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Dict, Any, List, Optional
from datetime import datetime


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Create / update requests
class TriggerCreate(CamelModel):
    trigger_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class ActionCreate(CamelModel):
    action_type: str
    action_metadata: Dict[str, Any] = Field(default_factory=dict, alias="metadata")
    sorting_order: Optional[int] = None


class ZapCreate(CamelModel):
    name: str = Field(default="Untitled Zap", min_length=1, max_length=255)
    description: Optional[str] = None
    max_runs: int = Field(default=-1, ge=-1)
    is_active: bool = True
    trigger: TriggerCreate
    actions: List[ActionCreate] = Field(default_factory=list)


class ActionUpdate(CamelModel):
    id: int
    action_metadata: Optional[Dict[str, Any]] = Field(default=None, alias="metadata")
    sorting_order: Optional[int] = None


class ZapUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    max_runs: Optional[int] = Field(default=None, ge=-1)
    is_active: Optional[bool] = None
    trigger_payload: Optional[Dict[str, Any]] = None
    actions: Optional[List[ActionUpdate]] = None


class ToggleRequest(CamelModel):
    is_active: bool


# Responses
class TriggerResponse(CamelModel):
    id: str
    trigger_type: str
    trigger_name: Optional[str] = None
    payload: Dict[str, Any]


class ActionResponse(CamelModel):
    id: int
    action_type: str
    action_name: Optional[str] = None
    sorting_order: int
    action_metadata: Dict[str, Any] = Field(alias="metadata")


class ZapResponse(CamelModel):
    id: str
    user_id: str
    name: str
    description: Optional[str]
    max_runs: int
    is_active: bool
    run_count: int = 0
    trigger: Optional[TriggerResponse]
    actions: List[ActionResponse]
    created_at: datetime
    updated_at: Optional[datetime]


class ZapList(CamelModel):
    success: bool = True
    zaps: List[ZapResponse]
    total: int


class CatalogEntry(CamelModel):
    id: str
    name: str


class ConnectionResponse(CamelModel):
    id: str
    provider: str
    email: Optional[str]
    scope: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
