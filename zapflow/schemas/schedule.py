from typing import Optional

from .zap import CamelModel


class ScheduleCreateRequest(CamelModel):
    zap_id: Optional[str] = None
    cron: Optional[str] = None


class ScheduleZapRequest(CamelModel):
    zap_id: Optional[str] = None


class ScheduleCreateResponse(CamelModel):
    success: bool = True
    schedule_id: str
    cron: str
    message: str


class ScheduleStatusResponse(CamelModel):
    has_schedule: bool
    schedule_id: Optional[str] = None
    cron: Optional[str] = None
    is_paused: Optional[bool] = None
