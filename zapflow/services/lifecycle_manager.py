"""
Quota and schedule lifecycle management for zaps.

Keeps a schedule trigger's persisted `scheduleId` in step with the external
scheduler across activation, deactivation, cron changes and quota exhaustion.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ScheduleNotFoundError, TransportError, ZapValidationError
from ..core.logging_config import get_logger, log_schedule_operation
from ..models.zap_model import Trigger, Zap
from .run_store import RunStore
from .scheduler_adapter import SchedulerAdapter, ScheduleInfo, parse_cron

logger = get_logger("lifecycle_manager")

UNLIMITED_RUNS = -1


@dataclass
class QuotaCheck:
    allowed: bool
    run_count: int
    max_runs: int


def cron_callback_url(zap_id: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}{settings.API_PREFIX}/cron/{zap_id}"


def _with_schedule_id(trigger: Trigger, schedule_id: Optional[str], cron: Optional[str] = None) -> None:
    # JSON columns only persist on reassignment
    payload = dict(trigger.payload or {})
    if schedule_id:
        payload["scheduleId"] = schedule_id
    else:
        payload.pop("scheduleId", None)
    if cron is not None:
        payload["cron"] = cron
    trigger.payload = payload


class LifecycleManager:
    """Quota checks and schedule create / pause / resume / delete for zaps"""

    def __init__(self, db: Session, scheduler: SchedulerAdapter):
        self.db = db
        self.scheduler = scheduler
        self.run_store = RunStore(db)

    def check_quota(self, zap: Zap) -> QuotaCheck:
        """Callers hold the zap row lock so the count cannot move underneath"""
        max_runs = zap.max_runs if zap.max_runs is not None else UNLIMITED_RUNS
        if max_runs == UNLIMITED_RUNS:
            return QuotaCheck(allowed=True, run_count=0, max_runs=max_runs)

        run_count = self.run_store.count_runs(zap.id)
        return QuotaCheck(allowed=run_count < max_runs, run_count=run_count, max_runs=max_runs)

    async def on_quota_exceeded(self, zap: Zap) -> None:
        """Cancel the zap's schedule once its quota is used up; never raises"""
        trigger = zap.trigger
        if trigger is None or not trigger.schedule_id:
            return

        schedule_id = trigger.schedule_id
        logger.info(f"Run limit reached for zap {zap.id}, cancelling schedule {schedule_id}")
        if await self._delete_quietly(zap, schedule_id):
            _with_schedule_id(trigger, None)
            self.db.commit()

    async def toggle(self, zap: Zap, active: bool) -> Zap:
        """Set is_active; schedule triggers gain or lose their external schedule"""
        trigger = zap.trigger
        if trigger is not None and trigger.is_schedule:
            if active:
                await self._ensure_schedule(zap)
            elif trigger.schedule_id:
                # Keep the id while the schedule may still be live
                if await self._delete_quietly(zap, trigger.schedule_id):
                    _with_schedule_id(trigger, None)

        zap.is_active = active
        self.db.commit()
        log_schedule_operation("toggle", zap.id, zap.trigger.schedule_id if zap.trigger else None, is_active=active)
        return zap

    async def reschedule(self, zap: Zap, cron: str) -> Optional[str]:
        """Store a new cron; an active schedule trigger is moved onto it"""
        parse_cron(cron)
        trigger = self._schedule_trigger(zap)

        old_schedule_id = trigger.schedule_id
        if zap.is_active and old_schedule_id:
            await self._delete_quietly(zap, old_schedule_id)
            old_schedule_id = None
        _with_schedule_id(trigger, old_schedule_id, cron=cron)
        self.db.commit()

        if not zap.is_active:
            return None

        schedule_id = await self.scheduler.create_schedule(cron_callback_url(zap.id), cron, self._schedule_body(zap))
        _with_schedule_id(trigger, schedule_id)
        self.db.commit()
        log_schedule_operation("reschedule", zap.id, schedule_id, cron=cron)
        return schedule_id

    async def create_schedule(self, zap: Zap, cron: str) -> str:
        """User-initiated schedule creation; replaces any existing schedule"""
        parse_cron(cron)
        trigger = self._schedule_trigger(zap)

        if trigger.schedule_id:
            await self._delete_quietly(zap, trigger.schedule_id)

        schedule_id = await self.scheduler.create_schedule(cron_callback_url(zap.id), cron, self._schedule_body(zap))
        _with_schedule_id(trigger, schedule_id, cron=cron)
        self.db.commit()
        log_schedule_operation("create", zap.id, schedule_id, cron=cron)
        return schedule_id

    async def delete_schedule(self, zap: Zap) -> str:
        trigger = zap.trigger
        schedule_id = trigger.schedule_id if trigger else None
        if not schedule_id:
            raise ScheduleNotFoundError(f"No schedule found for zap {zap.id}")

        try:
            await self.scheduler.delete_schedule(schedule_id)
        except ScheduleNotFoundError:
            logger.warning(f"Schedule {schedule_id} already gone at the scheduler")

        _with_schedule_id(trigger, None)
        self.db.commit()
        log_schedule_operation("delete", zap.id, schedule_id)
        return schedule_id

    async def get_schedule(self, zap: Zap) -> Optional[ScheduleInfo]:
        """Live schedule of the zap, or None; lookup failures read as no schedule"""
        trigger = zap.trigger
        if trigger is None or not trigger.schedule_id:
            return None
        try:
            return await self.scheduler.get_schedule(trigger.schedule_id)
        except TransportError as e:
            logger.warning(f"Schedule lookup failed for zap {zap.id}: {e}")
            return None

    async def pause_schedule(self, zap: Zap) -> str:
        schedule_id = self._require_schedule_id(zap)
        await self.scheduler.pause_schedule(schedule_id)
        log_schedule_operation("pause", zap.id, schedule_id)
        return schedule_id

    async def resume_schedule(self, zap: Zap) -> str:
        schedule_id = self._require_schedule_id(zap)
        await self.scheduler.resume_schedule(schedule_id)
        log_schedule_operation("resume", zap.id, schedule_id)
        return schedule_id

    async def _ensure_schedule(self, zap: Zap) -> None:
        trigger = zap.trigger
        if trigger.schedule_id:
            try:
                info = await self.scheduler.get_schedule(trigger.schedule_id)
                if info.is_paused:
                    await self.scheduler.resume_schedule(trigger.schedule_id)
                return
            except ScheduleNotFoundError:
                logger.info(f"Stored schedule {trigger.schedule_id} for zap {zap.id} is gone, recreating")

        if not trigger.cron:
            logger.warning(f"Schedule trigger of zap {zap.id} has no cron expression; nothing to schedule")
            return

        parse_cron(trigger.cron)
        schedule_id = await self.scheduler.create_schedule(
            cron_callback_url(zap.id), trigger.cron, self._schedule_body(zap)
        )
        _with_schedule_id(trigger, schedule_id)

    async def _delete_quietly(self, zap: Zap, schedule_id: str) -> bool:
        """Best-effort delete; True when the schedule is gone afterwards"""
        try:
            await self.scheduler.delete_schedule(schedule_id)
        except ScheduleNotFoundError:
            logger.info(f"Schedule {schedule_id} of zap {zap.id} was already deleted")
        except TransportError as e:
            logger.error(f"Failed to delete schedule {schedule_id} of zap {zap.id}: {e}")
            return False
        log_schedule_operation("delete", zap.id, schedule_id)
        return True

    @staticmethod
    def _schedule_trigger(zap: Zap) -> Trigger:
        trigger = zap.trigger
        if trigger is None or not trigger.is_schedule:
            raise ZapValidationError(f"Zap {zap.id} does not have a schedule trigger")
        return trigger

    @staticmethod
    def _require_schedule_id(zap: Zap) -> str:
        trigger = zap.trigger
        if trigger is None or not trigger.schedule_id:
            raise ScheduleNotFoundError(f"No schedule found for zap {zap.id}")
        return trigger.schedule_id

    @staticmethod
    def _schedule_body(zap: Zap) -> dict:
        return {"zapId": zap.id, "userId": zap.user_id}
