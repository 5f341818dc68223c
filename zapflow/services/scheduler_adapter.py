"""
External cron scheduler adapters.

QStashScheduler talks to the Upstash QStash schedules API, which calls the
destination URL on every cron tick. LocalScheduler does the same from an
in-process APScheduler for development, where the hosted scheduler cannot
reach localhost.
"""
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..core.config import settings
from ..core.exceptions import InvalidCronExpressionError, ScheduleNotFoundError, TransportError
from ..core.logging_config import get_logger

logger = get_logger("scheduler_adapter")


@dataclass
class ScheduleInfo:
    schedule_id: str
    cron: Optional[str] = None
    is_paused: bool = False
    destination: Optional[str] = None


def parse_cron(expression: Optional[str]) -> CronTrigger:
    """Parse a five-field crontab expression (UTC)"""
    if not expression or not expression.strip():
        raise InvalidCronExpressionError(expression, "expression is empty")
    try:
        return CronTrigger.from_crontab(expression.strip(), timezone="UTC")
    except ValueError as e:
        raise InvalidCronExpressionError(expression, str(e))


class SchedulerAdapter(ABC):
    """Create, inspect, pause, resume and delete cron schedules"""

    @abstractmethod
    async def create_schedule(self, destination: str, cron: str, body: Optional[Dict[str, Any]] = None) -> str:
        """Register a schedule calling destination on every tick; returns the schedule id"""

    @abstractmethod
    async def get_schedule(self, schedule_id: str) -> ScheduleInfo:
        pass

    @abstractmethod
    async def pause_schedule(self, schedule_id: str) -> None:
        pass

    @abstractmethod
    async def resume_schedule(self, schedule_id: str) -> None:
        pass

    @abstractmethod
    async def delete_schedule(self, schedule_id: str) -> None:
        pass

    def start(self) -> None:
        pass

    def shutdown(self) -> None:
        pass


class QStashScheduler(SchedulerAdapter):
    """Upstash QStash schedules over its REST API"""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self.token = token or settings.QSTASH_TOKEN
        self.base_url = (base_url or settings.QSTASH_URL).rstrip("/")
        self.transport = transport
        self.timeout = timeout

        if not self.token:
            logger.warning("QSTASH_TOKEN not set - schedule requests will be rejected")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.token}"}
        )

    async def _request(self, method: str, path: str, schedule_id: Optional[str] = None, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"QStash {method} {path} failed: {e}")
            raise TransportError(f"QStash request failed: {e}")

        if response.status_code == 404 and schedule_id:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")
        if not response.is_success:
            logger.error(f"QStash {method} {path} returned {response.status_code}: {response.text[:200]}")
            raise TransportError(f"QStash returned {response.status_code}")
        return response

    async def create_schedule(self, destination: str, cron: str, body: Optional[Dict[str, Any]] = None) -> str:
        response = await self._request(
            "POST",
            f"/v2/schedules/{destination}",
            headers={"Upstash-Cron": cron, "Content-Type": "application/json"},
            json=body or {}
        )
        schedule_id = response.json().get("scheduleId")
        if not schedule_id:
            raise TransportError("QStash response did not include a scheduleId")

        logger.info(f"QStash schedule created: {schedule_id} ({cron}) -> {destination}")
        return schedule_id

    async def get_schedule(self, schedule_id: str) -> ScheduleInfo:
        response = await self._request("GET", f"/v2/schedules/{schedule_id}", schedule_id=schedule_id)
        data = response.json()
        return ScheduleInfo(
            schedule_id=data.get("scheduleId", schedule_id),
            cron=data.get("cron"),
            is_paused=bool(data.get("isPaused", False)),
            destination=data.get("destination")
        )

    async def pause_schedule(self, schedule_id: str) -> None:
        await self._request("POST", f"/v2/schedules/{schedule_id}/pause", schedule_id=schedule_id)
        logger.info(f"QStash schedule paused: {schedule_id}")

    async def resume_schedule(self, schedule_id: str) -> None:
        await self._request("POST", f"/v2/schedules/{schedule_id}/resume", schedule_id=schedule_id)
        logger.info(f"QStash schedule resumed: {schedule_id}")

    async def delete_schedule(self, schedule_id: str) -> None:
        await self._request("DELETE", f"/v2/schedules/{schedule_id}", schedule_id=schedule_id)
        logger.info(f"QStash schedule deleted: {schedule_id}")


class LocalScheduler(SchedulerAdapter):
    """In-process cron schedules; each tick POSTs the body to the destination"""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None, timeout: float = 30.0):
        self.scheduler = scheduler or BackgroundScheduler(
            timezone="UTC",
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,
                'misfire_grace_time': 60
            }
        )
        self.timeout = timeout
        self._crons: Dict[str, str] = {}

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Local scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Local scheduler stopped")

    def _fire(self, destination: str, body: Dict[str, Any]) -> None:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(destination, json=body)
            logger.info(f"Local schedule tick -> {destination} ({response.status_code})")
        except httpx.HTTPError as e:
            logger.error(f"Local schedule tick to {destination} failed: {e}")

    async def create_schedule(self, destination: str, cron: str, body: Optional[Dict[str, Any]] = None) -> str:
        trigger = parse_cron(cron)
        schedule_id = f"local_{uuid.uuid4().hex}"

        self.scheduler.add_job(
            func=self._fire,
            trigger=trigger,
            args=[destination, body or {}],
            id=schedule_id,
            name=f"cron {cron} -> {destination}",
            replace_existing=True
        )
        self._crons[schedule_id] = cron

        logger.info(f"Local schedule created: {schedule_id} ({cron}) -> {destination}")
        return schedule_id

    async def get_schedule(self, schedule_id: str) -> ScheduleInfo:
        job = self.scheduler.get_job(schedule_id)
        if job is None:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")

        return ScheduleInfo(
            schedule_id=schedule_id,
            cron=self._crons.get(schedule_id),
            is_paused=self.scheduler.running and job.next_run_time is None,
            destination=job.args[0] if job.args else None
        )

    async def pause_schedule(self, schedule_id: str) -> None:
        try:
            self.scheduler.pause_job(schedule_id)
        except JobLookupError:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")
        logger.info(f"Local schedule paused: {schedule_id}")

    async def resume_schedule(self, schedule_id: str) -> None:
        try:
            self.scheduler.resume_job(schedule_id)
        except JobLookupError:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")
        logger.info(f"Local schedule resumed: {schedule_id}")

    async def delete_schedule(self, schedule_id: str) -> None:
        try:
            self.scheduler.remove_job(schedule_id)
        except JobLookupError:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")
        self._crons.pop(schedule_id, None)
        logger.info(f"Local schedule deleted: {schedule_id}")


def build_scheduler() -> SchedulerAdapter:
    """Scheduler backend selected by SCHEDULER_BACKEND"""
    backend = settings.SCHEDULER_BACKEND.lower()
    if backend == "qstash":
        return QStashScheduler()
    if backend == "local":
        return LocalScheduler()
    raise ValueError(f"Unknown SCHEDULER_BACKEND: {settings.SCHEDULER_BACKEND}")
