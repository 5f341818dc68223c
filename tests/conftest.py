"""
Pytest configuration and shared fixtures for zapflow tests
"""
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

# In-memory database for every test; must be set before zapflow is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

# Add project root to path so tests run without an install
sys.path.insert(0, str(Path(__file__).parent.parent))

from zapflow.core.database import Base, SessionLocal, engine
from zapflow.core.exceptions import ScheduleNotFoundError, TransportError
from zapflow.models import Action, Trigger, UserConnection, Zap, ZapRun
from zapflow.services.actions.base import ActionParams, ActionResult, BaseActionExecutor
from zapflow.services.actions.registry import ActionRegistry
from zapflow.services.run_queue import RunQueue
from zapflow.services.scheduler_adapter import SchedulerAdapter, ScheduleInfo


class FakeScheduler(SchedulerAdapter):
    """In-memory scheduler recording every call"""

    def __init__(self):
        self.schedules: Dict[str, ScheduleInfo] = {}
        self.bodies: Dict[str, Dict[str, Any]] = {}
        self.created: List[str] = []
        self.deleted: List[str] = []
        self.fail_create = False
        self.fail_delete = False
        self.fail_get = False

    async def create_schedule(self, destination, cron, body=None):
        if self.fail_create:
            raise TransportError("scheduler unavailable")
        schedule_id = f"sched_{len(self.created) + 1}"
        self.schedules[schedule_id] = ScheduleInfo(schedule_id=schedule_id, cron=cron, destination=destination)
        self.bodies[schedule_id] = body or {}
        self.created.append(schedule_id)
        return schedule_id

    async def get_schedule(self, schedule_id):
        if self.fail_get:
            raise TransportError("scheduler unavailable")
        if schedule_id not in self.schedules:
            raise ScheduleNotFoundError(schedule_id)
        return self.schedules[schedule_id]

    async def pause_schedule(self, schedule_id):
        (await self.get_schedule(schedule_id)).is_paused = True

    async def resume_schedule(self, schedule_id):
        (await self.get_schedule(schedule_id)).is_paused = False

    async def delete_schedule(self, schedule_id):
        if self.fail_delete:
            raise TransportError("scheduler unavailable")
        if schedule_id not in self.schedules:
            raise ScheduleNotFoundError(schedule_id)
        del self.schedules[schedule_id]
        self.deleted.append(schedule_id)


class RecordingRunQueue(RunQueue):
    def __init__(self, fail: bool = False):
        self.enqueued: List[str] = []
        self.fail = fail

    async def enqueue(self, run_id):
        if self.fail:
            raise TransportError("queue unavailable")
        self.enqueued.append(run_id)


class PassthroughParams(ActionParams):
    class Config:
        extra = "allow"


class RecordingExecutor(BaseActionExecutor):
    """Appends (label, metadata, credentials) to a shared call log"""

    params_model = PassthroughParams

    def __init__(self, label: str, calls: list, result: Optional[ActionResult] = None,
                 raises: Optional[Exception] = None, credential_provider: Optional[str] = None):
        super().__init__()
        self.label = label
        self.calls = calls
        self.result = result or ActionResult.ok()
        self.raises = raises
        self.credential_provider = credential_provider

    async def run(self, params: ActionParams, credentials):
        self.calls.append((self.label, params.model_dump(), credentials))
        if self.raises:
            raise self.raises
        return self.result


@pytest.fixture
def db_session():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def run_queue():
    return RecordingRunQueue()


@pytest.fixture
def action_calls():
    return []


@pytest.fixture
def registry():
    return ActionRegistry()


@pytest.fixture
def make_zap(db_session):
    """Factory persisting a zap with its trigger and actions"""

    def _make_zap(
        user_id: str = "user-1",
        trigger_type: str = "webhook",
        trigger_payload: Optional[Dict[str, Any]] = None,
        actions: Optional[List[Dict[str, Any]]] = None,
        max_runs: int = -1,
        is_active: bool = True,
        name: str = "Test Zap"
    ) -> Zap:
        zap = Zap(id=str(uuid.uuid4()), user_id=user_id, name=name, max_runs=max_runs, is_active=is_active)
        zap.trigger = Trigger(id=str(uuid.uuid4()), trigger_type=trigger_type, payload=trigger_payload or {})
        for index, action_data in enumerate(actions or []):
            zap.actions.append(Action(
                action_type=action_data["type"],
                sorting_order=action_data.get("order", index),
                action_metadata=action_data.get("metadata", {})
            ))
        db_session.add(zap)
        db_session.commit()
        db_session.refresh(zap)
        return zap

    return _make_zap


@pytest.fixture
def make_run(db_session):
    def _make_run(zap: Zap, status: str = "pending", metadata: Optional[Dict[str, Any]] = None) -> ZapRun:
        run = ZapRun(id=str(uuid.uuid4()), zap_id=zap.id, status=status, run_metadata=metadata or {})
        db_session.add(run)
        db_session.commit()
        return run

    return _make_run


@pytest.fixture
def google_connection(db_session):
    connection = UserConnection(
        user_id="user-1",
        provider="google",
        access_token="google-access-token",
        refresh_token="google-refresh-token",
        email="user@example.com"
    )
    db_session.add(connection)
    db_session.commit()
    return connection
