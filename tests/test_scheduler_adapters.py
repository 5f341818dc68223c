"""
Tests for the QStash and local (APScheduler) schedule backends
"""
import json

import httpx
import pytest

from zapflow.core.exceptions import InvalidCronExpressionError, ScheduleNotFoundError, TransportError
from zapflow.services.scheduler_adapter import LocalScheduler, QStashScheduler, parse_cron

DESTINATION = "https://zapflow.example.com/api/cron/zap-1"


class QStashStub:
    """Answers the subset of the QStash schedules API the adapter uses"""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="error")
        if request.method == "POST" and request.url.path.endswith("/api/cron/zap-1"):
            return httpx.Response(200, json={"scheduleId": "scd_123"})
        if request.method == "GET":
            return httpx.Response(200, json={
                "scheduleId": "scd_123",
                "cron": "0 9 * * *",
                "destination": DESTINATION,
                "isPaused": True
            })
        return httpx.Response(200, json={})


def qstash(stub):
    return QStashScheduler(token="qstash-token", base_url="https://qstash.test", transport=httpx.MockTransport(stub))


class TestParseCron:

    def test_valid_expression(self):
        assert parse_cron("*/5 * * * *") is not None

    @pytest.mark.parametrize("expression", ["", "   ", None, "every monday", "61 * * * *"])
    def test_invalid_expression(self, expression):
        with pytest.raises(InvalidCronExpressionError):
            parse_cron(expression)


class TestQStashScheduler:

    @pytest.mark.asyncio
    async def test_create_schedule(self):
        stub = QStashStub()

        schedule_id = await qstash(stub).create_schedule(DESTINATION, "0 9 * * *", {"zapId": "zap-1"})

        assert schedule_id == "scd_123"
        request = stub.requests[0]
        assert request.method == "POST"
        assert request.url.path.startswith("/v2/schedules/")
        assert request.headers["Upstash-Cron"] == "0 9 * * *"
        assert request.headers["Authorization"] == "Bearer qstash-token"
        assert json.loads(request.content) == {"zapId": "zap-1"}

    @pytest.mark.asyncio
    async def test_get_schedule(self):
        info = await qstash(QStashStub()).get_schedule("scd_123")

        assert info.schedule_id == "scd_123"
        assert info.cron == "0 9 * * *"
        assert info.is_paused is True
        assert info.destination == DESTINATION

    @pytest.mark.asyncio
    async def test_pause_and_resume_paths(self):
        stub = QStashStub()
        scheduler = qstash(stub)

        await scheduler.pause_schedule("scd_123")
        await scheduler.resume_schedule("scd_123")
        await scheduler.delete_schedule("scd_123")

        assert [(r.method, r.url.path) for r in stub.requests] == [
            ("POST", "/v2/schedules/scd_123/pause"),
            ("POST", "/v2/schedules/scd_123/resume"),
            ("DELETE", "/v2/schedules/scd_123"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_schedule(self):
        with pytest.raises(ScheduleNotFoundError):
            await qstash(QStashStub(status_code=404)).delete_schedule("scd_missing")

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self):
        with pytest.raises(TransportError) as exc_info:
            await qstash(QStashStub(status_code=500)).create_schedule(DESTINATION, "0 9 * * *")
        assert not isinstance(exc_info.value, ScheduleNotFoundError)

    @pytest.mark.asyncio
    async def test_unreachable_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        scheduler = QStashScheduler(token="t", base_url="https://qstash.test", transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError):
            await scheduler.get_schedule("scd_123")


class TestLocalScheduler:

    @pytest.fixture
    def local_scheduler(self):
        scheduler = LocalScheduler()
        scheduler.start()
        yield scheduler
        scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_schedule_lifecycle(self, local_scheduler):
        schedule_id = await local_scheduler.create_schedule(DESTINATION, "0 0 1 1 *", {"zapId": "zap-1"})

        info = await local_scheduler.get_schedule(schedule_id)
        assert info.cron == "0 0 1 1 *"
        assert info.destination == DESTINATION
        assert info.is_paused is False

        await local_scheduler.pause_schedule(schedule_id)
        assert (await local_scheduler.get_schedule(schedule_id)).is_paused is True

        await local_scheduler.resume_schedule(schedule_id)
        assert (await local_scheduler.get_schedule(schedule_id)).is_paused is False

        await local_scheduler.delete_schedule(schedule_id)
        with pytest.raises(ScheduleNotFoundError):
            await local_scheduler.get_schedule(schedule_id)

    @pytest.mark.asyncio
    async def test_unknown_schedule(self, local_scheduler):
        with pytest.raises(ScheduleNotFoundError):
            await local_scheduler.delete_schedule("local_missing")
        with pytest.raises(ScheduleNotFoundError):
            await local_scheduler.pause_schedule("local_missing")

    @pytest.mark.asyncio
    async def test_invalid_cron_rejected(self, local_scheduler):
        with pytest.raises(InvalidCronExpressionError):
            await local_scheduler.create_schedule(DESTINATION, "not a cron")
        assert local_scheduler.scheduler.get_jobs() == []
