"""
Unit tests for RunExecutor

Covers action ordering, per-action failure isolation, duplicate deliveries,
credential passing and the terminal-state guarantees of a run.
"""
import pytest

from zapflow.core.exceptions import ActionExecutionError, RunNotFoundError
from zapflow.models import ActionType, RunStatus, ZapRun
from zapflow.services.actions.base import ActionResult
from zapflow.services.run_executor import RunExecutor
from zapflow.services.run_store import RunStore

from conftest import RecordingExecutor


def _register(registry, calls, overrides=None):
    """Register recording executors for a few action types"""
    defaults = {
        ActionType.SEND_EMAIL: RecordingExecutor("email", calls),
        ActionType.HTTP_REQUEST: RecordingExecutor("http", calls),
        ActionType.SEND_SLACK: RecordingExecutor("slack", calls),
        ActionType.CREATE_SPREADSHEET_ROW: RecordingExecutor("sheets", calls, credential_provider="google"),
    }
    defaults.update(overrides or {})
    for action_type, executor in defaults.items():
        registry.register(action_type, executor)


class TestRunExecutor:

    @pytest.mark.asyncio
    async def test_actions_run_in_sorting_order_then_id(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls)
        zap = make_zap(actions=[
            {"type": "send_slack", "order": 2},
            {"type": "send_email", "order": 0},
            {"type": "http_request", "order": 1},
            {"type": "send_email", "order": 1, "metadata": {"to": "second@example.com"}},
        ])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.status == "success"
        # Ties on sorting_order fall back to insertion order (id)
        assert [c[0] for c in action_calls] == ["email", "http", "email", "slack"]
        assert action_calls[2][1]["to"] == "second@example.com"

    @pytest.mark.asyncio
    async def test_failing_action_does_not_stop_chain(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls, {
            ActionType.HTTP_REQUEST: RecordingExecutor("http", action_calls, result=ActionResult.failure("HTTP 500")),
        })
        zap = make_zap(actions=[
            {"type": "send_email"},
            {"type": "http_request"},
            {"type": "send_slack"},
        ])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert [c[0] for c in action_calls] == ["email", "http", "slack"]
        assert result.status == "failed"
        assert result.error == "HTTP 500"

        db_session.expire_all()
        stored = db_session.get(ZapRun, run.id)
        assert stored.status == "failed"
        assert stored.error == "HTTP 500"
        assert stored.completed_at is not None
        assert [o["success"] for o in stored.outcomes] == [True, False, True]
        assert stored.outcomes[1]["actionType"] == "http_request"

    @pytest.mark.asyncio
    async def test_last_failure_message_wins(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls, {
            ActionType.SEND_EMAIL: RecordingExecutor("email", action_calls, result=ActionResult.failure("first")),
            ActionType.SEND_SLACK: RecordingExecutor("slack", action_calls, raises=RuntimeError("second")),
        })
        zap = make_zap(actions=[{"type": "send_email"}, {"type": "send_slack"}])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.status == "failed"
        assert result.error == "second"
        assert len(result.outcomes) == 2

    @pytest.mark.asyncio
    async def test_action_execution_error_is_captured(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls, {
            ActionType.SEND_EMAIL: RecordingExecutor(
                "email", action_calls, raises=ActionExecutionError("send_email", "mailbox full")
            ),
        })
        zap = make_zap(actions=[{"type": "send_email"}])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.status == "failed"
        assert result.error == "mailbox full"

    @pytest.mark.asyncio
    async def test_unknown_action_type_is_skipped(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls)
        zap = make_zap(actions=[{"type": "teleport"}, {"type": "send_email"}])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.status == "success"
        assert [c[0] for c in action_calls] == ["email"]
        assert result.outcomes[0]["skipped"] is True

    @pytest.mark.asyncio
    async def test_zap_without_actions_succeeds(self, db_session, registry, make_zap, make_run):
        zap = make_zap(actions=[])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.status == "success"
        assert result.outcomes == []

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_noop(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls)
        zap = make_zap(actions=[{"type": "send_email"}])
        run = make_run(zap)
        executor = RunExecutor(db_session, registry)

        first = await executor.execute(run.id)
        second = await executor.execute(run.id)

        assert first.status == "success"
        assert second.duplicate is True
        assert second.status == "success"
        assert len(action_calls) == 1

    @pytest.mark.asyncio
    async def test_running_run_is_not_claimed_again(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls)
        zap = make_zap(actions=[{"type": "send_email"}])
        run = make_run(zap, status="running")

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.duplicate is True
        assert result.status == "running"
        assert action_calls == []

    @pytest.mark.asyncio
    async def test_unknown_run_raises(self, db_session, registry):
        with pytest.raises(RunNotFoundError):
            await RunExecutor(db_session, registry).execute("missing-run")

    @pytest.mark.asyncio
    async def test_credentials_passed_only_to_provider_actions(
        self, db_session, registry, action_calls, make_zap, make_run, google_connection
    ):
        _register(registry, action_calls)
        zap = make_zap(actions=[
            {"type": "send_email", "metadata": {"to": "a@example.com"}},
            {"type": "create_spreadsheet_row", "metadata": {"spreadsheetId": "sheet-1"}},
        ])
        run = make_run(zap)

        await RunExecutor(db_session, registry).execute(run.id)

        email_call, sheets_call = action_calls
        assert email_call[2] is None
        assert sheets_call[2].access_token == "google-access-token"
        # Tokens never leak into the action metadata
        assert "googleAccessToken" not in sheets_call[1]
        db_session.expire_all()
        stored_metadata = [a.action_metadata for a in zap.actions]
        assert all("accessToken" not in m for m in stored_metadata)

    @pytest.mark.asyncio
    async def test_missing_credentials_do_not_block(self, db_session, registry, action_calls, make_zap, make_run):
        _register(registry, action_calls)
        zap = make_zap(actions=[{"type": "create_spreadsheet_row"}])
        run = make_run(zap)

        result = await RunExecutor(db_session, registry).execute(run.id)

        assert result.status == "success"
        assert action_calls[0][2] is None

    @pytest.mark.asyncio
    async def test_started_and_completed_timestamps(self, db_session, registry, make_zap, make_run):
        zap = make_zap()
        run = make_run(zap)

        await RunExecutor(db_session, registry).execute(run.id)

        db_session.expire_all()
        stored = db_session.get(ZapRun, run.id)
        assert stored.started_at is not None
        assert stored.completed_at is not None
        assert stored.error is None


class TestRunStoreFinalize:

    def test_non_terminal_status_rejected(self, db_session, make_zap, make_run):
        run = make_run(make_zap(), status="running")

        with pytest.raises(ValueError):
            RunStore(db_session).finalize(run.id, RunStatus.PENDING)

        db_session.expire_all()
        assert db_session.get(ZapRun, run.id).status == "running"

    def test_terminal_run_is_not_rewritten(self, db_session, make_zap, make_run):
        run = make_run(make_zap(), status="success")

        assert RunStore(db_session).finalize(run.id, RunStatus.FAILED, error="late") is False

        db_session.expire_all()
        stored = db_session.get(ZapRun, run.id)
        assert stored.status == "success"
        assert stored.error is None
