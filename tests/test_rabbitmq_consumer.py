"""
Unit tests for the run job consumer: ack/nack decisions and retry headers
"""
import json
from unittest.mock import MagicMock, patch

import pytest

from zapflow.core.exceptions import RunNotFoundError
from zapflow.services.actions.registry import ActionRegistry
from zapflow.services.rabbitmq_consumer import RabbitMQConsumer
from zapflow.services.run_executor import RunExecutionResult


@pytest.fixture
def consumer():
    session = MagicMock()
    consumer = RabbitMQConsumer(registry=ActionRegistry(), session_factory=lambda: session)
    consumer.session = session
    yield consumer
    consumer._loop.close()


@pytest.fixture
def channel():
    return MagicMock()


@pytest.fixture
def method():
    method = MagicMock()
    method.delivery_tag = 7
    method.routing_key = "zap_run.execute"
    return method


def _properties(retry_count=None):
    properties = MagicMock()
    properties.headers = {"x-retry-count": retry_count} if retry_count is not None else None
    return properties


def _body(data):
    return json.dumps(data).encode()


def _executor_returning(result=None, error=None):
    executor = MagicMock()

    async def execute(run_id):
        if error:
            raise error
        return result or RunExecutionResult(run_id=run_id, status="success")

    executor.execute.side_effect = execute
    return executor


class TestRabbitMQConsumer:

    def test_successful_run_is_acked(self, consumer, channel, method):
        executor = _executor_returning()
        with patch("zapflow.services.rabbitmq_consumer.RunExecutor", return_value=executor) as executor_cls:
            consumer._process_run_message(channel, method, _properties(), _body({"zapRunId": "run-1"}))

        executor.execute.assert_called_once_with("run-1")
        assert executor_cls.call_args[0][0] is consumer.session
        channel.basic_ack.assert_called_once_with(delivery_tag=7)
        channel.basic_nack.assert_not_called()
        consumer.session.close.assert_called_once()

    def test_failed_run_is_still_acked(self, consumer, channel, method):
        executor = _executor_returning(RunExecutionResult(run_id="run-1", status="failed", error="boom"))
        with patch("zapflow.services.rabbitmq_consumer.RunExecutor", return_value=executor):
            consumer._process_run_message(channel, method, _properties(), _body({"zapRunId": "run-1"}))

        channel.basic_ack.assert_called_once_with(delivery_tag=7)

    def test_invalid_json_is_dropped(self, consumer, channel, method):
        consumer._process_run_message(channel, method, _properties(), b"{not json")

        channel.basic_nack.assert_called_once_with(delivery_tag=7, requeue=False)
        channel.basic_publish.assert_not_called()

    @pytest.mark.parametrize("payload", [{}, {"zapRunId": ""}, ["run-1"]])
    def test_missing_run_id_is_dropped(self, consumer, channel, method, payload):
        consumer._process_run_message(channel, method, _properties(), _body(payload))

        channel.basic_nack.assert_called_once_with(delivery_tag=7, requeue=False)

    def test_unknown_run_is_dropped(self, consumer, channel, method):
        executor = _executor_returning(error=RunNotFoundError("Zap run missing not found"))
        with patch("zapflow.services.rabbitmq_consumer.RunExecutor", return_value=executor):
            consumer._process_run_message(channel, method, _properties(), _body({"zapRunId": "missing"}))

        channel.basic_nack.assert_called_once_with(delivery_tag=7, requeue=False)
        channel.basic_publish.assert_not_called()

    def test_unexpected_error_republishes_with_retry_count(self, consumer, channel, method):
        executor = _executor_returning(error=RuntimeError("database went away"))
        body = _body({"zapRunId": "run-1"})
        with patch("zapflow.services.rabbitmq_consumer.RunExecutor", return_value=executor):
            consumer._process_run_message(channel, method, _properties(1), body)

        publish_kwargs = channel.basic_publish.call_args.kwargs
        assert publish_kwargs["body"] == body
        assert publish_kwargs["exchange"] == consumer.exchange
        assert publish_kwargs["routing_key"] == "zap_run.execute"
        assert publish_kwargs["properties"].headers["x-retry-count"] == 2
        channel.basic_ack.assert_called_once_with(delivery_tag=7)

    def test_exhausted_retries_are_discarded(self, consumer, channel, method):
        with patch("zapflow.services.rabbitmq_consumer.RunExecutor") as executor_cls:
            consumer._process_run_message(
                channel, method, _properties(consumer.max_retries), _body({"zapRunId": "run-1"})
            )

        executor_cls.assert_not_called()
        channel.basic_nack.assert_called_once_with(delivery_tag=7, requeue=False)
        channel.basic_publish.assert_not_called()
