"""
Run queue transports.

A dispatched run id is handed to exactly one transport: "inline" executes it
in-process right away, "rabbitmq" publishes it for the consumer process.
"""
from abc import ABC, abstractmethod
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import SessionLocal
from ..core.exceptions import TransportError, ZapflowException
from ..core.logging_config import get_logger
from .actions.registry import ActionRegistry
from .rabbitmq_publisher import RabbitMQPublisher
from .run_executor import RunExecutor

logger = get_logger("run_queue")


class RunQueue(ABC):

    @abstractmethod
    async def enqueue(self, run_id: str) -> None:
        """Hand a pending run to the executor; raises TransportError on failure"""

    def close(self) -> None:
        pass


class InlineRunQueue(RunQueue):
    """Executes the run in the calling process with its own session"""

    def __init__(self, registry: ActionRegistry, session_factory: Callable[[], Session] = SessionLocal):
        self.registry = registry
        self.session_factory = session_factory

    async def enqueue(self, run_id: str) -> None:
        db = self.session_factory()
        try:
            result = await RunExecutor(db, self.registry).execute(run_id)
            logger.info(f"Inline run {run_id} finished with status {result.status}")
        except ZapflowException as e:
            # The run record carries the outcome; the dispatcher only needs the id
            logger.error(f"Inline execution of run {run_id} failed: {e}")
        finally:
            db.close()


class RabbitMQRunQueue(RunQueue):
    """Publishes {"zapRunId"} to the run exchange"""

    def __init__(self, publisher: Optional[RabbitMQPublisher] = None):
        self.publisher = publisher or RabbitMQPublisher()

    async def enqueue(self, run_id: str) -> None:
        published = await self.publisher.publish_run(run_id)
        if not published:
            raise TransportError(f"Failed to queue zap run {run_id}")

    def close(self) -> None:
        self.publisher.close()


def build_run_queue(registry: ActionRegistry) -> RunQueue:
    """Transport selected by RUN_TRANSPORT"""
    transport = settings.RUN_TRANSPORT.lower()
    if transport == "inline":
        return InlineRunQueue(registry)
    if transport == "rabbitmq":
        return RabbitMQRunQueue()
    raise ValueError(f"Unknown RUN_TRANSPORT: {settings.RUN_TRANSPORT}")
