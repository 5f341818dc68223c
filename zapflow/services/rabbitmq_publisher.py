"""
RabbitMQ publisher for zap run jobs.
Publishes {"zapRunId": ...} messages to the run exchange for the consumer.
"""
import json
import asyncio
from typing import Dict, Any, Optional
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor

import pika
from pika.exceptions import AMQPConnectionError

from ..core.config import settings
from ..core.logging_config import get_logger

logger = get_logger("rabbitmq_publisher")


class RabbitMQPublisher:
    """Publishes run jobs; blocking pika calls run in a thread pool"""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        exchange: Optional[str] = None,
        routing_key: Optional[str] = None
    ):
        self.host = host or settings.RABBITMQ_HOST
        self.port = port or settings.RABBITMQ_PORT
        self.username = username or settings.RABBITMQ_USERNAME
        self.password = password or settings.RABBITMQ_PASSWORD
        self.exchange = exchange or settings.RABBITMQ_RUN_EXCHANGE
        self.routing_key = routing_key or settings.RABBITMQ_RUN_ROUTING_KEY

        self.connection = None
        self.channel = None

        # Thread pool for blocking pika operations
        self._executor = ThreadPoolExecutor(max_workers=5)

        logger.info("RabbitMQ Publisher initialized")

    def _connect(self) -> bool:
        """Establish connection to RabbitMQ"""
        try:
            if self.connection:
                if not self.connection.is_closed:
                    return True
                # Stale connection, rebuild below
                self.connection = None
                self.channel = None

            credentials = pika.PlainCredentials(self.username, self.password)
            parameters = pika.ConnectionParameters(
                host=self.host,
                port=self.port,
                credentials=credentials,
                heartbeat=600,
                blocked_connection_timeout=300
            )

            self.connection = pika.BlockingConnection(parameters)
            self.channel = self.connection.channel()

            # Declare exchange (idempotent)
            self.channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )

            logger.info(f"Connected to RabbitMQ at {self.host}:{self.port}")
            return True

        except AMQPConnectionError as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            self.connection = None
            self.channel = None
            return False

    def _publish_message(self, routing_key: str, message_data: Dict[str, Any]) -> bool:
        """
        Synchronous message publishing (runs in thread pool).

        Returns:
            bool: True if published successfully
        """
        try:
            if not self._connect():
                logger.error("Cannot publish: RabbitMQ connection failed")
                return False

            message_data["queuedAt"] = datetime.utcnow().isoformat()

            self.channel.basic_publish(
                exchange=self.exchange,
                routing_key=routing_key,
                body=json.dumps(message_data),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent message
                    content_type="application/json"
                )
            )

            logger.info(f"Message published to '{routing_key}': {message_data.get('zapRunId')}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish message to '{routing_key}': {e}")
            # Reconnect on next attempt
            self._disconnect()
            return False

    def _disconnect(self):
        """Close RabbitMQ connection"""
        try:
            if self.channel and not self.channel.is_closed:
                self.channel.close()
            if self.connection and not self.connection.is_closed:
                self.connection.close()
            logger.info("Disconnected from RabbitMQ")
        except Exception as e:
            logger.error(f"Error disconnecting from RabbitMQ: {e}")
        finally:
            self.connection = None
            self.channel = None

    async def publish_run(self, run_id: str) -> bool:
        """Publish a run job (async, non-blocking)"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            self._publish_message,
            self.routing_key,
            {"zapRunId": run_id}
        )

    def close(self):
        """Close publisher and cleanup resources"""
        self._disconnect()
        self._executor.shutdown(wait=True)
        logger.info("RabbitMQ Publisher closed")
