import json
import time
import asyncio
from typing import Optional

import pika
from pika.exceptions import AMQPConnectionError

from ..core.config import settings
from ..core.database import SessionLocal
from ..core.exceptions import RunNotFoundError
from ..core.logging_config import get_logger, set_request_context, clear_request_context
from .actions.registry import ActionRegistry, create_default_registry
from .run_executor import RunExecutor

logger = get_logger("rabbitmq_consumer")


class RabbitMQConsumer:
    """RabbitMQ consumer executing zap run jobs"""

    def __init__(self, registry: Optional[ActionRegistry] = None, session_factory=SessionLocal):
        self.host = settings.RABBITMQ_HOST
        self.port = settings.RABBITMQ_PORT
        self.username = settings.RABBITMQ_USERNAME
        self.password = settings.RABBITMQ_PASSWORD
        self.exchange = settings.RABBITMQ_RUN_EXCHANGE
        self.run_queue = settings.RABBITMQ_RUN_QUEUE
        self.routing_key = settings.RABBITMQ_RUN_ROUTING_KEY
        self.max_retries = settings.RUN_MAX_DELIVERY_RETRIES

        self.connection = None
        self.channel = None

        self.registry = registry or create_default_registry()
        self.SessionLocal = session_factory
        # Executors are async; each message runs to completion on this loop
        self._loop = asyncio.new_event_loop()

    def _connect(self) -> bool:
        """Establish connection to RabbitMQ"""
        try:
            if self.connection and not self.connection.is_closed:
                return True

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

            self.channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )
            self.channel.queue_declare(queue=self.run_queue, durable=True)
            self.channel.queue_bind(
                exchange=self.exchange,
                queue=self.run_queue,
                routing_key=self.routing_key
            )

            # Process one run at a time
            self.channel.basic_qos(prefetch_count=1)

            logger.info("Connected to RabbitMQ successfully")
            return True

        except AMQPConnectionError as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
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

    @staticmethod
    def _retry_count(properties) -> int:
        if getattr(properties, 'headers', None):
            return properties.headers.get('x-retry-count', 0)
        return 0

    def _process_run_message(self, ch, method, properties, body):
        """Process one zap run job"""
        db = None
        retry_count = self._retry_count(properties)
        try:
            if retry_count >= self.max_retries:
                logger.error(f"Message exceeded max retries ({self.max_retries}), discarding")
                ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
                return

            message_data = json.loads(body.decode())
            if not isinstance(message_data, dict):
                raise ValueError("Message is not a JSON object")

            run_id = message_data.get("zapRunId")
            if not run_id:
                raise ValueError("Missing required field: zapRunId")

            set_request_context(run_id=run_id, operation="queue_zap_run")
            logger.info(f"Processing zap run {run_id}")

            db = self.SessionLocal()
            result = self._loop.run_until_complete(RunExecutor(db, self.registry).execute(run_id))

            ch.basic_ack(delivery_tag=method.delivery_tag)
            logger.info(f"Zap run {run_id} processed: {result.status}")

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in run message: {e}")
            # Poison message
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except ValueError as e:
            logger.error(f"Invalid run message format: {e}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except RunNotFoundError as e:
            logger.error(f"Dropping run message: {e}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except Exception as e:
            logger.error(f"Error processing run message: {e}")
            if retry_count < self.max_retries:
                logger.warning(f"Requeuing message for retry {retry_count + 1}/{self.max_retries}")
                self._republish_with_retry(ch, method, properties, body, retry_count + 1)
                ch.basic_ack(delivery_tag=method.delivery_tag)  # Ack original message
            else:
                logger.error("Message exceeded max retries, discarding")
                ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        finally:
            if db:
                db.close()
            clear_request_context()

    def _republish_with_retry(self, ch, method, properties, body, retry_count):
        """Republish message with incremented retry count"""
        try:
            new_headers = properties.headers.copy() if getattr(properties, 'headers', None) else {}
            new_headers['x-retry-count'] = retry_count

            new_properties = pika.BasicProperties(
                headers=new_headers,
                delivery_mode=2,  # Persistent
                content_type="application/json"
            )

            ch.basic_publish(
                exchange=self.exchange,
                routing_key=method.routing_key,
                body=body,
                properties=new_properties
            )
            logger.info(f"Message republished with retry count: {retry_count}")

        except Exception as e:
            logger.error(f"Failed to republish message: {e}")

    def start_consuming(self):
        """Start consuming run jobs, reconnecting a bounded number of times"""
        retry_count = 0
        max_retries = 5
        retry_delay = 5

        while retry_count < max_retries:
            try:
                if not self._connect():
                    retry_count += 1
                    logger.error(f"Failed to connect to RabbitMQ (attempt {retry_count}/{max_retries})")
                    if retry_count >= max_retries:
                        logger.error("Maximum connection attempts reached. RabbitMQ consumer will not start.")
                        return
                    time.sleep(retry_delay)
                    continue

                retry_count = 0

                self.channel.basic_consume(
                    queue=self.run_queue,
                    on_message_callback=self._process_run_message
                )

                logger.info("Starting to consume zap runs...")
                self.channel.start_consuming()

            except KeyboardInterrupt:
                logger.info("Stopping consumer...")
                self.channel.stop_consuming()
                self._disconnect()
                break

            except AMQPConnectionError as e:
                retry_count += 1
                logger.error(f"Connection error: {e}")
                self._disconnect()
                if retry_count >= max_retries:
                    logger.error("Maximum connection attempts reached. RabbitMQ consumer stopped.")
                    break
                logger.info(f"Retrying in {retry_delay} seconds... (attempt {retry_count}/{max_retries})")
                time.sleep(retry_delay)

        logger.warning("RabbitMQ consumer stopped")

    def stop_consuming(self):
        """Stop consuming messages"""
        try:
            if self.channel:
                self.channel.stop_consuming()
            self._disconnect()
        except Exception as e:
            logger.error(f"Error stopping consumer: {e}")
        finally:
            self._loop.close()


def start_consumer():
    """Start the RabbitMQ consumer (for CLI usage)"""
    consumer = RabbitMQConsumer()
    try:
        consumer.start_consuming()
    except KeyboardInterrupt:
        logger.info("Consumer stopped by user")
    finally:
        consumer.stop_consuming()
