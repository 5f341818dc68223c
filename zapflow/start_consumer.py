"""
Start the zap run consumer with the environment loaded
"""
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from .core.config import settings
from .core.database import init_db
from .core.logging_config import setup_logging, get_logger
from .services.rabbitmq_consumer import start_consumer


def main():
    setup_logging()
    logger = get_logger("start_consumer")
    logger.info(f"RabbitMQ: {settings.RABBITMQ_HOST}:{settings.RABBITMQ_PORT}, queue {settings.RABBITMQ_RUN_QUEUE}")

    init_db()
    start_consumer()


if __name__ == "__main__":
    main()
