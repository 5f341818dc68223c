from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings - Non-sensitive configuration only
    Secrets (JWT secret, QStash token, Brevo key, RabbitMQ credentials) are read from the environment
    """

    # Basic service configuration
    PROJECT_NAME: str = "Zapflow Service"
    API_PREFIX: str = "/api"
    SERVICE_NAME: str = "zapflow-service"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Public base URL the scheduler and queue call back into
    APP_URL: str = "http://localhost:3001"

    # Run transport: "inline" executes in-process, "rabbitmq" publishes to the run exchange
    RUN_TRANSPORT: str = "inline"

    # Scheduler backend: "qstash" or "local" (APScheduler)
    SCHEDULER_BACKEND: str = "local"
    QSTASH_URL: str = "https://qstash.upstash.io"
    QSTASH_TOKEN: Optional[str] = None

    # RabbitMQ
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USERNAME: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_RUN_EXCHANGE: str = "zapflow-exchange"
    RABBITMQ_RUN_QUEUE: str = "zap_run.execute"
    RABBITMQ_RUN_ROUTING_KEY: str = "zap_run.execute"
    RUN_MAX_DELIVERY_RETRIES: int = 3

    # Auth (secret comes from environment)
    JWT_SECRET: str = "secret"
    JWT_ALGORITHM: str = "HS256"

    # Outbound action calls
    ACTION_HTTP_TIMEOUT_SECONDS: float = 30.0

    # Email (Brevo)
    BREVO_API_KEY: Optional[str] = None
    BREVO_FROM_EMAIL: str = "noreply@zapflow.dev"
    BREVO_FROM_NAME: str = "Zapflow"

    # Run history
    DEFAULT_RUNS_LIMIT: int = 50
    MAX_RUNS_LIMIT: int = 200

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables


settings = Settings()
