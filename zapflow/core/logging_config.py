import os
import sys
import logging
from contextvars import ContextVar
from typing import Dict, Any, Optional
from loguru import logger
import structlog

# Context variables for request tracking
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})


def setup_logging():
    """Setup structured logging with Loguru + Structlog"""

    # Remove default handler
    logger.remove()

    # Determine log level
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    environment = os.environ.get("ENVIRONMENT", "development")

    # Third-party libraries log through the standard logging module
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("pika").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    if environment == "development":
        # Pretty console logging for development
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                   "<level>{level: <8}</level> | "
                   "<cyan>zapflow-service</cyan> | "
                   "<level>{message}</level>",
            level=log_level,
            colorize=True
        )
    else:
        # JSON logging for production
        logger.add(
            sys.stderr,
            format="{message}",
            level=log_level,
            serialize=True
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.JSONRenderer() if environment == "production" else structlog.dev.ConsoleRenderer()
        ],
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    """Get a logger with the given name"""
    return structlog.get_logger(name)


def set_request_context(**context):
    """Set context variables for the current request"""
    current = dict(request_context.get({}))
    current.update(context)
    request_context.set(current)
    structlog.contextvars.bind_contextvars(**context)


def get_request_context() -> Dict[str, Any]:
    """Get current request context"""
    return request_context.get({})


def clear_request_context():
    """Drop all request-scoped context"""
    request_context.set({})
    structlog.contextvars.clear_contextvars()


# Run-specific logging helpers
def log_dispatch(
    zap_id: str,
    source: str,
    accepted: bool,
    run_id: Optional[str] = None,
    **kwargs
):
    """Log a trigger firing at the dispatch gate"""
    logger.info(
        "Zap dispatch",
        zap_id=zap_id,
        source=source,
        accepted=accepted,
        run_id=run_id,
        **kwargs
    )


def log_run_transition(
    run_id: str,
    from_status: Optional[str],
    to_status: str,
    **kwargs
):
    """Log zap run status changes"""
    logger.info(
        "Zap run status change",
        run_id=run_id,
        from_status=from_status,
        to_status=to_status,
        **kwargs
    )


def log_schedule_operation(
    operation: str,
    zap_id: str,
    schedule_id: Optional[str] = None,
    **kwargs
):
    """Log external schedule lifecycle operations"""
    logger.info(
        "Schedule operation",
        operation=operation,
        zap_id=zap_id,
        schedule_id=schedule_id,
        **kwargs
    )
