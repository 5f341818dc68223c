from contextlib import asynccontextmanager
from fastapi import FastAPI
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from .core.config import settings
from .core.database import init_db
from .core.logging_config import setup_logging, get_logger
from .api import hooks, cron, worker, schedule, zaps, runs, catalog, connections
from .services.actions.registry import create_default_registry
from .services.run_queue import build_run_queue
from .services.scheduler_adapter import build_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = get_logger("main")
    logger.info("Starting Zapflow Service", version="1.0.0")

    init_db()

    registry = create_default_registry()
    app.state.action_registry = registry
    app.state.run_queue = build_run_queue(registry)
    app.state.scheduler = build_scheduler()
    app.state.scheduler.start()
    logger.info(
        f"Run transport: {settings.RUN_TRANSPORT}, scheduler backend: {settings.SCHEDULER_BACKEND}"
    )

    yield

    app.state.scheduler.shutdown()
    app.state.run_queue.close()
    logger.info("Shutting down Zapflow Service")


def create_app() -> FastAPI:
    # Setup logging first
    setup_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Zap trigger dispatch, run execution and schedule management service",
        version="1.0.0",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        lifespan=lifespan
    )

    # Trigger entry points
    app.include_router(hooks.router, prefix=f"{settings.API_PREFIX}/hooks", tags=["hooks"])
    app.include_router(cron.router, prefix=f"{settings.API_PREFIX}/cron", tags=["cron"])
    app.include_router(worker.router, prefix=f"{settings.API_PREFIX}/worker", tags=["worker"])

    app.include_router(schedule.router, prefix=f"{settings.API_PREFIX}/schedule", tags=["schedule"])
    app.include_router(zaps.router, prefix=f"{settings.API_PREFIX}/zap", tags=["zaps"])
    app.include_router(runs.router, prefix=f"{settings.API_PREFIX}/runs", tags=["runs"])
    app.include_router(catalog.router, prefix=settings.API_PREFIX, tags=["catalog"])
    app.include_router(connections.router, prefix=f"{settings.API_PREFIX}/connections", tags=["connections"])

    @app.get("/")
    async def root():
        return {
            "message": "Zapflow Service",
            "version": "1.0.0",
            "status": "running",
            "docs_url": f"{settings.API_PREFIX}/docs"
        }

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": settings.SERVICE_NAME,
            "version": "1.0.0"
        }

    return app


app = create_app()


def run():
    import uvicorn
    uvicorn.run(
        "zapflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development"
    )


if __name__ == "__main__":
    run()
