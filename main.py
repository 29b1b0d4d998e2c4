import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.database import init_db
from app.core.logging_config import setup_logging
from app.core.queue import QueueClient, QueueConnectionError
from app.api.endpoints import campaigns, health, resumes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    The API holds one queue client for the life of the process. When the
    broker is unreachable the API still starts; launch answers 503 until a
    restart, while stop/status/list keep working off the database.
    """
    # Startup
    setup_logging(settings.LOG_LEVEL, settings.JSON_LOGS, worker_role="api")
    logger.info("Starting up Campaign Pipeline API...")
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized successfully")

    queue = QueueClient()
    try:
        queue.connect()
        queue.declare_queue(settings.SCRAPE_QUEUE)
        app.state.queue = queue
    except QueueConnectionError as e:
        logger.error(f"Queue transport unavailable, campaign launch disabled: {e}")
        app.state.queue = None

    yield

    # Shutdown
    logger.info("Shutting down Campaign Pipeline API...")
    if app.state.queue is not None:
        app.state.queue.close()


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Job campaign pipeline: scrape, match and tailor resumes per posting",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(campaigns.router, prefix=settings.API_V1_STR)
app.include_router(resumes.router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Campaign Pipeline API",
        "version": "1.0.0",
        "status": "healthy"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Enable auto-reload during development
        log_level="info"
    )
