"""
DEUCE League Standings API Server

FastAPI server that records completed matches and serves ranked division standings.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from deuce.api.routes import router, limiter as routes_limiter
from deuce.database import db
from deuce.services.recalc_queue import get_recalculation_queue
from deuce.services.standings_service import register_recalculation_callbacks

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up DEUCE League Standings API...")

    # Initialize database (create tables if they don't exist)
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - allow app to start so the health check stays reachable

    # Register recalculation callbacks (must be done before starting worker)
    try:
        register_recalculation_callbacks()
        logger.info("Standings recalculation callbacks registered")
    except Exception as e:
        logger.error(f"Failed to register recalculation callbacks: {e}", exc_info=True)

    # Start recalculation queue worker
    try:
        queue = get_recalculation_queue()
        async with db.AsyncSessionLocal() as session:
            await queue.recover_interrupted_jobs(session)
        queue.start_background_worker()
        logger.info("Standings recalculation queue worker started")
    except Exception as e:
        logger.error(f"Failed to start recalculation queue worker: {e}", exc_info=True)

    yield  # App is running

    # Shutdown
    logger.info("Shutting down DEUCE League Standings API...")

    try:
        queue = get_recalculation_queue()
        queue.stop_background_worker()
        logger.info("Standings recalculation queue worker stopped")
    except Exception as e:
        logger.error(f"Error stopping recalculation queue worker: {e}", exc_info=True)


app = FastAPI(
    title="DEUCE League Standings API",
    description="API for recording match results and retrieving ranked division standings",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
