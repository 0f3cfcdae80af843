"""FastAPI application entry point with startup initialisation and logging."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.routers.chat import router as chat_router
from app.routers.health import router as health_router
from app.routers.rate_limit_probe import router as rate_limit_probe_router
from app.services.rate_limiting_service import RateLimitingService


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    root_logger = logging.getLogger("app")
    root_logger.setLevel(logging.INFO)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in ("app.routers", "app.ai", "app.services"):
        logging.getLogger(name).setLevel(logging.INFO)


_configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the AI gateway on startup; on shutdown stop its sweep and unwind queued calls."""
    gateway = RateLimitingService(config=settings)
    app.state.rate_limiting_service = gateway
    if not gateway.start_cleanup():
        logger.info("Periodic gateway cleanup not started (runtime=%s)", settings.app_runtime)
    yield
    await gateway.shutdown()


app = FastAPI(title="Course Tutor AI Gateway", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)
app.include_router(health_router)
app.include_router(rate_limit_probe_router)
