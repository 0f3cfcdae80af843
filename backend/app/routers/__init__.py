from app.routers.chat import router as chat_router
from app.routers.health import router as health_router
from app.routers.rate_limit_probe import router as rate_limit_probe_router

__all__ = [
    "chat_router",
    "health_router",
    "rate_limit_probe_router",
]
