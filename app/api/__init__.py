"""FastAPI routers and dependencies."""

from app.api.deps import get_app_settings, get_factory, get_orchestrator, get_record_store
from app.api.diagnostics import router as diagnostics_router
from app.api.webhook import router as webhook_router

__all__ = [
    "diagnostics_router",
    "get_app_settings",
    "get_factory",
    "get_orchestrator",
    "get_record_store",
    "webhook_router",
]
