"""FastAPI dependencies for dependency injection.

Provides reusable dependencies for routes including:
- The component factory held on the application state
- The record store and batch orchestrator built from it
"""

import logging

from fastapi import Depends, HTTPException, Request, status

from app.core.config import Settings
from app.core.factory import ComponentFactory
from app.interfaces.record_store import BaseRecordStore
from app.replication.orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)


def get_factory(request: Request) -> ComponentFactory:
    """Dependency returning the application's component factory.

    Args:
        request: The incoming request.

    Returns:
        The factory created at application startup.
    """
    return request.app.state.factory


def get_app_settings(request: Request) -> Settings:
    """Dependency returning the settings the application was created with."""
    return request.app.state.settings


def get_record_store(
    factory: ComponentFactory = Depends(get_factory),
) -> BaseRecordStore:
    """Dependency for the configured record store.

    Raises:
        HTTPException: If the record store cannot be configured.
    """
    try:
        return factory.get_record_store()
    except ValueError as e:
        logger.error(f"Record store is not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Server misconfigured: {e}",
        ) from e


def get_orchestrator(
    factory: ComponentFactory = Depends(get_factory),
    store: BaseRecordStore = Depends(get_record_store),
) -> BatchOrchestrator:
    """Dependency for a batch orchestrator bound to the record store."""
    return factory.get_orchestrator(store)
