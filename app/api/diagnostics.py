"""Diagnostic API routes: liveness, recent logs and epic lookup."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.deps import get_app_settings, get_record_store
from app.api.schemas import DebugResponse, EpicCheckResponse, EpicDetails, HealthResponse
from app.core.config import Settings
from app.core.logging_config import get_recent_messages
from app.interfaces.record_store import BaseRecordStore
from app.replication.errors import ReplicationError
from app.replication.loaders import load_epic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["diagnostics"])

RECENT_MESSAGE_LIMIT = 10


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint for load balancers and monitoring."""
    return HealthResponse()


@router.get("/debug", response_model=DebugResponse)
async def debug_info(settings: Settings = Depends(get_app_settings)) -> DebugResponse:
    """Show the most recent log messages and the API token status."""
    token = settings.notion_api_token or ""
    return DebugResponse(
        timestamp=datetime.now(timezone.utc),
        api_key="Set" if token else "Missing",
        api_key_format=settings.api_key_format,
        api_key_length=len(token),
        recent_messages=get_recent_messages(RECENT_MESSAGE_LIMIT),
    )


@router.get("/test-epic/{epic_id}", response_model=EpicCheckResponse)
async def test_epic(
    epic_id: str,
    store: BaseRecordStore = Depends(get_record_store),
):
    """Look up an epic page and report its name and anchor date.

    Args:
        epic_id: The epic page id.
        store: The record store.

    Returns:
        The epic details, or a 500 response describing the failure.
    """
    logger.info(f"Testing epic lookup for: {epic_id}")
    try:
        epic = await load_epic(store, epic_id)
    except ReplicationError as e:
        logger.error(f"Epic lookup failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=EpicCheckResponse(
                success=False,
                error=str(e),
                timestamp=datetime.now(timezone.utc),
            ).model_dump(mode="json"),
        )

    return EpicCheckResponse(
        success=True,
        epic_details=EpicDetails(id=epic.id, name=epic.name, anchor_date=epic.anchor_date),
        timestamp=datetime.now(timezone.utc),
    )
