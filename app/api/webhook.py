"""Webhook API routes.

Receives Notion automation calls and runs the selected workflows as
batches of one replication run.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from app.api.deps import get_orchestrator
from app.api.payload import extract_selection
from app.api.schemas import ErrorResponse, WebhookResponse
from app.replication.models import BatchRequest
from app.replication.orchestrator import BatchOrchestrator
from app.replication.properties import parse_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post(
    "/notion",
    response_model=WebhookResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def notion_webhook(
    body: dict[str, Any] = Body(...),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    """Replicate the template pages of every selected workflow.

    The body either carries explicit keys (``targetDate``, ``workflows``,
    ``batchEpic``/``skuEpic``/``marketEpic``) or the triggering page's
    properties under ``data.properties``.

    Args:
        body: The raw webhook payload.
        orchestrator: Batch orchestrator.

    Returns:
        The per-workflow results of the run.
    """
    logger.info("Webhook received")

    selection = extract_selection(body)

    missing = selection.missing_epics()
    if missing:
        logger.warning(f"Missing epic relations for workflows: {missing}")
        return _bad_request(
            "Missing epic relations",
            "MISSING_EPIC_RELATIONS",
            {
                "missing_epics": missing,
                "received_payload": body,
                "suggestion": "Make sure the Batch Epic, SKU Epic and Market Epic relation "
                "fields are filled for the selected workflows",
            },
        )

    if not selection.workflows:
        logger.warning("No workflows selected")
        return _bad_request(
            "No workflows selected",
            "NO_WORKFLOWS",
            {
                "received_payload": body,
                "suggestion": "Select at least one workflow in the Workflows field",
            },
        )

    try:
        target_date = parse_date(selection.target_date) if selection.target_date else None
    except (ValueError, TypeError, AttributeError):
        logger.warning(f"Invalid target date in webhook payload: {selection.target_date}")
        return _bad_request(
            f"Invalid target date: {selection.target_date}",
            "INVALID_TARGET_DATE",
            {"received_payload": body},
        )

    batches = [
        BatchRequest(
            epic_id=selection.epic_for(workflow),
            template_filter=workflow,
            label=workflow,
        )
        for workflow in selection.workflows
    ]

    try:
        summary = await orchestrator.run(batches, target_date=target_date)
    except Exception as e:
        logger.error(f"Workflow processing failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                detail="Workflow processing failed",
                error_code="WORKFLOW_PROCESSING_FAILED",
                extra={"details": str(e), "workflows": selection.workflows},
            ).model_dump(),
        )

    return WebhookResponse(results=summary)


def _bad_request(detail: str, error_code: str, extra: dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(detail=detail, error_code=error_code, extra=extra).model_dump(),
    )
