"""Loading of epics and template pages from the record store."""

import logging
from typing import Any

from app.interfaces.record_store import BaseRecordStore, Record, RecordStoreError
from app.replication.errors import (
    ConfigurationError,
    EpicLookupError,
    TemplateQueryError,
    describe_store_error,
)
from app.replication.models import Epic, PropertyNames, ScheduledDate, TemplateRecord
from app.replication.properties import derive_name, first_date

logger = logging.getLogger(__name__)

UNNAMED_EPIC = "Unnamed Epic"

EPIC_NAME_PROPERTIES = ("Name", "Epic Name", "Title", "Page")

EPIC_DATE_PROPERTIES = (
    "Target date",
    "Target Date",
    "Fulfill By",
    "Fulfill by",
    "Due Date",
    "Due",
    "Deadline",
    "End Date",
    "Completion Date",
)


async def load_epic(store: BaseRecordStore, epic_id: str | None) -> Epic:
    """Fetch an epic page and read its name and anchor date.

    Args:
        store: The record store.
        epic_id: The epic page id.

    Returns:
        The epic.

    Raises:
        ConfigurationError: If no epic id was given.
        EpicLookupError: If the epic page could not be retrieved.
    """
    if not epic_id or not isinstance(epic_id, str):
        raise ConfigurationError(f"Invalid epic ID: {epic_id}")

    logger.info(f"Retrieving epic details for ID: {epic_id}")

    try:
        page = await store.retrieve(epic_id)
    except RecordStoreError as e:
        logger.error(f"Error getting epic details: {e.message}")
        raise EpicLookupError(
            describe_store_error(
                e,
                not_found=f"Epic page not found. Please check the epic ID: {epic_id}",
                validation=f"Invalid epic ID format: {epic_id}",
                fallback="Failed to get epic details",
            )
        ) from e

    return epic_from_record(page)


def epic_from_record(page: Record) -> Epic:
    """Read an epic's name and anchor date from its page."""
    name = derive_name(page.properties, EPIC_NAME_PROPERTIES)
    if name is None:
        logger.info(
            f"Epic name not found, using fallback. Available properties: {list(page.properties)}"
        )
        name = UNNAMED_EPIC

    anchor = first_date(page.properties, EPIC_DATE_PROPERTIES)
    if anchor is None:
        logger.info(f"No target date property found on epic {page.id}")
        anchor_date = None
    else:
        prop_name, anchor_date = anchor
        logger.info(f"Found epic target date from {prop_name}: {anchor_date.date().isoformat()}")

    return Epic(id=page.id, name=name, anchor_date=anchor_date)


def template_from_record(page: Record, names: PropertyNames) -> TemplateRecord:
    """Build a TemplateRecord from a template page."""
    return TemplateRecord(
        id=page.id,
        name=derive_name(page.properties, names.name_sources),
        scheduled_date=ScheduledDate.from_property(page.properties.get(names.date)),
        icon=page.icon,
        properties=page.properties,
    )


async def load_templates(
    store: BaseRecordStore,
    collection_id: str | None,
    template_filter: str | None,
    names: PropertyNames,
) -> list[TemplateRecord]:
    """Query the template database, optionally filtered by workflow option.

    Args:
        store: The record store.
        collection_id: The template database id.
        template_filter: Multi-select option to filter on; None selects all.
        names: Configured property names.

    Returns:
        The templates, ordered by date ascending.

    Raises:
        ConfigurationError: If the template database id is missing.
        TemplateQueryError: If the query failed.
    """
    if not collection_id:
        raise ConfigurationError("PRODUCT_WORKFLOWS_DB_ID is not configured")

    query_filter: dict[str, Any] | None = None
    if template_filter:
        query_filter = {
            "property": names.template_filter,
            "multi_select": {"contains": template_filter},
        }
        logger.info(f"Filtering template pages by workflow type: {template_filter}")

    try:
        pages = await store.query(
            collection_id,
            filter=query_filter,
            sorts=[{"property": names.date, "direction": "ascending"}],
        )
    except RecordStoreError as e:
        logger.error(f"Error getting template pages: {e.message}")
        invalid_filter = (
            f"Invalid filter for workflow type: {template_filter}. "
            f"Check if '{names.template_filter}' property exists in your database."
            if "filter" in e.message.lower()
            else None
        )
        raise TemplateQueryError(
            describe_store_error(
                e,
                not_found=f"Database not found. Please check PRODUCT_WORKFLOWS_DB_ID: {collection_id}",
                validation=invalid_filter,
                fallback="Failed to get workflow pages",
            )
        ) from e

    templates = [template_from_record(page, names) for page in pages]
    logger.info(f"Loaded {len(templates)} template page(s)")
    return templates
