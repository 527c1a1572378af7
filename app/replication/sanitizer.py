"""Property sanitization for replica creation.

Pure functions over a template's property map and the destination
schema; nothing here talks to the record store.
"""

import logging
from typing import Any

from app.replication.models import Epic, PropertyNames
from app.replication.properties import derive_name

logger = logging.getLogger(__name__)

FALLBACK_TASK_NAME = "Workflow Task"

# Computed types the store rejects on create
READ_ONLY_TYPES = frozenset(
    {
        "formula",
        "rollup",
        "created_time",
        "created_by",
        "last_edited_time",
        "last_edited_by",
        "unique_id",
        "button",
        "verification",
    }
)


def clean_properties(
    properties: dict[str, Any],
    allowed: set[str],
    names: PropertyNames,
) -> dict[str, Any]:
    """Filter a template's properties down to what the destination accepts.

    Rules:
    - empty values are dropped;
    - the template filter property is always dropped;
    - name-bearing properties are kept regardless of schema, for title
      derivation;
    - dependency properties are dropped, they are rewritten later;
    - read-only computed types are dropped;
    - anything else outside ``allowed`` is dropped (no filtering when
      ``allowed`` is empty);
    - people values are reduced to bare user ids.

    Args:
        properties: The template's property map.
        allowed: Property names of the destination database.
        names: Configured property names.

    Returns:
        A new property map.
    """
    cleaned: dict[str, Any] = {}
    dependency_properties = names.dependency_properties

    for key, value in properties.items():
        if not value or not isinstance(value, dict):
            continue

        if key == names.template_filter:
            logger.debug(f"Skipping property '{key}' - only used to filter templates")
            continue

        if key in dependency_properties:
            logger.debug(f"Skipping property '{key}' - dependencies are resolved after creation")
            continue

        if _property_type(value) in READ_ONLY_TYPES:
            logger.debug(f"Skipping property '{key}' - read-only {_property_type(value)} value")
            continue

        if allowed and key not in allowed and key not in names.name_sources:
            logger.info(f"Skipping property '{key}' - not found in target database schema")
            continue

        if isinstance(value.get("people"), list):
            cleaned[key] = {"people": [{"id": person["id"]} for person in value["people"] if person.get("id")]}
        else:
            cleaned[key] = value

    return cleaned


def compose_title(epic_name: str, template_name: str | None) -> str:
    """Return ``"<epic>: <template>"``, or the fallback task title."""
    return f"{epic_name}: {template_name or FALLBACK_TASK_NAME}"


def build_replica_properties(
    properties: dict[str, Any],
    epic: Epic,
    allowed: set[str],
    names: PropertyNames,
) -> tuple[dict[str, Any], str | None]:
    """Produce the property map for a new replica.

    The name-bearing source properties are consumed into the destination
    title, and the replica is related to its epic.

    Args:
        properties: The template's property map.
        epic: The batch's epic.
        allowed: Property names of the destination database.
        names: Configured property names.

    Returns:
        ``(properties, template_name)``; the name is None when none could
        be derived.
    """
    cleaned = clean_properties(properties, allowed, names)
    template_name = derive_name(cleaned, names.name_sources)

    for source in names.name_sources:
        cleaned.pop(source, None)

    title = compose_title(epic.name, template_name)
    if template_name is None:
        logger.warning(f"No template name found; using fallback title '{title}'")

    cleaned[names.title] = {"title": [{"type": "text", "text": {"content": title}}]}
    cleaned[names.epic_relation] = {"relation": [{"id": epic.id}]}
    return cleaned, template_name


def _property_type(value: dict[str, Any]) -> str | None:
    declared = value.get("type")
    if declared:
        return declared
    return next((key for key in value if key in READ_ONLY_TYPES), None)
