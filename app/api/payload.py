"""Webhook payload extraction.

Notion automations send either explicit keys in the body or the
triggering page's properties under ``data.properties``. Several
property names are accepted per concept; the first one present wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from app.replication.properties import first_relation_id

logger = logging.getLogger(__name__)

WORKFLOW_KINDS = ("batch", "sku", "market")

TARGET_DATE_KEYS = ("targetDate", "fulfillBy")
TARGET_DATE_PROPERTIES = (
    "Target date",
    "Target Date",
    "Fulfill By",
    "Fulfill by",
    "Due Date",
    "Due",
    "Deadline",
)

WORKFLOW_KEYS = ("workflows", "Workflows")
WORKFLOW_PROPERTIES = ("Workflows", "workflows", "Workflow")

EPIC_KEYS: dict[str, tuple[str, ...]] = {
    "batch": ("batchEpic", "Batch Epic"),
    "sku": ("skuEpic", "SKU Epic"),
    "market": ("marketEpic", "Market Epic"),
}
EPIC_PROPERTIES: dict[str, tuple[str, ...]] = {
    "batch": ("📚 Batch Epic", "Batch Epic", "batchEpic", "Batch"),
    "sku": ("📚 SKU Epic", "SKU Epic", "skuEpic", "SKU"),
    "market": ("📚 Market Epic", "Market Epic", "marketEpic", "Market"),
}


@dataclass
class WebhookSelection:
    """What a webhook call asks to replicate."""

    target_date: str | None = None
    workflows: list[str] = field(default_factory=list)
    epic_ids: dict[str, str] = field(default_factory=dict)

    def epic_for(self, workflow: str) -> str | None:
        kind = workflow_kind(workflow)
        return self.epic_ids.get(kind) if kind else None

    def missing_epics(self) -> list[str]:
        return [w for w in self.workflows if not self.epic_for(w)]


def workflow_kind(workflow: str) -> str | None:
    """Map a workflow option ("New batch", "SKU", ...) to its kind."""
    normalized = workflow.strip().lower()
    if normalized.startswith("new "):
        normalized = normalized[4:].strip()
    return normalized if normalized in WORKFLOW_KINDS else None


def extract_selection(body: dict[str, Any]) -> WebhookSelection:
    """Read target date, selected workflows and epic ids from a webhook body."""
    selection = WebhookSelection(
        target_date=_first_value(body, TARGET_DATE_KEYS),
        workflows=_as_list(_first_value(body, WORKFLOW_KEYS)),
        epic_ids={
            kind: epic_id
            for kind, keys in EPIC_KEYS.items()
            if (epic_id := _first_value(body, keys))
        },
    )

    properties = (body.get("data") or {}).get("properties")
    if isinstance(properties, dict):
        if not selection.target_date:
            selection.target_date = _date_from_properties(properties)
            if selection.target_date:
                logger.info(f"Found target date in triggering page properties: {selection.target_date}")

        if not selection.workflows:
            selection.workflows = _workflows_from_properties(properties)
            if selection.workflows:
                logger.info(f"Found selected workflows: {selection.workflows}")

        for kind, names in EPIC_PROPERTIES.items():
            if kind in selection.epic_ids:
                continue
            for name in names:
                epic_id = first_relation_id(properties.get(name))
                if epic_id:
                    selection.epic_ids[kind] = epic_id
                    break

    logger.info(
        f"Webhook: {len(selection.workflows)} workflows, "
        f"target={selection.target_date or 'none'}, "
        f"epics=[{', '.join(selection.epic_ids.values())}]"
    )
    return selection


def _first_value(body: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = body.get(key)
        if value:
            return value
    return None


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value if item]


def _date_from_properties(properties: dict[str, Any]) -> str | None:
    for name in TARGET_DATE_PROPERTIES:
        start = ((properties.get(name) or {}).get("date") or {}).get("start")
        if start:
            return start
    return None


def _workflows_from_properties(properties: dict[str, Any]) -> list[str]:
    for name in WORKFLOW_PROPERTIES:
        prop = properties.get(name)
        if not prop:
            continue
        if prop.get("multi_select"):
            return [option["name"] for option in prop["multi_select"] if option.get("name")]
        select = prop.get("select") or {}
        if select.get("name"):
            return [select["name"]]
    return []
