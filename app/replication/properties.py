"""Helpers for reading Notion property value objects."""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

NAME_SOURCES = ("Name", "Title")


def as_utc(value: datetime) -> datetime:
    """Take a naive datetime as UTC; aware values are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_date(value: str) -> datetime:
    """Parse an ISO date or date-time string into an aware datetime.

    Date-only and naive values are taken as UTC.
    """
    return as_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def format_date(value: datetime, with_time: bool = False) -> str:
    """Render a datetime at the granularity of its source value."""
    if with_time:
        return value.isoformat()
    return value.astimezone(timezone.utc).date().isoformat()


def plain_text(value: dict[str, Any] | None) -> str | None:
    """Return the first plain text of a title or rich_text value.

    The title shape is checked before rich_text; the first non-empty
    text wins.
    """
    if not value:
        return None
    for shape in ("title", "rich_text"):
        items = value.get(shape) or []
        if items:
            text = items[0].get("plain_text") or (items[0].get("text") or {}).get("content")
            if text:
                return text
    return None


def derive_name(properties: dict[str, Any], sources: Iterable[str] = NAME_SOURCES) -> str | None:
    """Return the name of a page from its name-bearing properties."""
    for source in sources:
        text = plain_text(properties.get(source))
        if text:
            return text
    return None


def relation_ids(properties: dict[str, Any], names: Iterable[str]) -> list[str]:
    """Collect relation ids across every listed property, in order, without repeats."""
    ids: list[str] = []
    for name in names:
        value = properties.get(name) or {}
        for relation in value.get("relation") or []:
            relation_id = relation.get("id")
            if relation_id and relation_id not in ids:
                ids.append(relation_id)
    return ids


def first_relation_id(value: dict[str, Any] | None) -> str | None:
    """Return the first id of a relation value, if any."""
    relations = (value or {}).get("relation") or []
    if relations and relations[0].get("id"):
        return relations[0]["id"]
    return None


def first_date(properties: dict[str, Any], names: Iterable[str]) -> tuple[str, datetime] | None:
    """Return ``(property_name, start)`` for the first listed property holding a date."""
    for name in names:
        start = ((properties.get(name) or {}).get("date") or {}).get("start")
        if start:
            return name, parse_date(start)
    return None
