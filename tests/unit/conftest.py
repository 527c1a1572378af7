"""Shared fixtures for unit tests."""

from typing import Any

import pytest

from app.replication.models import PropertyNames
from app.strategies.record_stores import InMemoryRecordStore

TEMPLATES_DB = "templates-db"
STORIES_DB = "stories-db"

STORIES_SCHEMA = {"Title", "Date", "Epic", "Blocking", "Blocked by", "Status", "Owner"}


class Props:
    """Builders for Notion property value objects."""

    @staticmethod
    def title(text: str) -> dict[str, Any]:
        return {"type": "title", "title": [{"plain_text": text, "text": {"content": text}}]}

    @staticmethod
    def rich_text(text: str) -> dict[str, Any]:
        return {"type": "rich_text", "rich_text": [{"plain_text": text, "text": {"content": text}}]}

    @staticmethod
    def date(start: str, end: str | None = None) -> dict[str, Any]:
        return {"type": "date", "date": {"start": start, "end": end}}

    @staticmethod
    def relation(*ids: str) -> dict[str, Any]:
        return {"type": "relation", "relation": [{"id": i} for i in ids]}

    @staticmethod
    def multi_select(*options: str) -> dict[str, Any]:
        return {"type": "multi_select", "multi_select": [{"name": o} for o in options]}

    @staticmethod
    def select(option: str) -> dict[str, Any]:
        return {"type": "select", "select": {"name": option}}


@pytest.fixture
def props():
    """Property value builders."""
    return Props


@pytest.fixture
def names():
    """Default property names."""
    return PropertyNames()


@pytest.fixture
def store():
    """An empty in-memory store with the template and stories databases."""
    store = InMemoryRecordStore()
    store.add_collection(TEMPLATES_DB)
    store.add_collection(STORIES_DB, STORIES_SCHEMA)
    return store


@pytest.fixture
def add_template(store):
    """Insert a template page into the templates database."""

    def _add(
        name: str,
        start: str | None = None,
        end: str | None = None,
        workflows: tuple[str, ...] = ("New SKU",),
        record_id: str | None = None,
        **extra: Any,
    ):
        properties: dict[str, Any] = {
            "Name": Props.title(name),
            "Workflow": Props.multi_select(*workflows),
        }
        if start:
            properties["Date"] = Props.date(start, end)
        properties.update(extra)
        return store.add_record(TEMPLATES_DB, properties, record_id=record_id)

    return _add


@pytest.fixture
def add_epic(store):
    """Insert a free-standing epic page."""

    def _add(name: str, record_id: str, target_date: str | None = None):
        properties: dict[str, Any] = {"Name": Props.title(name)}
        if target_date:
            properties["Target date"] = Props.date(target_date)
        return store.add_record(None, properties, record_id=record_id)

    return _add
