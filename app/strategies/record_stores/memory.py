"""In-process record store.

Holds collections, records and block trees in dictionaries. Useful for
dry runs against seeded data and for exercising the replication engine
without network access. Nothing is persisted.
"""

import copy
import logging
import uuid
from typing import Any

from app.interfaces.record_store import BaseRecordStore, Record, RecordStoreError

logger = logging.getLogger(__name__)


class InMemoryRecordStore(BaseRecordStore):
    """Record store backed by plain dictionaries.

    Mirrors the parts of the Notion contract the engine relies on:
    multi_select/relation ``contains`` filters, date sorts, schema-checked
    creates and block trees whose ``has_children`` flag is derived from
    the stored tree.

    Attributes:
        calls: Log of ``(operation, target_id)`` tuples, in call order.
    """

    def __init__(self) -> None:
        self._schemas: dict[str, set[str]] = {}
        self._members: dict[str, list[str]] = {}
        self._records: dict[str, Record] = {}
        self._blocks: dict[str, dict[str, Any]] = {}
        self._children: dict[str, list[str]] = {}
        self.calls: list[tuple[str, str]] = []

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_collection(self, collection_id: str, schema: set[str] | None = None) -> None:
        """Register a collection and its property names."""
        self._schemas[collection_id] = set(schema or ())
        self._members.setdefault(collection_id, [])

    def add_record(
        self,
        collection_id: str | None,
        properties: dict[str, Any],
        icon: dict[str, Any] | None = None,
        record_id: str | None = None,
    ) -> Record:
        """Insert a record directly, bypassing schema checks.

        A ``collection_id`` of None stores a free-standing page (e.g. an epic).
        """
        record = Record(
            id=record_id or str(uuid.uuid4()),
            properties=copy.deepcopy(properties),
            icon=copy.deepcopy(icon),
        )
        self._records[record.id] = record
        if collection_id is not None:
            self._members.setdefault(collection_id, []).append(record.id)
        return record

    def add_blocks(self, parent_id: str, blocks: list[dict[str, Any]]) -> list[str]:
        """Insert blocks under a record or block and return their ids."""
        return self._store_blocks(parent_id, blocks)

    def get_record(self, record_id: str) -> Record:
        """Return a stored record without logging a call."""
        return self._records[record_id]

    def records_in(self, collection_id: str) -> list[Record]:
        """Return the records of a collection in insertion order."""
        return [self._records[rid] for rid in self._members.get(collection_id, [])]

    def block_tree(self, parent_id: str) -> list[dict[str, Any]]:
        """Return the nested block tree under a parent, for inspection."""
        tree = []
        for block_id in self._children.get(parent_id, []):
            block = copy.deepcopy(self._blocks[block_id])
            block["children"] = self.block_tree(block_id)
            tree.append(block)
        return tree

    # ------------------------------------------------------------------
    # BaseRecordStore
    # ------------------------------------------------------------------

    async def retrieve(self, record_id: str) -> Record:
        self.calls.append(("retrieve", record_id))
        record = self._records.get(record_id)
        if record is None:
            raise RecordStoreError("not_found", f"Could not find page with ID: {record_id}", 404)
        return copy.deepcopy(record)

    async def query(
        self,
        collection_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> list[Record]:
        self.calls.append(("query", collection_id))
        if collection_id not in self._members:
            raise RecordStoreError("not_found", f"Could not find database with ID: {collection_id}", 404)

        records = [self._records[rid] for rid in self._members[collection_id]]
        if filter:
            records = [r for r in records if self._matches(r, filter)]
        for sort in reversed(sorts or []):
            records = self._sorted(records, sort)
        return [copy.deepcopy(r) for r in records]

    async def create(
        self,
        collection_id: str,
        properties: dict[str, Any],
        icon: dict[str, Any] | None = None,
    ) -> Record:
        self.calls.append(("create", collection_id))
        if collection_id not in self._schemas:
            raise RecordStoreError("not_found", f"Could not find database with ID: {collection_id}", 404)

        schema = self._schemas[collection_id]
        unknown = [name for name in properties if schema and name not in schema]
        if unknown:
            raise RecordStoreError(
                "validation_error",
                f"{', '.join(unknown)} is not a property that exists.",
                400,
            )
        return self.add_record(collection_id, properties, icon=icon)

    async def update(self, record_id: str, properties: dict[str, Any]) -> Record:
        self.calls.append(("update", record_id))
        record = self._records.get(record_id)
        if record is None:
            raise RecordStoreError("not_found", f"Could not find page with ID: {record_id}", 404)

        merged = {**record.properties, **copy.deepcopy(properties)}
        updated = Record(id=record.id, properties=merged, icon=record.icon)
        self._records[record_id] = updated
        return copy.deepcopy(updated)

    async def list_child_blocks(self, block_id: str) -> list[dict[str, Any]]:
        self.calls.append(("list_child_blocks", block_id))
        if block_id not in self._records and block_id not in self._blocks:
            raise RecordStoreError("not_found", f"Could not find block with ID: {block_id}", 404)
        return [self._block_view(child_id) for child_id in self._children.get(block_id, [])]

    async def append_child_blocks(self, block_id: str, children: list[dict[str, Any]]) -> None:
        self.calls.append(("append_child_blocks", block_id))
        if block_id not in self._records and block_id not in self._blocks:
            raise RecordStoreError("not_found", f"Could not find block with ID: {block_id}", 404)
        self._store_blocks(block_id, children)

    async def get_schema(self, collection_id: str) -> set[str]:
        self.calls.append(("get_schema", collection_id))
        if collection_id not in self._schemas:
            raise RecordStoreError("not_found", f"Could not find database with ID: {collection_id}", 404)
        return set(self._schemas[collection_id])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _store_blocks(self, parent_id: str, blocks: list[dict[str, Any]]) -> list[str]:
        ids = []
        for block in blocks:
            stored = copy.deepcopy(block)
            stored["id"] = str(uuid.uuid4())
            stored.pop("has_children", None)
            self._blocks[stored["id"]] = stored
            self._children.setdefault(parent_id, []).append(stored["id"])
            ids.append(stored["id"])
        return ids

    def _block_view(self, block_id: str) -> dict[str, Any]:
        block = copy.deepcopy(self._blocks[block_id])
        block["has_children"] = bool(self._children.get(block_id))
        return block

    def _matches(self, record: Record, filter: dict[str, Any]) -> bool:
        if "and" in filter:
            return all(self._matches(record, f) for f in filter["and"])
        if "or" in filter:
            return any(self._matches(record, f) for f in filter["or"])

        prop = record.properties.get(filter.get("property", ""), {}) or {}
        if "multi_select" in filter:
            wanted = filter["multi_select"].get("contains")
            return any(opt.get("name") == wanted for opt in prop.get("multi_select") or [])
        if "relation" in filter:
            wanted = filter["relation"].get("contains")
            return any(rel.get("id") == wanted for rel in prop.get("relation") or [])

        logger.warning(f"Unsupported filter ignored by in-memory store: {filter}")
        return True

    def _sorted(self, records: list[Record], sort: dict[str, Any]) -> list[Record]:
        name = sort.get("property", "")
        descending = sort.get("direction") == "descending"

        def key(record: Record) -> tuple[bool, str]:
            start = ((record.properties.get(name) or {}).get("date") or {}).get("start")
            return (start is None, start or "")

        # Undated records always sort last, as Notion does
        dated = [r for r in records if not key(r)[0]]
        undated = [r for r in records if key(r)[0]]
        return sorted(dated, key=key, reverse=descending) + undated
