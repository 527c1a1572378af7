"""Abstract base class for record store strategies.

The Strategy Pattern allows the replication engine to run against the
Notion API or an in-process store interchangeably.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Record:
    """A page-like record held by the store.

    Attributes:
        id: Store-assigned identifier.
        properties: Schema-shaped property map (Notion property value objects).
        icon: Optional icon/emoji decoration.
    """

    id: str
    properties: dict[str, Any] = field(default_factory=dict)
    icon: dict[str, Any] | None = None


class RecordStoreError(Exception):
    """Raised when a record store call fails.

    Attributes:
        kind: Coarse error category the engine switches on: one of
            ``unauthorized``, ``not_found``, ``validation_error``,
            ``rate_limited`` or ``other``.
        status_code: HTTP status of the failed call, when there was one.
    """

    KINDS = frozenset({"unauthorized", "not_found", "validation_error", "rate_limited", "other"})

    def __init__(self, kind: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind if kind in self.KINDS else "other"
        self.message = message
        self.status_code = status_code


class BaseRecordStore(ABC):
    """Abstract base class for record store strategies.

    Every call is a single request/response; implementations raise
    RecordStoreError on failure and never return partial results.

    Example:
        ```python
        class NotionRecordStore(BaseRecordStore):
            async def retrieve(self, record_id: str) -> Record:
                # GET /pages/{record_id}
                pass
        ```
    """

    @abstractmethod
    async def retrieve(self, record_id: str) -> Record:
        """Fetch a single record.

        Args:
            record_id: Identifier of the record.

        Returns:
            The record.

        Raises:
            RecordStoreError: ``not_found`` if the record does not exist.
        """
        ...

    @abstractmethod
    async def query(
        self,
        collection_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> list[Record]:
        """Return every record of a collection matching the filter, in order.

        Args:
            collection_id: The collection (database) to query.
            filter: Optional store filter object.
            sorts: Optional list of sort descriptors.

        Returns:
            The matching records.
        """
        ...

    @abstractmethod
    async def create(
        self,
        collection_id: str,
        properties: dict[str, Any],
        icon: dict[str, Any] | None = None,
    ) -> Record:
        """Create a record in a collection.

        Args:
            collection_id: Destination collection.
            properties: Property values for the new record.
            icon: Optional icon to attach.

        Returns:
            The created record with its assigned id.
        """
        ...

    @abstractmethod
    async def update(self, record_id: str, properties: dict[str, Any]) -> Record:
        """Update properties of an existing record.

        Args:
            record_id: Record to update.
            properties: Property values to set.

        Returns:
            The updated record.
        """
        ...

    @abstractmethod
    async def list_child_blocks(self, block_id: str) -> list[dict[str, Any]]:
        """Return the direct child blocks of a record or block, in order.

        Args:
            block_id: Record id or block id.

        Returns:
            The child blocks.
        """
        ...

    @abstractmethod
    async def append_child_blocks(self, block_id: str, children: list[dict[str, Any]]) -> None:
        """Append blocks under a record or block.

        Args:
            block_id: Record id or block id to append under.
            children: Blocks to append, without store-managed metadata.
        """
        ...

    @abstractmethod
    async def get_schema(self, collection_id: str) -> set[str]:
        """Return the property names defined by a collection.

        Args:
            collection_id: The collection to inspect.

        Returns:
            A set of property names.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None
