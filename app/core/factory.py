"""Component Factory for strategy instantiation.

The Factory Pattern allows the application to instantiate
different record store implementations at runtime based on
configuration or environment variables.
"""

import logging

from app.core.config import Settings, get_settings
from app.interfaces.record_store import BaseRecordStore
from app.replication.models import PropertyNames
from app.replication.orchestrator import BatchOrchestrator
from app.strategies.record_stores import InMemoryRecordStore, NotionRecordStore

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Factory for creating component instances based on configuration.

    Example:
        ```python
        settings = get_settings()
        factory = ComponentFactory(settings)

        store = factory.get_record_store()
        orchestrator = factory.get_orchestrator()
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the factory with optional settings.

        Args:
            settings: Application settings. If None, uses global settings.
        """
        self._settings = settings or get_settings()
        self._record_store_cache: BaseRecordStore | None = None

    def get_record_store(self, record_store_type: str | None = None) -> BaseRecordStore:
        """Get a record store instance based on the specified type.

        Args:
            record_store_type: The store type to instantiate. If None, uses settings.

        Returns:
            A BaseRecordStore implementation instance.

        Raises:
            ValueError: If the store type is unknown or the token is missing.
        """
        if self._record_store_cache is None or record_store_type is not None:
            record_store_type = record_store_type or self._settings.record_store_type

            logger.info(f"Instantiating record store: {record_store_type}")

            match record_store_type:
                case "notion":
                    if not self._settings.notion_api_token:
                        raise ValueError("NOTION_API_TOKEN is required for the Notion record store")
                    self._record_store_cache = NotionRecordStore(
                        api_token=self._settings.notion_api_token,
                        base_url=self._settings.notion_base_url,
                        notion_version=self._settings.notion_version,
                        timeout=self._settings.notion_timeout,
                        max_retries=self._settings.notion_max_retries,
                    )
                case "memory":
                    self._record_store_cache = InMemoryRecordStore()
                case _:
                    raise ValueError(
                        f"Unknown record store type: {record_store_type}. "
                        f"Valid options: 'notion', 'memory'"
                    )

        return self._record_store_cache

    def get_orchestrator(self, store: BaseRecordStore | None = None) -> BatchOrchestrator:
        """Build a BatchOrchestrator wired to the configured databases.

        Args:
            store: Optional record store. If None, uses get_record_store().

        Returns:
            A BatchOrchestrator instance.
        """
        return BatchOrchestrator(
            store=store or self.get_record_store(),
            template_collection_id=self._settings.product_workflows_db_id,
            destination_collection_id=self._settings.stories_db_id,
            names=PropertyNames.from_settings(self._settings),
            content_max_depth=self._settings.content_copy_max_depth,
        )

    async def aclose(self) -> None:
        """Close the cached record store, if any."""
        if self._record_store_cache is not None:
            await self._record_store_cache.close()
            self._record_store_cache = None
            logger.debug("Component factory record store closed")
