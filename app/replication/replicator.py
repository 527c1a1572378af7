"""Record replication.

Turns one template into one replica: sanitize, translate dates, create,
copy content, register the name for dependency resolution.
"""

import logging
from collections.abc import Sequence

from app.interfaces.record_store import BaseRecordStore, Record, RecordStoreError
from app.replication.content import ContentCopier
from app.replication.dates import DateTranslation, translate_date_property
from app.replication.errors import ReplicaCreationError, describe_store_error
from app.replication.models import Epic, FailedTemplate, NameToReplicaMap, PropertyNames, TemplateRecord
from app.replication.sanitizer import build_replica_properties

logger = logging.getLogger(__name__)


class RecordReplicator:
    """Creates replicas of template pages in the destination database.

    Attributes:
        destination_collection_id: The database replicas are created in.
        names: Configured property names.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        destination_collection_id: str,
        names: PropertyNames,
        content_copier: ContentCopier,
    ) -> None:
        self._store = store
        self.destination_collection_id = destination_collection_id
        self.names = names
        self._content_copier = content_copier

    async def replicate(
        self,
        template: TemplateRecord,
        epic: Epic,
        translation: DateTranslation,
        schema: set[str],
        name_map: NameToReplicaMap,
    ) -> Record:
        """Replicate one template.

        A content-copy failure is logged and does not fail the replica.

        Args:
            template: The template to copy.
            epic: The batch's epic, used for the title prefix and relation.
            translation: The batch's date translation.
            schema: Property names of the destination database.
            name_map: Run-wide map the new replica is registered in.

        Returns:
            The created replica.

        Raises:
            ReplicaCreationError: If the replica could not be created.
        """
        properties, template_name = build_replica_properties(
            template.properties, epic, schema, self.names
        )

        date_value = properties.get(self.names.date)
        if date_value and date_value.get("date"):
            properties[self.names.date] = translate_date_property(
                date_value, template.scheduled_date, translation, template.id
            )

        try:
            replica = await self._store.create(
                self.destination_collection_id, properties, icon=template.icon
            )
        except RecordStoreError as e:
            message = describe_store_error(
                e,
                not_found=f"Stories database not found: {self.destination_collection_id}",
                validation=f"Validation error: {e.message}",
                fallback="Failed to create page",
            )
            raise ReplicaCreationError(message) from e

        title = properties[self.names.title]["title"][0]["text"]["content"]
        logger.info(f"Created replica '{title}' ({replica.id}) from template {template.id}")

        try:
            await self._content_copier.copy(template.id, replica.id)
        except Exception as e:
            logger.error(f"Content copy failed for {template.id}: {e}")

        if template_name:
            name_map.register(template_name, replica.id)

        return replica

    async def replicate_all(
        self,
        templates: Sequence[TemplateRecord],
        epic: Epic,
        translation: DateTranslation,
        schema: set[str],
        name_map: NameToReplicaMap,
    ) -> tuple[list[Record], list[FailedTemplate]]:
        """Replicate a batch of templates, one at a time.

        A failed template is recorded and the batch continues.

        Returns:
            ``(replicas, failures)``.
        """
        replicas: list[Record] = []
        failures: list[FailedTemplate] = []

        for template in templates:
            try:
                replicas.append(
                    await self.replicate(template, epic, translation, schema, name_map)
                )
            except ReplicaCreationError as e:
                logger.error(f"Error copying page {template.id}: {e}")
                failures.append(FailedTemplate(template_id=template.id, error=str(e)))
            except Exception as e:
                logger.error(f"Unexpected error copying page {template.id}: {e}", exc_info=True)
                failures.append(FailedTemplate(template_id=template.id, error=f"Unexpected error: {e}"))

        return replicas, failures
