"""Dependency resolution.

After every replica of a run exists, the blocking / blocked-by relations
of the templates are rewritten to point at replicas. Templates are
joined to replicas by name through the run's NameToReplicaMap.
"""

import logging
from collections.abc import Sequence
from typing import Any

from app.interfaces.record_store import BaseRecordStore, RecordStoreError
from app.replication.models import NameToReplicaMap, PropertyNames, TemplateRecord
from app.replication.properties import derive_name, relation_ids

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Rewrites dependency relations from template ids to replica ids.

    The same logic serves a single batch or the union of every batch in
    a run; only the template scope passed to ``resolve`` differs.
    """

    def __init__(self, store: BaseRecordStore, names: PropertyNames) -> None:
        self._store = store
        self.names = names

    async def resolve(
        self,
        templates: Sequence[TemplateRecord],
        name_map: NameToReplicaMap,
        scope: str = "cross-batch",
    ) -> int:
        """Resolve dependencies for every template in scope.

        Args:
            templates: Templates whose replicas may need rewiring.
            name_map: Complete name -> replica id map of the run.
            scope: Label used in logs.

        Returns:
            The number of replicas updated.
        """
        if templates:
            logger.info(f"Resolving {scope} dependencies for {len(templates)} page(s)")

        updated = 0
        for template in templates:
            try:
                if await self._resolve_one(template, name_map):
                    updated += 1
            except RecordStoreError as e:
                logger.error(f"Error resolving dependencies for page {template.id}: {e.message}")
            except Exception as e:
                logger.error(
                    f"Unexpected error resolving dependencies for page {template.id}: {e}",
                    exc_info=True,
                )

        logger.info(f"Completed {scope} dependency resolution: {updated} page(s) updated")
        return updated

    async def _resolve_one(self, template: TemplateRecord, name_map: NameToReplicaMap) -> bool:
        original = await self._store.retrieve(template.id)
        blocking = relation_ids(original.properties, self.names.blocking_variants)
        blocked_by = relation_ids(original.properties, self.names.blocked_by_variants)

        if not blocking and not blocked_by:
            return False

        replica_id = name_map.get(template.name)
        if replica_id is None:
            logger.warning(f"Could not find replica mapping for template: {template.name}")
            return False

        updates: dict[str, Any] = {}

        resolved_blocking = await self._resolve_refs(blocking, name_map, template.name, "blocking")
        if resolved_blocking:
            updates[self.names.blocking] = {"relation": resolved_blocking}

        resolved_blocked_by = await self._resolve_refs(
            blocked_by, name_map, template.name, "blocked by"
        )
        if resolved_blocked_by:
            updates[self.names.blocked_by] = {"relation": resolved_blocked_by}

        if not updates:
            return False

        await self._store.update(replica_id, updates)
        return True

    async def _resolve_refs(
        self,
        refs: list[str],
        name_map: NameToReplicaMap,
        template_name: str | None,
        relation: str,
    ) -> list[dict[str, str]]:
        """Map referenced template ids to replica ids, dropping unresolvable ones."""
        resolved: list[dict[str, str]] = []

        for ref_id in refs:
            try:
                related = await self._store.retrieve(ref_id)
            except RecordStoreError as e:
                logger.warning(
                    f"Could not resolve {relation} relation {ref_id} of '{template_name}': {e.message}"
                )
                continue

            related_name = derive_name(related.properties, self.names.name_sources)
            replica_id = name_map.get(related_name)
            if replica_id is None:
                logger.warning(
                    f"Could not resolve {relation} relation for: {related_name or ref_id}"
                )
                continue

            if {"id": replica_id} not in resolved:
                resolved.append({"id": replica_id})
            logger.info(f"Resolved {relation}: {template_name} -> {related_name}")

        return resolved
