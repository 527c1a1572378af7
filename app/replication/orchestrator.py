"""Batch orchestration.

A run moves through COLLECTING -> RESOLVING_DATE -> REPLICATING ->
RESOLVING_DEPENDENCIES -> DONE. Batches are processed strictly in the
order given, one at a time. A failing batch is reported in the summary
and never aborts its siblings or the dependency pass.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from app.interfaces.record_store import BaseRecordStore, RecordStoreError
from app.replication.content import ContentCopier
from app.replication.dates import calculate_date_translation
from app.replication.dependencies import DependencyResolver
from app.replication.errors import ConfigurationError, ReplicationError
from app.replication.loaders import load_epic, load_templates
from app.replication.models import (
    BatchRequest,
    BatchResult,
    Epic,
    NameToReplicaMap,
    PropertyNames,
    RunSummary,
    TemplateRecord,
)
from app.replication.reference_date import find_reference_date
from app.replication.replicator import RecordReplicator

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    """Phases of a replication run."""

    COLLECTING = "collecting"
    RESOLVING_DATE = "resolving_date"
    REPLICATING = "replicating"
    RESOLVING_DEPENDENCIES = "resolving_dependencies"
    DONE = "done"


@dataclass
class CollectedBatch:
    """A batch request together with what was loaded for it."""

    request: BatchRequest
    result: BatchResult
    epic: Epic | None = None
    templates: list[TemplateRecord] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result.success

    def fail(self, message: str) -> None:
        self.result.success = False
        self.result.error = message


@dataclass
class ReplicationRun:
    """State of one run. Rebuilt from the record store on every invocation."""

    batches: list[CollectedBatch] = field(default_factory=list)
    name_map: NameToReplicaMap = field(default_factory=NameToReplicaMap)
    phase: RunPhase = RunPhase.COLLECTING
    reference_date: datetime | None = None
    dependencies_resolved: int = 0

    def templates(self) -> list[TemplateRecord]:
        """Templates of every batch still in play, in batch order."""
        return [t for batch in self.batches if batch.ok for t in batch.templates]


class BatchOrchestrator:
    """Runs template replication for one or more batches.

    Example:
        ```python
        orchestrator = BatchOrchestrator(store, templates_db, stories_db, PropertyNames())
        summary = await orchestrator.run(
            [BatchRequest(epic_id=epic_id, template_filter="New SKU")],
            target_date=datetime(2024, 3, 10, tzinfo=timezone.utc),
        )
        ```
    """

    def __init__(
        self,
        store: BaseRecordStore,
        template_collection_id: str | None,
        destination_collection_id: str | None,
        names: PropertyNames | None = None,
        content_max_depth: int = 3,
    ) -> None:
        self._store = store
        self.template_collection_id = template_collection_id
        self.destination_collection_id = destination_collection_id
        self.names = names or PropertyNames()
        self._content_copier = ContentCopier(store, max_depth=content_max_depth)
        self._resolver = DependencyResolver(store, self.names)

    async def run(
        self,
        batches: list[BatchRequest],
        target_date: datetime | None = None,
    ) -> RunSummary:
        """Replicate every batch against one shared reference date.

        Args:
            batches: Batches in processing order.
            target_date: Run-level explicit date. When None, the first
                batch carrying an explicit date supplies it.

        Returns:
            Per-batch results plus aggregate counts.
        """
        logger.info(f"Processing {len(batches)} batch(es)")
        run = ReplicationRun()

        self._enter(run, RunPhase.COLLECTING)
        for request in batches:
            run.batches.append(await self._collect(request))

        self._enter(run, RunPhase.RESOLVING_DATE)
        explicit = target_date or next(
            (b.explicit_date for b in batches if b.explicit_date is not None), None
        )
        reference = find_reference_date(run.templates(), explicit)
        run.reference_date = reference or datetime.now(timezone.utc)
        logger.info(f"Reference date for all batches: {run.reference_date.date().isoformat()}")

        self._enter(run, RunPhase.REPLICATING)
        schema = await self._destination_schema()
        for batch in run.batches:
            if batch.ok:
                await self._replicate(batch, run.reference_date, schema, run.name_map)
        run.name_map.freeze()

        self._enter(run, RunPhase.RESOLVING_DEPENDENCIES)
        if len(run.name_map) > 0:
            run.dependencies_resolved = await self._resolver.resolve(
                run.templates(), run.name_map, scope="cross-batch"
            )

        self._enter(run, RunPhase.DONE)
        return self._summarize(run)

    async def process_batch(self, request: BatchRequest) -> RunSummary:
        """Replicate a single batch in isolation.

        The reference date is the batch's explicit date, else the epic's
        anchor date, else now. Dependencies resolve within the batch only.
        """
        run = ReplicationRun()

        self._enter(run, RunPhase.COLLECTING)
        batch = await self._collect(request)
        run.batches.append(batch)

        self._enter(run, RunPhase.RESOLVING_DATE)
        anchor = batch.epic.anchor_date if batch.epic else None
        run.reference_date = request.explicit_date or anchor or datetime.now(timezone.utc)

        self._enter(run, RunPhase.REPLICATING)
        if batch.ok:
            schema = await self._destination_schema()
            await self._replicate(batch, run.reference_date, schema, run.name_map)
        run.name_map.freeze()

        self._enter(run, RunPhase.RESOLVING_DEPENDENCIES)
        if len(run.name_map) > 0:
            run.dependencies_resolved = await self._resolver.resolve(
                run.templates(), run.name_map, scope=f"batch '{batch.result.label}'"
            )

        self._enter(run, RunPhase.DONE)
        return self._summarize(run)

    async def _collect(self, request: BatchRequest) -> CollectedBatch:
        label = request.display_name
        batch = CollectedBatch(
            request=request,
            result=BatchResult(label=label, epic_id=request.epic_id),
        )

        try:
            if not request.epic_id:
                raise ConfigurationError(f"No epic ID provided for workflow: {label}")

            batch.epic = await load_epic(self._store, request.epic_id)
            batch.result.epic_name = batch.epic.name
            batch.templates = await load_templates(
                self._store,
                self.template_collection_id,
                request.template_filter,
                self.names,
            )
        except ReplicationError as e:
            logger.error(f"Failed to collect pages for workflow {label}: {e}")
            batch.fail(str(e))
        except Exception as e:
            logger.error(f"Unexpected error collecting workflow {label}: {e}", exc_info=True)
            batch.fail(f"Unexpected error: {e}")

        return batch

    async def _replicate(
        self,
        batch: CollectedBatch,
        reference_date: datetime,
        schema: set[str],
        name_map: NameToReplicaMap,
    ) -> None:
        label = batch.result.label
        try:
            if not self.destination_collection_id:
                raise ConfigurationError("STORIES_DB_ID is not configured")

            replicator = RecordReplicator(
                self._store,
                self.destination_collection_id,
                self.names,
                self._content_copier,
            )
            translation = calculate_date_translation(batch.templates, reference_date)
            replicas, failures = await replicator.replicate_all(
                batch.templates, batch.epic, translation, schema, name_map
            )
            batch.result.copied_count = len(replicas)
            batch.result.failed = failures
            logger.info(
                f"Workflow {label}: copied {len(replicas)} of {len(batch.templates)} page(s)"
            )
        except ReplicationError as e:
            logger.error(f"Failed to process workflow {label}: {e}")
            batch.fail(str(e))
        except Exception as e:
            logger.error(f"Unexpected error processing workflow {label}: {e}", exc_info=True)
            batch.fail(f"Unexpected error: {e}")

    async def _destination_schema(self) -> set[str]:
        """Property names of the destination database; empty disables filtering."""
        if not self.destination_collection_id:
            return set()
        try:
            schema = await self._store.get_schema(self.destination_collection_id)
        except RecordStoreError as e:
            logger.error(
                f"Error getting database schema for {self.destination_collection_id}: {e.message}"
            )
            return set()
        logger.info(f"Stories database properties: {sorted(schema)}")
        return schema

    def _enter(self, run: ReplicationRun, phase: RunPhase) -> None:
        logger.debug(f"Replication run: {run.phase.value} -> {phase.value}")
        run.phase = phase

    def _summarize(self, run: ReplicationRun) -> RunSummary:
        summary = RunSummary(
            per_batch=[batch.result for batch in run.batches],
            total_copied=sum(batch.result.copied_count for batch in run.batches),
            dependencies_resolved=run.dependencies_resolved,
            reference_date=run.reference_date,
        )
        logger.info(
            f"Completed: {summary.successful_batches}/{len(summary.per_batch)} batches successful, "
            f"{summary.total_copied} page(s) copied, "
            f"{summary.dependencies_resolved} dependency update(s)"
        )
        return summary
