"""Unit tests for BatchOrchestrator and the epic/template loaders."""

import asyncio
from datetime import datetime, timezone

import pytest

from app.interfaces.record_store import RecordStoreError
from app.replication.errors import (
    TOKEN_INVALID_MESSAGE,
    ConfigurationError,
    EpicLookupError,
    TemplateQueryError,
)
from app.replication.loaders import UNNAMED_EPIC, load_epic, load_templates
from app.replication.models import BatchRequest
from app.replication.orchestrator import BatchOrchestrator
from app.strategies.record_stores import InMemoryRecordStore

TEMPLATES_DB = "templates-db"
STORIES_DB = "stories-db"


def _titles(store) -> list[str]:
    return [
        r.properties["Title"]["title"][0]["text"]["content"] for r in store.records_in(STORIES_DB)
    ]


def _replica(store, title: str):
    return next(
        r
        for r in store.records_in(STORIES_DB)
        if r.properties["Title"]["title"][0]["text"]["content"] == title
    )


class UnauthorizedStore(InMemoryRecordStore):
    """Store whose page lookups are rejected as unauthorized."""

    async def retrieve(self, record_id):
        raise RecordStoreError("unauthorized", "API token is invalid.", 401)


# =============================================================================
# Loaders
# =============================================================================


class TestLoaders:
    """Test suite for load_epic and load_templates."""

    def test_load_epic_reads_name_and_anchor(self, store, add_epic):
        """Test that the epic name and target date are read."""
        add_epic("Spring Batch", "epic-1", target_date="2024-04-01")

        epic = asyncio.run(load_epic(store, "epic-1"))

        assert epic.name == "Spring Batch"
        assert epic.anchor_date == datetime(2024, 4, 1, tzinfo=timezone.utc)

    def test_load_epic_fallback_name(self, store, props):
        """Test the fallback name for an epic without a name property."""
        store.add_record(None, {"Notes": props.rich_text("x")}, record_id="epic-x")

        epic = asyncio.run(load_epic(store, "epic-x"))

        assert epic.name == UNNAMED_EPIC
        assert epic.anchor_date is None

    def test_load_epic_not_found_message(self, store):
        """Test the not-found message names the epic id."""
        with pytest.raises(EpicLookupError, match="Epic page not found. Please check the epic ID: nope"):
            asyncio.run(load_epic(store, "nope"))

    def test_load_epic_unauthorized_message(self):
        """Test the token message for unauthorized lookups."""
        with pytest.raises(EpicLookupError, match=TOKEN_INVALID_MESSAGE):
            asyncio.run(load_epic(UnauthorizedStore(), "epic-1"))

    def test_load_epic_requires_id(self, store):
        """Test that an empty epic id is a configuration error."""
        with pytest.raises(ConfigurationError):
            asyncio.run(load_epic(store, ""))

    def test_load_templates_filters_and_sorts(self, store, names, add_template):
        """Test workflow filtering and ascending date order with undated last."""
        add_template("Late", "2024-02-01")
        add_template("Undated")
        add_template("Early", "2024-01-01")
        add_template("Other workflow", "2023-12-01", workflows=("New Market",))

        templates = asyncio.run(load_templates(store, TEMPLATES_DB, "New SKU", names))

        assert [t.name for t in templates] == ["Early", "Late", "Undated"]

    def test_load_templates_without_filter(self, store, names, add_template):
        """Test that no filter selects every template."""
        add_template("A", workflows=("New SKU",))
        add_template("B", workflows=("New Market",))

        templates = asyncio.run(load_templates(store, TEMPLATES_DB, None, names))

        assert {t.name for t in templates} == {"A", "B"}

    def test_load_templates_missing_database(self, store, names):
        """Test the not-found message for the template database."""
        with pytest.raises(TemplateQueryError, match="PRODUCT_WORKFLOWS_DB_ID: missing-db"):
            asyncio.run(load_templates(store, "missing-db", "New SKU", names))

    def test_load_templates_requires_database(self, store, names):
        """Test that an unset template database is a configuration error."""
        with pytest.raises(ConfigurationError):
            asyncio.run(load_templates(store, None, "New SKU", names))


# =============================================================================
# Orchestrator
# =============================================================================


class TestBatchOrchestrator:
    """Test suite for BatchOrchestrator."""

    @pytest.fixture
    def orchestrator(self, store, names):
        return BatchOrchestrator(store, TEMPLATES_DB, STORIES_DB, names)

    def test_single_batch_with_explicit_date(self, store, props, add_template, add_epic, orchestrator):
        """Test a batch replicated onto an explicit reference date."""
        add_epic("Spring Batch", "epic-1")
        add_template("Brief", "2024-01-05")
        add_template("Ship", "2024-02-03", Status=props.select("Todo"))

        summary = asyncio.run(
            orchestrator.run(
                [BatchRequest(epic_id="epic-1", template_filter="New SKU")],
                target_date=datetime(2024, 3, 10, tzinfo=timezone.utc),
            )
        )

        assert summary.total_copied == 2
        assert summary.per_batch[0].success
        assert summary.per_batch[0].epic_name == "Spring Batch"
        assert summary.reference_date == datetime(2024, 3, 10, tzinfo=timezone.utc)
        assert sorted(_titles(store)) == ["Spring Batch: Brief", "Spring Batch: Ship"]
        assert _replica(store, "Spring Batch: Brief").properties["Date"]["date"]["start"] == "2024-02-10"
        assert _replica(store, "Spring Batch: Ship").properties["Date"]["date"]["start"] == "2024-03-10"
        assert _replica(store, "Spring Batch: Ship").properties["Status"] == props.select("Todo")

    def test_naive_target_date_is_taken_as_utc(self, store, add_template, add_epic, orchestrator):
        """Test that a naive run date still anchors every dated template."""
        add_epic("Spring Batch", "epic-1")
        add_template("Brief", "2024-01-05")

        summary = asyncio.run(
            orchestrator.run(
                [BatchRequest(epic_id="epic-1", template_filter="New SKU")],
                target_date=datetime(2024, 3, 10),
            )
        )

        assert summary.per_batch[0].success
        assert summary.total_copied == 1
        assert summary.reference_date == datetime(2024, 3, 10, tzinfo=timezone.utc)
        assert _replica(store, "Spring Batch: Brief").properties["Date"]["date"]["start"] == "2024-03-10"

    def test_naive_batch_explicit_date_is_taken_as_utc(self, store, add_template, add_epic, orchestrator):
        """Test that a naive batch-level date is normalized to UTC."""
        add_epic("Spring Batch", "epic-1")
        add_template("Brief", "2024-01-05")
        request = BatchRequest(
            epic_id="epic-1", template_filter="New SKU", explicit_date=datetime(2024, 3, 10)
        )

        summary = asyncio.run(orchestrator.run([request]))

        assert request.explicit_date == datetime(2024, 3, 10, tzinfo=timezone.utc)
        assert summary.per_batch[0].success
        assert _replica(store, "Spring Batch: Brief").properties["Date"]["date"]["start"] == "2024-03-10"

    def test_reference_date_from_templates_keeps_dates(self, store, add_template, add_epic, orchestrator):
        """Test that without an explicit date the latest template date is kept in place."""
        add_epic("Spring Batch", "epic-1")
        add_template("Brief", "2024-01-05")
        add_template("Ship", "2024-02-03")

        summary = asyncio.run(
            orchestrator.run([BatchRequest(epic_id="epic-1", template_filter="New SKU")])
        )

        assert summary.reference_date == datetime(2024, 2, 3, tzinfo=timezone.utc)
        assert _replica(store, "Spring Batch: Brief").properties["Date"]["date"]["start"] == "2024-01-05"

    def test_first_batch_explicit_date_used(self, store, add_template, add_epic, orchestrator):
        """Test that a batch-level explicit date anchors the run."""
        add_epic("Spring Batch", "epic-1")
        add_template("Ship", "2024-02-03")

        summary = asyncio.run(
            orchestrator.run(
                [BatchRequest(epic_id="epic-1", template_filter="New SKU", explicit_date="2024-05-01")]
            )
        )

        assert summary.reference_date == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert _replica(store, "Spring Batch: Ship").properties["Date"]["date"]["start"] == "2024-05-01"

    def test_dependencies_resolved_after_replication(
        self, store, props, add_template, add_epic, orchestrator
    ):
        """Test that replicas are rewired to each other, never to templates."""
        add_epic("Spring Batch", "epic-1")
        add_template("A", "2024-01-01", record_id="tpl-a", Blocking=props.relation("tpl-b"))
        add_template(
            "B", "2024-01-02", record_id="tpl-b", **{"Blocked by": props.relation("tpl-a")}
        )

        summary = asyncio.run(
            orchestrator.run([BatchRequest(epic_id="epic-1", template_filter="New SKU")])
        )

        replica_a = _replica(store, "Spring Batch: A")
        replica_b = _replica(store, "Spring Batch: B")
        assert summary.dependencies_resolved == 2
        assert replica_a.properties["Blocking"] == {"relation": [{"id": replica_b.id}]}
        assert replica_b.properties["Blocked by"] == {"relation": [{"id": replica_a.id}]}

    def test_cross_batch_dependencies(self, store, props, add_template, add_epic, orchestrator):
        """Test that a template in one batch can depend on a template in another."""
        add_epic("Batch Epic", "epic-batch")
        add_epic("SKU Epic", "epic-sku")
        add_template("Order stock", "2024-01-10", workflows=("New batch",), record_id="tpl-order")
        add_template(
            "List product",
            "2024-01-20",
            workflows=("New SKU",),
            **{"Blocked by": props.relation("tpl-order")},
        )

        summary = asyncio.run(
            orchestrator.run(
                [
                    BatchRequest(epic_id="epic-batch", template_filter="New batch"),
                    BatchRequest(epic_id="epic-sku", template_filter="New SKU"),
                ],
                target_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
            )
        )

        order = _replica(store, "Batch Epic: Order stock")
        listing = _replica(store, "SKU Epic: List product")
        assert summary.total_copied == 2
        assert listing.properties["Blocked by"] == {"relation": [{"id": order.id}]}
        # Each batch is aligned on its own latest date
        assert order.properties["Date"]["date"]["start"] == "2024-03-01"
        assert listing.properties["Date"]["date"]["start"] == "2024-03-01"

    def test_failed_batch_does_not_stop_siblings(self, store, add_template, add_epic, orchestrator):
        """Test that a batch without an epic fails alone."""
        add_epic("SKU Epic", "epic-sku")
        add_template("List product", "2024-01-20", workflows=("New SKU",))
        add_template("Open market", "2024-01-20", workflows=("New Market",))

        summary = asyncio.run(
            orchestrator.run(
                [
                    BatchRequest(epic_id="missing-epic", template_filter="New Market"),
                    BatchRequest(epic_id=None, template_filter="New batch"),
                    BatchRequest(epic_id="epic-sku", template_filter="New SKU"),
                ]
            )
        )

        market, batch, sku = summary.per_batch
        assert not market.success
        assert market.error == "Epic page not found. Please check the epic ID: missing-epic"
        assert not batch.success
        assert batch.error == "No epic ID provided for workflow: New batch"
        assert sku.success
        assert summary.successful_batches == 1
        assert summary.total_copied == 1
        assert _titles(store) == ["SKU Epic: List product"]

    def test_missing_destination_fails_batch(self, store, names, add_template, add_epic):
        """Test that an unset destination database fails the batch."""
        add_epic("SKU Epic", "epic-sku")
        add_template("List product", "2024-01-20")
        orchestrator = BatchOrchestrator(store, TEMPLATES_DB, None, names)

        summary = asyncio.run(
            orchestrator.run([BatchRequest(epic_id="epic-sku", template_filter="New SKU")])
        )

        assert not summary.per_batch[0].success
        assert summary.per_batch[0].error == "STORIES_DB_ID is not configured"

    def test_empty_run_uses_now(self, store, add_epic, orchestrator):
        """Test that a run without templates still completes."""
        add_epic("SKU Epic", "epic-sku")

        summary = asyncio.run(
            orchestrator.run([BatchRequest(epic_id="epic-sku", template_filter="New SKU")])
        )

        assert summary.total_copied == 0
        assert summary.dependencies_resolved == 0
        assert summary.reference_date is not None
        assert not [call for call in store.calls if call[0] == "create"]

    def test_process_batch_uses_epic_anchor(self, store, add_template, add_epic, orchestrator):
        """Test that an isolated batch aligns on the epic's target date."""
        add_epic("SKU Epic", "epic-sku", target_date="2024-06-30")
        add_template("Brief", "2024-01-01")
        add_template("Ship", "2024-01-31")

        summary = asyncio.run(
            orchestrator.process_batch(BatchRequest(epic_id="epic-sku", template_filter="New SKU"))
        )

        assert summary.reference_date == datetime(2024, 6, 30, tzinfo=timezone.utc)
        assert _replica(store, "SKU Epic: Ship").properties["Date"]["date"]["start"] == "2024-06-30"
        assert _replica(store, "SKU Epic: Brief").properties["Date"]["date"]["start"] == "2024-05-31"

    def test_batches_share_reference_and_keep_spacing(self, store, add_template, add_epic, orchestrator):
        """Test that each batch lands its latest date on the shared reference date."""
        add_epic("Batch Epic", "epic-batch")
        add_epic("SKU Epic", "epic-sku")
        add_template("Kickoff", "2024-01-01", workflows=("New batch",))
        add_template("Handover", "2024-01-05", workflows=("New batch",))
        add_template("Shoot", "2024-02-01", workflows=("New SKU",))
        add_template("Publish", "2024-02-03", workflows=("New SKU",))

        asyncio.run(
            orchestrator.run(
                [
                    BatchRequest(epic_id="epic-batch", template_filter="New batch"),
                    BatchRequest(epic_id="epic-sku", template_filter="New SKU"),
                ],
                target_date=datetime(2024, 3, 10, tzinfo=timezone.utc),
            )
        )

        def start(title):
            return _replica(store, title).properties["Date"]["date"]["start"]

        assert start("Batch Epic: Handover") == "2024-03-10"
        assert start("Batch Epic: Kickoff") == "2024-03-06"
        assert start("SKU Epic: Publish") == "2024-03-10"
        assert start("SKU Epic: Shoot") == "2024-03-08"
