"""Unit tests for DependencyResolver."""

import asyncio

import pytest

from app.replication.dependencies import DependencyResolver
from app.replication.loaders import template_from_record
from app.replication.models import NameToReplicaMap

STORIES_DB = "stories-db"


class TestDependencyResolver:
    """Test suite for DependencyResolver."""

    @pytest.fixture
    def replica(self, store, props):
        """Insert a replica page into the stories database."""

        def _add(record_id: str, title: str):
            return store.add_record(STORIES_DB, {"Title": props.title(title)}, record_id=record_id)

        return _add

    def _resolve(self, store, names, pages, name_map):
        templates = [template_from_record(store.get_record(p.id), names) for p in pages]
        name_map.freeze()
        return asyncio.run(DependencyResolver(store, names).resolve(templates, name_map))

    def test_rewires_blocking_and_blocked_by(self, store, names, props, add_template, replica):
        """Test that A blocks B becomes A' blocks B' on the replicas."""
        add_template("A", record_id="tpl-a", Blocking=props.relation("tpl-b"))
        add_template("B", record_id="tpl-b", **{"Blocked by": props.relation("tpl-a")})
        replica("rep-a", "Epic: A")
        replica("rep-b", "Epic: B")
        name_map = NameToReplicaMap()
        name_map.register("A", "rep-a")
        name_map.register("B", "rep-b")

        updated = self._resolve(
            store, names, [store.get_record("tpl-a"), store.get_record("tpl-b")], name_map
        )

        assert updated == 2
        assert store.get_record("rep-a").properties["Blocking"] == {"relation": [{"id": "rep-b"}]}
        assert store.get_record("rep-b").properties["Blocked by"] == {"relation": [{"id": "rep-a"}]}

    def test_unresolvable_references_dropped(self, store, names, props, add_template, replica):
        """Test that a reference outside the run is dropped while others resolve."""
        add_template("A", record_id="tpl-a", Blocking=props.relation("tpl-b", "tpl-z"))
        add_template("B", record_id="tpl-b")
        add_template("Z", record_id="tpl-z")
        replica("rep-a", "Epic: A")
        replica("rep-b", "Epic: B")
        name_map = NameToReplicaMap()
        name_map.register("A", "rep-a")
        name_map.register("B", "rep-b")

        updated = self._resolve(store, names, [store.get_record("tpl-a")], name_map)

        assert updated == 1
        assert store.get_record("rep-a").properties["Blocking"] == {"relation": [{"id": "rep-b"}]}

    def test_missing_referenced_page_dropped(self, store, names, props, add_template, replica):
        """Test that a referenced template that cannot be fetched is skipped."""
        add_template("A", record_id="tpl-a", Blocking=props.relation("deleted", "tpl-b"))
        add_template("B", record_id="tpl-b")
        replica("rep-a", "Epic: A")
        replica("rep-b", "Epic: B")
        name_map = NameToReplicaMap()
        name_map.register("A", "rep-a")
        name_map.register("B", "rep-b")

        updated = self._resolve(store, names, [store.get_record("tpl-a")], name_map)

        assert updated == 1
        assert store.get_record("rep-a").properties["Blocking"] == {"relation": [{"id": "rep-b"}]}

    def test_no_update_without_resolved_references(self, store, names, props, add_template, replica):
        """Test that nothing is written when no reference resolves."""
        add_template("A", record_id="tpl-a", Blocking=props.relation("tpl-z"))
        add_template("Plain", record_id="tpl-plain")
        add_template("Z", record_id="tpl-z")
        replica("rep-a", "Epic: A")
        replica("rep-plain", "Epic: Plain")
        name_map = NameToReplicaMap()
        name_map.register("A", "rep-a")
        name_map.register("Plain", "rep-plain")

        updated = self._resolve(
            store, names, [store.get_record("tpl-a"), store.get_record("tpl-plain")], name_map
        )

        assert updated == 0
        assert not [call for call in store.calls if call[0] == "update"]
        assert "Blocking" not in store.get_record("rep-a").properties

    def test_variants_are_unioned(self, store, names, props, add_template, replica):
        """Test that every accepted field name contributes references."""
        add_template(
            "A",
            record_id="tpl-a",
            Blocking=props.relation("tpl-b"),
            Blocks=props.relation("tpl-c", "tpl-b"),
        )
        add_template("B", record_id="tpl-b")
        add_template("C", record_id="tpl-c")
        for name in ("A", "B", "C"):
            replica(f"rep-{name.lower()}", f"Epic: {name}")
        name_map = NameToReplicaMap()
        for name in ("A", "B", "C"):
            name_map.register(name, f"rep-{name.lower()}")

        self._resolve(store, names, [store.get_record("tpl-a")], name_map)

        assert store.get_record("rep-a").properties["Blocking"] == {
            "relation": [{"id": "rep-b"}, {"id": "rep-c"}]
        }

    def test_template_without_replica_is_skipped(self, store, names, props, add_template):
        """Test that a template that failed to replicate is not updated."""
        add_template("A", record_id="tpl-a", Blocking=props.relation("tpl-b"))
        add_template("B", record_id="tpl-b")
        name_map = NameToReplicaMap()
        name_map.register("B", "rep-b")

        assert self._resolve(store, names, [store.get_record("tpl-a")], name_map) == 0

    def test_failure_on_one_record_does_not_stop_others(self, store, names, props, add_template, replica):
        """Test that an update failure is logged and the next record proceeds."""
        add_template("A", record_id="tpl-a", Blocking=props.relation("tpl-b"))
        add_template("B", record_id="tpl-b", **{"Blocked by": props.relation("tpl-a")})
        # rep-a is never created, so its update fails with not_found
        replica("rep-b", "Epic: B")
        name_map = NameToReplicaMap()
        name_map.register("A", "rep-a")
        name_map.register("B", "rep-b")

        updated = self._resolve(
            store, names, [store.get_record("tpl-a"), store.get_record("tpl-b")], name_map
        )

        assert updated == 1
        assert store.get_record("rep-b").properties["Blocked by"] == {"relation": [{"id": "rep-a"}]}
