"""
Unit tests for descriptor ingestion.

Tests cover:
- Multi-document YAML parsing
- Location registration and entity tagging
- Orphan removal on re-sync
- Validation before any store change
"""

import pytest

from catalogdb.catalog_server.errors import InvalidEntityError
from catalogdb.catalog_server.store import CatalogStore
from catalogdb.catalog_server.tools import (
    ingest_file,
    ingest_location,
    load_descriptors,
    location_key,
)

CATALOG_YAML = """\
apiVersion: backstage.io/v1alpha1
kind: Component
metadata:
  name: svc-a
  tags: [python]
spec:
  owner: team-x
---
kind: API
metadata:
  name: svc-a-api
spec:
  owner: team-x
---
"""


def descriptor(name, kind="Component"):
    return {"kind": kind, "metadata": {"name": name}}


class TestLoadDescriptors:
    """Tests for load_descriptors."""

    def test_multi_document(self):
        """Documents parse in order; empty ones are skipped."""
        descriptors = load_descriptors(CATALOG_YAML)

        assert [d["metadata"]["name"] for d in descriptors] == ["svc-a", "svc-a-api"]
        assert descriptors[0]["metadata"]["tags"] == ["python"]

    def test_non_mapping_document_rejected(self):
        with pytest.raises(InvalidEntityError, match="expected a mapping"):
            load_descriptors("- just\n- a list\n")

    def test_invalid_yaml_rejected(self):
        with pytest.raises(InvalidEntityError, match="Invalid descriptor YAML"):
            load_descriptors("kind: [unclosed\n")

    def test_empty_text(self):
        assert load_descriptors("") == []


class TestIngestLocation:
    """Tests for ingest_location."""

    @pytest.fixture
    def store(self):
        return CatalogStore()

    def test_registers_location_and_tags_entities(self, store):
        result = ingest_location(
            store, "url", "https://example.com/a.yaml", [descriptor("svc-a"), descriptor("svc-b")]
        )

        assert result.location.type == "url"
        assert store.list_locations() == [result.location]
        assert result.upserted == ["component:default/svc-a", "component:default/svc-b"]
        assert result.removed == []
        key = location_key("url", "https://example.com/a.yaml")
        assert sorted(store.refs_for_location(key)) == result.upserted

    def test_resync_removes_orphans(self, store):
        """Entities no longer described are removed; location is reused."""
        first = ingest_location(store, "file", "/a.yaml", [descriptor("svc-a"), descriptor("svc-b")])
        second = ingest_location(store, "file", "/a.yaml", [descriptor("svc-b")])

        assert second.location == first.location
        assert second.removed == ["component:default/svc-a"]
        assert store.get_by_reference("component:default/svc-a") is None
        assert len(store.list_locations()) == 1

    def test_resync_keeps_uids(self, store):
        ingest_location(store, "file", "/a.yaml", [descriptor("svc-a")])
        uid = store.get_by_reference("component:default/svc-a").metadata.uid

        ingest_location(store, "file", "/a.yaml", [descriptor("svc-a")])

        assert store.get_by_reference("component:default/svc-a").metadata.uid == uid

    def test_other_locations_untouched(self, store):
        ingest_location(store, "file", "/a.yaml", [descriptor("svc-a")])
        ingest_location(store, "file", "/b.yaml", [descriptor("svc-b")])

        ingest_location(store, "file", "/a.yaml", [])

        assert store.get_by_reference("component:default/svc-b") is not None
        assert store.get_stats().entity_count == 1

    def test_invalid_descriptor_leaves_store_untouched(self, store):
        with pytest.raises(InvalidEntityError):
            ingest_location(store, "file", "/a.yaml", [descriptor("svc-a"), {"kind": "API"}])

        assert store.get_stats().entity_count == 0
        assert store.list_locations() == []

    def test_uid_owned_elsewhere_leaves_store_untouched(self, store):
        """A descriptor claiming another reference's uid aborts the sync."""
        saved = store.upsert(descriptor("svc-a"), location_key="file:/a.yaml")
        intruder = descriptor("svc-b")
        intruder["metadata"]["uid"] = saved.metadata.uid

        with pytest.raises(InvalidEntityError, match="already assigned"):
            ingest_location(store, "file", "/b.yaml", [descriptor("svc-c"), intruder])

        assert store.get_by_uid(saved.metadata.uid).metadata.name == "svc-a"
        assert store.get_stats().entity_count == 1
        assert store.list_locations() == []

    def test_result_to_dict(self, store):
        result = ingest_location(store, "file", "/a.yaml", [descriptor("svc-a")])
        data = result.to_dict()

        assert data["location"]["target"] == "/a.yaml"
        assert data["upserted"] == ["component:default/svc-a"]


class TestIngestFile:
    """Tests for ingest_file."""

    def test_ingest_file(self, tmp_path):
        path = tmp_path / "catalog-info.yaml"
        path.write_text(CATALOG_YAML, encoding="utf-8")
        store = CatalogStore()

        result = ingest_file(store, str(path))

        target = str(path.resolve())
        assert result.location.target == target
        assert store.get_by_reference("api:default/svc-a-api").spec == {"owner": "team-x"}
        assert store.refs_for_location(f"file:{target}") == [
            "component:default/svc-a",
            "api:default/svc-a-api",
        ]

    def test_path_spellings_share_one_location(self, tmp_path, monkeypatch):
        """./x.yaml and x.yaml resolve to the same location."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "catalog-info.yaml").write_text(CATALOG_YAML, encoding="utf-8")
        store = CatalogStore()

        ingest_file(store, "./catalog-info.yaml")
        (tmp_path / "catalog-info.yaml").write_text(
            "kind: Component\nmetadata:\n  name: svc-a\n", encoding="utf-8"
        )
        result = ingest_file(store, "catalog-info.yaml")

        assert len(store.list_locations()) == 1
        assert result.removed == ["api:default/svc-a-api"]

    def test_yaml_dates_survive_reload(self, tmp_path):
        """Date scalars query the same before and after a snapshot reload."""
        path = tmp_path / "catalog-info.yaml"
        path.write_text(
            "kind: Component\n"
            "metadata:\n"
            "  name: svc-a\n"
            "  annotations:\n"
            "    created: 2024-01-01\n"
            "spec:\n"
            "  since: 2024-01-01\n",
            encoding="utf-8",
        )
        snapshot = tmp_path / "catalog.json"
        query = {"filter": ["spec.since=2024-01-01", "metadata.annotations.created=2024-01-01"]}

        store = CatalogStore(snapshot)
        ingest_file(store, str(path))
        before = store.query(query)
        facets_before = store.facets(["spec.since"])
        store.close()

        reloaded = CatalogStore(snapshot)
        reloaded.load()
        after = reloaded.query(query)

        assert before.total_items == 1
        assert after.total_items == 1
        assert after.items[0].to_dict() == before.items[0].to_dict()
        assert reloaded.facets(["spec.since"]) == facets_before
        assert facets_before.facets["spec.since"][0].value == "2024-01-01"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ingest_file(CatalogStore(), str(tmp_path / "absent.yaml"))
