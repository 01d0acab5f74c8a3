"""
Integration tests for the catalog CLI.

Each command runs against a real snapshot file, so state carries
between invocations the same way it does between processes.

Tests cover:
- ingest / get / query / facets / stats / locations / remove
- Exit codes for failed commands
- Snapshot override flag
"""

import json

import pytest

from catalogdb.catalog_server.config import CatalogSettings
from catalogdb.catalog_server.tools import run

CATALOG_YAML = """\
kind: Component
metadata:
  name: svc-a
  tags: [python, web]
spec:
  owner: team-x
---
kind: Component
metadata:
  name: svc-b
  tags: [go]
spec:
  owner: team-y
---
kind: API
metadata:
  name: svc-a-api
spec:
  owner: team-x
"""


class TestCatalogCLI:
    """End-to-end CLI runs over one snapshot file."""

    @pytest.fixture
    def snapshot_path(self, tmp_path):
        return tmp_path / "data" / "catalog.json"

    @pytest.fixture
    def settings(self, snapshot_path):
        return CatalogSettings(persist_path=snapshot_path, flush_delay_seconds=60)

    @pytest.fixture
    def descriptor_file(self, tmp_path):
        path = tmp_path / "catalog-info.yaml"
        path.write_text(CATALOG_YAML, encoding="utf-8")
        return path

    @pytest.fixture
    def invoke(self, settings, capsys):
        """Run a command and return (exit code, parsed stdout)."""

        def _invoke(*argv):
            code = run(list(argv), settings)
            out = capsys.readouterr().out
            return code, json.loads(out) if out.strip() else None

        return _invoke

    @pytest.fixture
    def ingested(self, invoke, descriptor_file):
        code, result = invoke("ingest", str(descriptor_file))
        assert code == 0
        return result

    def test_ingest_writes_snapshot(self, ingested, snapshot_path):
        """Ingest flushes before exiting."""
        assert len(ingested["upserted"]) == 3
        assert snapshot_path.exists()

    def test_get(self, invoke, ingested):
        code, entity = invoke("get", "component:default/svc-a")

        assert code == 0
        assert entity["spec"]["owner"] == "team-x"
        assert entity["metadata"]["uid"]

    def test_get_missing(self, invoke, ingested):
        code, entity = invoke("get", "component:default/nope")

        assert code == 1
        assert entity is None

    def test_query(self, invoke, ingested):
        code, page = invoke(
            "query",
            "--filter",
            "spec.owner=team-x",
            "--order-field",
            "metadata.name,desc",
            "--limit",
            "1",
        )

        assert code == 0
        assert page["totalItems"] == 2
        assert [e["metadata"]["name"] for e in page["items"]] == ["svc-a-api"]
        assert page["pageInfo"] == {"nextCursor": "1"}

    def test_query_invalid_limit(self, invoke, ingested):
        code, _ = invoke("query", "--limit", "0")
        assert code == 1

    def test_query_invalid_order(self, invoke, ingested):
        code, _ = invoke("query", "--order-field", "metadata.name,up")
        assert code == 1

    def test_facets(self, invoke, ingested):
        code, result = invoke("facets", "--facet", "spec.owner")

        assert code == 0
        assert result["facets"]["spec.owner"] == [
            {"value": "team-x", "count": 2},
            {"value": "team-y", "count": 1},
        ]

    def test_stats_and_locations(self, invoke, ingested, descriptor_file):
        code, stats = invoke("stats")
        assert code == 0
        assert stats["entity_count"] == 3
        assert stats["location_count"] == 1
        assert stats["persistent"] is True

        code, locations = invoke("locations")
        assert code == 0
        assert locations[0]["target"] == str(descriptor_file.resolve())

    def test_remove(self, invoke, ingested):
        """Removal persists across runs."""
        code, result = invoke("remove", "component:default/svc-b")
        assert code == 0
        assert result == {"removed": True}

        code, _ = invoke("get", "component:default/svc-b")
        assert code == 1

        code, result = invoke("remove", "component:default/svc-b")
        assert code == 1
        assert result == {"removed": False}

    def test_reingest_is_stable(self, invoke, ingested, descriptor_file):
        """Re-ingesting an unchanged file keeps uids and removes nothing."""
        _, before = invoke("get", "component:default/svc-a")
        code, result = invoke("ingest", str(descriptor_file))
        _, after = invoke("get", "component:default/svc-a")

        assert code == 0
        assert result["removed"] == []
        assert after["metadata"]["uid"] == before["metadata"]["uid"]
        assert after["metadata"]["etag"] != before["metadata"]["etag"]

    def test_ingest_missing_file(self, invoke, tmp_path):
        code, result = invoke("ingest", str(tmp_path / "absent.yaml"))
        assert code == 1
        assert result is None

    def test_snapshot_override(self, tmp_path, descriptor_file, capsys):
        """--snapshot points the run at another file."""
        other = tmp_path / "other.json"
        settings = CatalogSettings(in_memory=True)

        assert run(["--snapshot", str(other), "ingest", str(descriptor_file)], settings) == 0
        capsys.readouterr()

        assert other.exists()
        assert run(["--snapshot", str(other), "stats"], settings) == 0
        assert json.loads(capsys.readouterr().out)["entity_count"] == 3

    def test_unwritable_snapshot_fails(self, tmp_path, descriptor_file, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        settings = CatalogSettings(persist_path=blocker / "catalog.json")

        code = run(["ingest", str(descriptor_file)], settings)

        assert code == 1
        assert "could not be saved" in capsys.readouterr().err
