"""Tests for floor-plan providers and the ingestion pipeline."""

import json
import os
from datetime import datetime

import pytest
import requests

from planmatch.exceptions import ConfigurationError, FloorplanSourceError, MissingFieldError
from planmatch.indexing.ingestion import StructureIngestor, create_floorplan_source
from planmatch.indexing.providers import (
    DirectoryFloorplanProvider,
    HttpFloorplanProvider,
    read_floorplan_file,
)
from planmatch.indexing.repositories import ProjectRepository
from tests.factories import floorplan_document


def _write_project(root, project_id, documents, mtime):
    path = root / project_id / "floorplans.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(documents), encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture()
def store(tmp_path):
    root = tmp_path / "store"
    _write_project(root, "old", [floorplan_document()], 1_000_000)
    _write_project(root, "new", [floorplan_document()], 3_000_000)
    _write_project(root, "empty", [], 2_000_000)
    return root


class TestDirectoryProvider:
    """Local floor-plan store."""

    def test_recent_ids_by_modification_time(self, store):
        provider = DirectoryFloorplanProvider(str(store))

        assert provider.find_recent_ids(10) == ["new", "empty", "old"]
        assert provider.find_recent_ids(1) == ["new"]
        assert provider.find_recent_ids(0) == []

    def test_missing_project_has_no_floorplans(self, store):
        assert DirectoryFloorplanProvider(str(store)).get_floorplans("unknown") == []

    def test_unreadable_document(self, store):
        (store / "broken").mkdir()
        (store / "broken" / "floorplans.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(FloorplanSourceError):
            DirectoryFloorplanProvider(str(store)).get_floorplans("broken")


class _Response:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._payload = payload

    def json(self):
        return self._payload


class _Session:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.response


class _ProjectStore:
    """Serves floor-plan documents per project id, 404 for unknown projects."""

    def __init__(self, documents):
        self.documents = documents

    def get(self, url, timeout=None):
        project_id = url.split("/projects/")[1].split("/")[0]
        if project_id not in self.documents:
            return _Response(404)
        return _Response(200, self.documents[project_id])


class TestHttpProvider:
    """CDN floor-plan store."""

    def test_fetches_project_document(self):
        session = _Session(_Response(200, [floorplan_document()]))
        provider = HttpFloorplanProvider("https://cdn.example.com/", session=session)

        floorplans = provider.get_floorplans("p1")

        assert session.urls == ["https://cdn.example.com/projects/p1/floorplans.json"]
        assert [f.key for f in floorplans] == ["floor-1"]

    def test_missing_document_is_empty(self):
        provider = HttpFloorplanProvider("https://cdn.example.com", session=_Session(_Response(404)))

        assert provider.get_floorplans("p1") == []

    def test_server_error(self):
        provider = HttpFloorplanProvider("https://cdn.example.com", session=_Session(_Response(503)))

        with pytest.raises(FloorplanSourceError) as exc_info:
            provider.get_floorplans("p1")

        assert exc_info.value.details["status"] == "503"

    def test_connection_error(self):
        session = _Session(error=requests.ConnectionError("refused"))
        provider = HttpFloorplanProvider("https://cdn.example.com", session=session)

        with pytest.raises(FloorplanSourceError):
            provider.get_floorplans("p1")


class TestStructureIngestor:
    """Ingestion pipeline."""

    def test_ingest_project(self, db_manager):
        ingestor = StructureIngestor(db_manager)

        floors, rooms = ingestor.ingest_project("p1", [])

        assert floors == [] and rooms == []
        assert db_manager.get_database_stats()["floors"] == 0

    def test_ingest_project_from_source(self, db_manager, store):
        provider = DirectoryFloorplanProvider(str(store))
        ingestor = StructureIngestor(db_manager, provider, provider)

        result = ingestor.ingest_project_from_source("new")

        assert result.project_ids == ["new"]
        assert result.floors_saved == 1
        assert result.rooms_saved == 2
        assert ingestor.floors.find_by_id("new_floor-1").room_count == 2

    def test_reingest_keeps_single_copy(self, db_manager, store):
        provider = DirectoryFloorplanProvider(str(store))
        ingestor = StructureIngestor(db_manager, provider, provider)

        ingestor.ingest_project_from_source("new")
        ingestor.ingest_project_from_source("new")

        assert db_manager.get_database_stats()["rooms"] == 2

    def test_refresh_skips_projects_without_floorplans(self, db_manager, store):
        provider = DirectoryFloorplanProvider(str(store))
        ingestor = StructureIngestor(db_manager, provider, provider)

        result = ingestor.refresh_recent_projects(limit=10)

        assert result.project_ids == ["new", "old"]
        assert result.skipped_project_ids == ["empty"]
        assert result.floors_saved == 2
        assert result.rooms_saved == 4
        assert db_manager.get_database_stats()["floor_projects"] == 2

    def test_refresh_respects_limit(self, db_manager, store):
        provider = DirectoryFloorplanProvider(str(store))
        ingestor = StructureIngestor(db_manager, provider, provider)

        result = ingestor.refresh_recent_projects(limit=1)

        assert result.project_ids == ["new"]

    def test_malformed_project_aborts_refresh(self, db_manager, store):
        broken = floorplan_document()
        del broken["area"]
        _write_project(store, "broken", [broken], 4_000_000)
        provider = DirectoryFloorplanProvider(str(store))
        ingestor = StructureIngestor(db_manager, provider, provider)

        with pytest.raises(MissingFieldError):
            ingestor.refresh_recent_projects(limit=10)

        assert db_manager.get_database_stats()["floors"] == 0

    def test_source_required(self, db_manager):
        ingestor = StructureIngestor(db_manager)

        with pytest.raises(ConfigurationError):
            ingestor.ingest_project_from_source("p1")
        with pytest.raises(ConfigurationError):
            ingestor.refresh_recent_projects()


def test_create_floorplan_source(tmp_path, db_manager):
    provider, lister = create_floorplan_source(
        {"floorplans": {"local_dir": str(tmp_path)}}, db_manager
    )
    assert isinstance(provider, DirectoryFloorplanProvider)
    assert lister is provider

    provider, lister = create_floorplan_source(
        {"floorplans": {"cdn_url": "https://cdn.example.com"}}, db_manager
    )
    assert isinstance(provider, HttpFloorplanProvider)
    assert provider.base_url == "https://cdn.example.com"
    assert isinstance(lister, ProjectRepository)


class TestCatalogueRefresh:
    """Bulk refresh with floor plans from the CDN and recency from the project catalogue."""

    @pytest.fixture()
    def ingestor(self, db_manager):
        provider, lister = create_floorplan_source(
            {"floorplans": {"cdn_url": "https://cdn.example.com"}}, db_manager
        )
        provider.session = _ProjectStore({
            "p1": [floorplan_document()],
            "p3": [floorplan_document()],
        })
        lister.touch("p1", updated_at=datetime(2025, 1, 1))
        lister.touch("p2", updated_at=datetime(2025, 3, 1))
        lister.touch("p3", updated_at=datetime(2025, 2, 1))
        return StructureIngestor(db_manager, provider, lister)

    def test_refresh_follows_catalogue_order(self, ingestor, db_manager):
        result = ingestor.refresh_recent_projects(limit=300)

        assert result.project_ids == ["p3", "p1"]
        assert result.skipped_project_ids == ["p2"]
        assert result.floors_saved == 2
        assert db_manager.get_database_stats()["floor_projects"] == 2

    def test_refresh_respects_limit(self, ingestor):
        result = ingestor.refresh_recent_projects(limit=2)

        assert result.project_ids == ["p3"]
        assert result.skipped_project_ids == ["p2"]

    def test_ingest_marks_project_updated(self, ingestor):
        ingestor.ingest_project_from_source("p1")

        assert ingestor.projects.find_recent_ids(1) == ["p1"]


def test_read_floorplan_file_rejects_malformed_json(tmp_path):
    path = tmp_path / "floorplans.json"
    path.write_text("[{", encoding="utf-8")

    with pytest.raises(FloorplanSourceError):
        read_floorplan_file(path)


def test_read_floorplan_file_rejects_non_list_payload(tmp_path):
    path = tmp_path / "floorplans.json"
    path.write_text(json.dumps("floorplans"), encoding="utf-8")

    with pytest.raises(FloorplanSourceError):
        read_floorplan_file(path)
