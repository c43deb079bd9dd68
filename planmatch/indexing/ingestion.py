"""
Structure ingestion pipeline.
Builds structure records from floor-plan documents and upserts them.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from .database import DatabaseManager
from .providers import (
    DirectoryFloorplanProvider,
    FloorplanProvider,
    HttpFloorplanProvider,
    RecentProjectsLister,
)
from .repositories import FloorStructureRepository, ProjectRepository, RoomStructureRepository
from ..config import get_cdn_url
from ..core.floorplan import Floorplan
from ..core.records import FloorStructureRecord, RoomStructureRecord
from ..core.structure_builder import build_structure_records
from ..exceptions import ConfigurationError

DEFAULT_RECENT_LIMIT = 300


@dataclass
class IngestionResult:
    """Outcome of an ingestion run."""
    project_ids: List[str] = field(default_factory=list)
    skipped_project_ids: List[str] = field(default_factory=list)
    floors_saved: int = 0
    rooms_saved: int = 0
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_ids": self.project_ids,
            "skipped_project_ids": self.skipped_project_ids,
            "floors_saved": self.floors_saved,
            "rooms_saved": self.rooms_saved,
            "processing_time": self.processing_time,
        }


class StructureIngestor:
    """Turns project floor plans into stored structure records."""

    def __init__(self,
                 database_manager: DatabaseManager,
                 floorplan_provider: Optional[FloorplanProvider] = None,
                 project_lister: Optional[RecentProjectsLister] = None):
        """
        Initialize ingestor.

        Args:
            database_manager: Database receiving the records
            floorplan_provider: Source of floor-plan documents per project
            project_lister: Source of recently updated project ids
        """
        self.floors = FloorStructureRepository(database_manager)
        self.rooms = RoomStructureRepository(database_manager)
        self.projects = ProjectRepository(database_manager)
        self.floorplan_provider = floorplan_provider
        self.project_lister = project_lister

    def ingest_project(
            self,
            project_id: str,
            floorplans: Sequence[Floorplan],
    ) -> Tuple[List[FloorStructureRecord], List[RoomStructureRecord]]:
        """Build and save the records of one project's floor plans.

        The project is also marked as updated in the project catalogue, which
        orders bulk refresh when no directory store is configured.
        """
        floor_records, room_records = build_structure_records(project_id, floorplans)

        self.floors.save_all(floor_records)
        self.rooms.save_all(room_records)
        self.projects.touch(project_id)

        logger.info(
            f"Ingested project {project_id}: "
            f"{len(floor_records)} floors, {len(room_records)} rooms"
        )
        return floor_records, room_records

    def ingest_project_from_source(self, project_id: str) -> IngestionResult:
        """Fetch a project's floor plans from the provider and ingest them."""
        provider = self._require_provider()
        start_time = time.time()

        floorplans = provider.get_floorplans(project_id)
        floor_records, room_records = self.ingest_project(project_id, floorplans)

        return IngestionResult(
            project_ids=[project_id],
            floors_saved=len(floor_records),
            rooms_saved=len(room_records),
            processing_time=time.time() - start_time,
        )

    def refresh_recent_projects(self, limit: int = DEFAULT_RECENT_LIMIT) -> IngestionResult:
        """
        Rebuild records for the most recently updated projects.

        Records from every project are accumulated and saved together at the
        end. Projects without floor plans are skipped; a malformed project
        aborts the run before anything is saved.

        Args:
            limit: Number of recent projects to process

        Returns:
            Summary of processed and skipped projects
        """
        provider = self._require_provider()
        if self.project_lister is None:
            raise ConfigurationError("No recent-projects lister configured")

        start_time = time.time()
        result = IngestionResult()
        floor_records: List[FloorStructureRecord] = []
        room_records: List[RoomStructureRecord] = []

        project_ids = self.project_lister.find_recent_ids(limit)
        logger.info(f"Refreshing structures for {len(project_ids)} recent projects")

        for project_id in project_ids:
            floorplans = provider.get_floorplans(project_id)
            if not floorplans:
                logger.debug(f"Project {project_id} has no floorplans, skipping")
                result.skipped_project_ids.append(project_id)
                continue

            project_floors, project_rooms = build_structure_records(project_id, floorplans)
            floor_records.extend(project_floors)
            room_records.extend(project_rooms)
            result.project_ids.append(project_id)

        result.floors_saved = self.floors.save_all(floor_records)
        result.rooms_saved = self.rooms.save_all(room_records)
        result.processing_time = time.time() - start_time

        logger.info(
            f"Refresh complete: {len(result.project_ids)} projects, "
            f"{result.floors_saved} floors, {result.rooms_saved} rooms "
            f"in {result.processing_time:.2f}s"
        )
        return result

    def _require_provider(self) -> FloorplanProvider:
        if self.floorplan_provider is None:
            raise ConfigurationError("No floorplan provider configured")
        return self.floorplan_provider


def create_floorplan_source(config: Dict[str, Any], database_manager: DatabaseManager):
    """
    Floor-plan provider and recent-projects lister selected by config.

    A local directory serves both roles. Otherwise floor plans come from the
    CDN and recent projects from the project catalogue table.
    """
    section = config.get('floorplans', {}) or {}
    local_dir = section.get('local_dir')
    if local_dir:
        provider = DirectoryFloorplanProvider(local_dir)
        return provider, provider

    provider = HttpFloorplanProvider(get_cdn_url(config), timeout=float(section.get('timeout', 10.0)))
    return provider, ProjectRepository(database_manager)
