"""
Floor-plan sources.
Adapters for the floor-plan store (HTTP/CDN) and a local directory store. The
directory store also lists its recently updated projects for bulk refresh.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

import requests
from loguru import logger

from ..core.floorplan import Floorplan, parse_floorplans
from ..exceptions import FloorplanSourceError


class FloorplanProvider(ABC):
    """Returns the ordered floor-plan documents of a project."""

    @abstractmethod
    def get_floorplans(self, project_id: str) -> List[Floorplan]:
        ...


class RecentProjectsLister(ABC):
    """Returns project ids ordered by most recent update."""

    @abstractmethod
    def find_recent_ids(self, limit: int) -> List[str]:
        ...


def floorplan_key(project_id: str) -> str:
    return f"projects/{project_id}/floorplans.json"


def read_floorplan_file(path: Union[str, Path]) -> List[Floorplan]:
    """Parse a floor-plan JSON file; unreadable or malformed files raise FloorplanSourceError."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return parse_floorplans(json.load(f))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read floorplans from {path}: {e}")
        raise FloorplanSourceError("Failed to read floorplans", {"path": str(path)}) from e


class HttpFloorplanProvider(FloorplanProvider):
    """Fetches ``projects/<id>/floorplans.json`` from the CDN in front of the content store."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_floorplans(self, project_id: str) -> List[Floorplan]:
        url = f"{self.base_url}/{floorplan_key(project_id)}"

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch floorplans from {url}: {e}")
            raise FloorplanSourceError("Failed to fetch floorplans", {"url": url}) from e

        if response.status_code == 404:
            logger.debug(f"No floorplans stored for project {project_id}")
            return []
        if not response.ok:
            logger.error(f"Failed to fetch floorplans from {url}: status {response.status_code}")
            raise FloorplanSourceError(
                "Failed to fetch floorplans",
                {"url": url, "status": str(response.status_code)},
            )

        try:
            return parse_floorplans(response.json())
        except ValueError as e:
            raise FloorplanSourceError("Invalid floorplan payload", {"url": url}) from e


class DirectoryFloorplanProvider(FloorplanProvider, RecentProjectsLister):
    """Reads ``<root>/<project_id>/floorplans.json`` files.

    Recency is the modification time of each project's floor-plan file.
    """

    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, project_id: str) -> Path:
        return self.root / project_id / "floorplans.json"

    def get_floorplans(self, project_id: str) -> List[Floorplan]:
        path = self._path(project_id)
        if not path.exists():
            return []
        return read_floorplan_file(path)

    def find_recent_ids(self, limit: int) -> List[str]:
        if limit <= 0 or not self.root.exists():
            return []

        files = [p for p in self.root.glob("*/floorplans.json") if p.is_file()]
        files.sort(key=lambda p: (-p.stat().st_mtime, p.parent.name))
        return [p.parent.name for p in files[:limit]]
