"""
Structure records: the flat, storable feature rows used for similarity search.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict


def structure_id(project_id: str, archi_id: str) -> str:
    """Composite natural key of a floor or room record."""
    return f"{project_id}_{archi_id}"


@dataclass
class FloorStructureRecord:
    """Feature record of one floor plan of one project."""
    id: str
    title: str
    project_id: str
    area: float
    room_count: int
    bounding_box_width: float
    bounding_box_height: float
    bounding_box_area: float
    bounding_box_aspect: float
    bounding_box_aspect_ratio_inverted: float
    rectangularity: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RoomStructureRecord:
    """Feature record of one room of one floor plan."""
    id: str
    project_id: str
    type: int
    area: float
    bounding_box_width: float
    bounding_box_height: float
    bounding_box_area: float
    bounding_box_aspect: float
    bounding_box_aspect_ratio_inverted: float
    rectangularity: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
