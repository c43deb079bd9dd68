"""
Floor-plan document model.
Parses the camelCase floor-plan JSON served by the floor-plan store into the
subset of fields used for structure extraction.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _float_or_default(value: Any, default: float = 0.0) -> float:
    """Numbers may arrive as strings; anything unparseable becomes the default."""
    parsed = _optional_float(value)
    return default if parsed is None else parsed


@dataclass
class Point:
    """A coordinate on the horizontal plane. ``y`` is height and unused by geometry."""
    x: Optional[float] = None
    z: Optional[float] = None
    y: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        return cls(
            x=_optional_float(data.get('x')),
            z=_optional_float(data.get('z')),
            y=_optional_float(data.get('y')),
        )


@dataclass
class Room:
    """A room of a floor plan with its inner boundary."""
    archi_id: Optional[str]
    type: int = 0
    area: float = 0.0
    label: str = ""
    inner_points: List[Point] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Room":
        raw_type = data.get('type')
        try:
            room_type = int(raw_type) if raw_type is not None else 0
        except (TypeError, ValueError):
            logger.debug(f"Room {data.get('archiId')} has non-numeric type {raw_type!r}")
            room_type = 0

        return cls(
            archi_id=data.get('archiId'),
            type=room_type,
            area=_float_or_default(data.get('area')),
            label=data.get('label') or "",
            inner_points=[Point.from_dict(p) for p in data.get('innerPoints') or []],
        )


@dataclass
class Floorplan:
    """A single floor plan of a project.

    ``title``, ``area`` and ``rooms`` are optional in stored documents; the
    structure builder decides whether their absence is an error.
    """
    id: str
    archi_id: Optional[str] = None
    title: Optional[str] = None
    area: Optional[float] = None
    rooms: Optional[List[Room]] = None

    @property
    def key(self) -> str:
        """Identifier used in structure record ids."""
        return self.archi_id or self.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Floorplan":
        rooms = data.get('rooms')
        return cls(
            id=str(data.get('id') or data.get('_id') or ""),
            archi_id=data.get('archiId'),
            title=data.get('title'),
            area=_optional_float(data.get('area')),
            rooms=None if rooms is None else [Room.from_dict(r) for r in rooms],
        )


def parse_floorplans(payload: Any) -> List[Floorplan]:
    """Parse a floor-plan list payload (list of documents or ``{"floorplans": [...]}``)."""
    if isinstance(payload, dict):
        payload = payload.get('floorplans') or []
    if not isinstance(payload, list):
        raise ValueError("floor-plan payload must be a list of documents")
    return [Floorplan.from_dict(item) for item in payload]
