"""
Geometry extraction for floor plans and rooms.
Computes axis-aligned bounding boxes and the ratios derived from them.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List

import numpy as np

from .floorplan import Floorplan, Point, Room
from ..exceptions import EmptyGeometryError, RoomNotInFloorplanError

# Stored coordinates are half-extents of the source unit.
COORDINATE_SCALE = 2.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box with derived shape ratios."""
    width: float
    height: float
    area: float
    aspect: float
    aspect_ratio_inverted: float


def compute_bounding_box(points: Iterable[Point]) -> BoundingBox:
    """
    Compute the bounding box of a set of points.

    Each axis uses every point that carries a value for it, so a point missing
    ``z`` still widens the box along ``x``.

    Args:
        points: Points on the horizontal plane

    Returns:
        Bounding box; ``aspect`` is infinite when height is 0 and
        ``aspect_ratio_inverted`` is infinite when either side is 0

    Raises:
        EmptyGeometryError: If there are no points or no point has both
            coordinates
    """
    points = list(points)
    if not points:
        raise EmptyGeometryError("Inner points must not be empty")

    # Missing coordinates become NaN so each axis can be reduced on its own.
    coords = np.array(
        [[np.nan if p.x is None else p.x, np.nan if p.z is None else p.z] for p in points],
        dtype=np.float64,
    )
    present = ~np.isnan(coords)
    if not present.all(axis=1).any():
        raise EmptyGeometryError("Unable to compute bounding box without coordinates")

    xs = coords[present[:, 0], 0]
    zs = coords[present[:, 1], 1]

    width = float(xs.max() - xs.min()) * COORDINATE_SCALE
    height = float(zs.max() - zs.min()) * COORDINATE_SCALE
    area = width * height

    aspect = width / height if height != 0 else math.inf

    if width != 0 and height != 0:
        aspect_ratio_inverted = max(width, height) / min(width, height)
    else:
        aspect_ratio_inverted = math.inf

    return BoundingBox(
        width=width,
        height=height,
        area=area,
        aspect=aspect,
        aspect_ratio_inverted=aspect_ratio_inverted,
    )


def bounding_box_for_floor(floorplan: Floorplan) -> BoundingBox:
    """Bounding box over the inner points of every room of a floor plan."""
    pool: List[Point] = [
        point
        for room in floorplan.rooms or []
        for point in room.inner_points
    ]
    if not pool:
        raise EmptyGeometryError(
            "Inner points must not be empty",
            {"floorplan_id": floorplan.id},
        )
    return compute_bounding_box(pool)


def bounding_box_for_room(floorplan: Floorplan, room: Room) -> BoundingBox:
    """Bounding box of a single room, which must belong to ``floorplan``."""
    if room not in (floorplan.rooms or []):
        raise RoomNotInFloorplanError(
            "Room is not part of the provided floorplan",
            {"floorplan_id": floorplan.id, "room_id": str(room.archi_id)},
        )

    if not room.inner_points:
        raise EmptyGeometryError(
            "Inner points must not be empty",
            {"floorplan_id": floorplan.id, "room_id": str(room.archi_id)},
        )

    return compute_bounding_box(room.inner_points)
