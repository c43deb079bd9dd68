"""
Structure record builder.
Maps floor-plan documents and their rooms into flat feature records.
"""

from typing import List, Sequence, Tuple

from loguru import logger

from .floorplan import Floorplan
from .geometry import bounding_box_for_floor, bounding_box_for_room
from .records import FloorStructureRecord, RoomStructureRecord, structure_id
from ..exceptions import MissingFieldError

# Floor-plan area is declared in m^2 while bounding boxes are in mm^2.
FLOOR_AREA_UNIT_SCALE = 1_000_000.0


def floor_rectangularity(area: float, bounding_box_area: float) -> float:
    if bounding_box_area > 0:
        return area * FLOOR_AREA_UNIT_SCALE / bounding_box_area
    return 0.0


def room_rectangularity(area: float, bounding_box_area: float) -> float:
    if bounding_box_area > 0:
        return area / bounding_box_area
    return 0.0


def build_floor_structure_records(project_id: str,
                                  floorplans: Sequence[Floorplan]) -> List[FloorStructureRecord]:
    """Build one floor record per floor plan."""
    records = []

    for floorplan in floorplans:
        if floorplan.area is None:
            raise MissingFieldError("area", floorplan.id)
        if floorplan.title is None:
            raise MissingFieldError("title", floorplan.id)
        if floorplan.rooms is None:
            raise MissingFieldError("rooms", floorplan.id)

        bounding_box = bounding_box_for_floor(floorplan)

        records.append(FloorStructureRecord(
            id=structure_id(project_id, floorplan.key),
            title=floorplan.title,
            project_id=project_id,
            area=floorplan.area,
            room_count=len(floorplan.rooms),
            bounding_box_width=bounding_box.width,
            bounding_box_height=bounding_box.height,
            bounding_box_area=bounding_box.area,
            bounding_box_aspect=bounding_box.aspect,
            bounding_box_aspect_ratio_inverted=bounding_box.aspect_ratio_inverted,
            rectangularity=floor_rectangularity(floorplan.area, bounding_box.area),
        ))

    return records


def build_room_structure_records(project_id: str,
                                 floorplans: Sequence[Floorplan]) -> List[RoomStructureRecord]:
    """Build one room record per room across all floor plans."""
    records = []

    for floorplan in floorplans:
        if floorplan.rooms is None:
            raise MissingFieldError("rooms", floorplan.id)

        for room in floorplan.rooms:
            if not room.archi_id:
                raise MissingFieldError("rooms.archiId", floorplan.id)

            bounding_box = bounding_box_for_room(floorplan, room)

            records.append(RoomStructureRecord(
                id=structure_id(project_id, room.archi_id),
                project_id=project_id,
                type=room.type,
                area=room.area,
                bounding_box_width=bounding_box.width,
                bounding_box_height=bounding_box.height,
                bounding_box_area=bounding_box.area,
                bounding_box_aspect=bounding_box.aspect,
                bounding_box_aspect_ratio_inverted=bounding_box.aspect_ratio_inverted,
                rectangularity=room_rectangularity(room.area, bounding_box.area),
            ))

    return records


def build_structure_records(
        project_id: str,
        floorplans: Sequence[Floorplan],
) -> Tuple[List[FloorStructureRecord], List[RoomStructureRecord]]:
    """
    Build all floor and room records of a project.

    Any malformed floor plan aborts the whole project; nothing is skipped.

    Args:
        project_id: Project the floor plans belong to
        floorplans: Floor-plan documents in provider order

    Returns:
        Tuple of (floor records, room records)
    """
    floor_records = build_floor_structure_records(project_id, floorplans)
    room_records = build_room_structure_records(project_id, floorplans)

    logger.debug(
        f"Built {len(floor_records)} floor and {len(room_records)} room records "
        f"for project {project_id}"
    )
    return floor_records, room_records
