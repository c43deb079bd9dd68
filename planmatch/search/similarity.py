"""
Similarity query engine for floors and rooms.
Band-filters candidate structure records, scores them with a weighted
normalised distance and returns the K closest. Filtering, scoring, per-project
de-duplication and ordering are composed as SQLAlchemy expressions and run by
the database in a single query.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from loguru import logger
from sqlalchemy import Float, Integer, and_, func
from sqlalchemy.sql.elements import ColumnElement

from .scoring import explain_score, floor_score_terms, room_score_terms
from .similarity_config import FloorSimilarityConfig, RoomSimilarityConfig, SimilarityConfig
from ..core.records import FloorStructureRecord, RoomStructureRecord
from ..indexing.database import Base, DatabaseManager, FloorStructure, RoomStructure
from ..indexing.repositories import FloorStructureRepository, RoomStructureRepository

DEFAULT_K = 10


@dataclass
class SimilarFloor:
    """A floor candidate with its similarity score (lower is closer)."""
    record: FloorStructureRecord
    score: float


@dataclass
class SimilarRoom:
    """A room candidate with its similarity score (lower is closer)."""
    record: RoomStructureRecord
    score: float


def _abs(expression) -> ColumnElement:
    return func.abs(expression, type_=Float)


def floor_conditions(reference: FloorStructureRecord,
                     area_from: float,
                     area_to: float,
                     config: FloorSimilarityConfig) -> ColumnElement:
    """Band filter a floor candidate must pass."""
    aspect_low, aspect_high = config.aspect_band.bounds(reference.bounding_box_aspect)
    return and_(
        FloorStructure.project_id != reference.project_id,
        FloorStructure.area.between(area_from, area_to),
        FloorStructure.bounding_box_aspect.between(aspect_low, aspect_high),
        _abs(FloorStructure.rectangularity - reference.rectangularity)
        <= config.rectangularity_tolerance,
        func.abs(FloorStructure.room_count - reference.room_count, type_=Integer)
        <= config.room_count_tolerance,
    )


def floor_score(reference: FloorStructureRecord,
                config: FloorSimilarityConfig) -> ColumnElement:
    """Weighted distance of a floor candidate from the reference."""
    weights = config.weights
    area_norm = float(max(reference.area, config.area_floor))
    room_norm = float(max(reference.room_count, config.room_count_floor))
    room_diff = _abs(FloorStructure.room_count - reference.room_count)

    return (
        weights.area * (_abs(FloorStructure.area - reference.area) / area_norm)
        + weights.aspect * _abs(FloorStructure.bounding_box_aspect - reference.bounding_box_aspect)
        + weights.rectangularity * _abs(FloorStructure.rectangularity - reference.rectangularity)
        + weights.room_count * (room_diff / (room_diff + room_norm))
    )


def room_conditions(reference: RoomStructureRecord,
                    area_from: float,
                    area_to: float,
                    config: RoomSimilarityConfig,
                    match_type: bool) -> ColumnElement:
    """Band filter a room candidate must pass."""
    aspect_low, aspect_high = config.aspect_band.bounds(
        reference.bounding_box_aspect_ratio_inverted
    )
    conditions = [
        RoomStructure.project_id != reference.project_id,
        RoomStructure.area.between(area_from, area_to),
        RoomStructure.bounding_box_aspect_ratio_inverted.between(aspect_low, aspect_high),
        _abs(RoomStructure.rectangularity - reference.rectangularity)
        <= config.rectangularity_tolerance,
    ]
    if match_type:
        conditions.append(RoomStructure.type == reference.type)
    return and_(*conditions)


def room_score(reference: RoomStructureRecord,
               config: RoomSimilarityConfig) -> ColumnElement:
    """Weighted distance of a room candidate from the reference."""
    weights = config.weights
    area_norm = float(max(reference.area, config.area_floor))

    return (
        weights.area * (_abs(RoomStructure.area - reference.area) / area_norm)
        + weights.aspect_ratio_inverted * _abs(
            RoomStructure.bounding_box_aspect_ratio_inverted
            - reference.bounding_box_aspect_ratio_inverted
        )
        + weights.rectangularity * _abs(RoomStructure.rectangularity - reference.rectangularity)
    )


class SimilarityEngine:
    """Finds the floors and rooms most similar to a stored reference."""

    def __init__(self,
                 database_manager: DatabaseManager,
                 config: Optional[SimilarityConfig] = None):
        """
        Initialize similarity engine.

        Args:
            database_manager: Database holding the structure records
            config: Bands, tolerances and weights; defaults when omitted
        """
        self.database_manager = database_manager
        self.config = config or SimilarityConfig()
        self.floors = FloorStructureRepository(database_manager)
        self.rooms = RoomStructureRepository(database_manager)

    def find_similar_floors(self,
                            floor_id: str,
                            area_from: Optional[float] = None,
                            area_to: Optional[float] = None,
                            k: int = DEFAULT_K) -> List[SimilarFloor]:
        """
        Top-K floors similar to a stored floor.

        Args:
            floor_id: Id of the reference floor record
            area_from: Lower area bound; defaults to the reference area band
            area_to: Upper area bound; defaults to the reference area band
            k: Maximum number of results

        Returns:
            At most one floor per project, ascending by score then id

        Raises:
            NotFoundError: If the reference floor does not exist
        """
        reference = self.floors.find_by_id(floor_id)
        return self.rank_floors(reference, area_from, area_to, k)

    def rank_floors(self,
                    reference: FloorStructureRecord,
                    area_from: Optional[float] = None,
                    area_to: Optional[float] = None,
                    k: int = DEFAULT_K) -> List[SimilarFloor]:
        """Rank stored floors against an in-memory reference record."""
        config = self.config.floor
        default_from, default_to = config.area_band.bounds(reference.area)
        area_from = default_from if area_from is None else area_from
        area_to = default_to if area_to is None else area_to

        if k <= 0:
            return []
        if not math.isfinite(reference.bounding_box_aspect):
            logger.info(f"Floor {reference.id} has degenerate geometry, no comparable floors")
            return []

        rows = self._rank(
            FloorStructure,
            floor_conditions(reference, area_from, area_to, config),
            floor_score(reference, config),
            k,
            dedup_per_project=config.dedup_per_project,
        )
        results = [SimilarFloor(record=self.floors.to_record(row), score=score) for row, score in rows]

        logger.info(
            f"Similar floors for {reference.id} in area [{area_from:.2f}, {area_to:.2f}]: "
            f"{len(results)} results"
        )
        return results

    def find_similar_rooms(self,
                           room_id: str,
                           area_from: Optional[float] = None,
                           area_to: Optional[float] = None,
                           k: int = DEFAULT_K,
                           match_type: Optional[bool] = None) -> List[SimilarRoom]:
        """
        Top-K rooms similar to a stored room.

        Area bounds are in the stored room unit (mm^2). Rooms are not
        de-duplicated per project.

        Args:
            room_id: Id of the reference room record
            area_from: Lower area bound; defaults to the reference area band
            area_to: Upper area bound; defaults to the reference area band
            k: Maximum number of results
            match_type: Restrict to the reference room type; config default when None

        Raises:
            NotFoundError: If the reference room does not exist
        """
        reference = self.rooms.find_by_id(room_id)
        return self.rank_rooms(reference, area_from, area_to, k, match_type)

    def rank_rooms(self,
                   reference: RoomStructureRecord,
                   area_from: Optional[float] = None,
                   area_to: Optional[float] = None,
                   k: int = DEFAULT_K,
                   match_type: Optional[bool] = None) -> List[SimilarRoom]:
        """Rank stored rooms against an in-memory reference record."""
        config = self.config.room
        default_from, default_to = config.area_band.bounds(reference.area)
        area_from = default_from if area_from is None else area_from
        area_to = default_to if area_to is None else area_to
        match_type = config.match_type if match_type is None else match_type

        if k <= 0:
            return []
        if not math.isfinite(reference.bounding_box_aspect_ratio_inverted):
            logger.info(f"Room {reference.id} has degenerate geometry, no comparable rooms")
            return []

        rows = self._rank(
            RoomStructure,
            room_conditions(reference, area_from, area_to, config, match_type),
            room_score(reference, config),
            k,
            dedup_per_project=False,
        )
        results = [SimilarRoom(record=self.rooms.to_record(row), score=score) for row, score in rows]

        logger.info(
            f"Similar rooms for {reference.id} in area [{area_from:.0f}, {area_to:.0f}]: "
            f"{len(results)} results"
        )
        return results

    def explain_floor(self, reference: FloorStructureRecord,
                      candidate: FloorStructureRecord) -> Dict[str, Any]:
        """Per-term breakdown of a floor candidate's score."""
        return explain_score(floor_score_terms(reference, candidate, self.config.floor))

    def explain_room(self, reference: RoomStructureRecord,
                     candidate: RoomStructureRecord) -> Dict[str, Any]:
        """Per-term breakdown of a room candidate's score."""
        return explain_score(room_score_terms(reference, candidate, self.config.room))

    def _rank(self,
              model: Type[Base],
              conditions: ColumnElement,
              score: ColumnElement,
              k: int,
              dedup_per_project: bool):
        """Filter, score and order ``model`` rows; truncation happens last."""
        with self.database_manager.session_scope(f"rank {model.__tablename__}") as session:
            if not dedup_per_project:
                scored = score.label('score')
                return (
                    session.query(model, scored)
                    .filter(conditions)
                    .order_by(scored.asc(), model.id.asc())
                    .limit(k)
                    .all()
                )

            ranked = (
                session.query(
                    model.id.label('id'),
                    score.label('score'),
                    func.row_number().over(
                        partition_by=model.project_id,
                        order_by=(score.asc(), model.id.asc()),
                    ).label('project_rank'),
                )
                .filter(conditions)
                .subquery()
            )

            return (
                session.query(model, ranked.c.score)
                .join(ranked, model.id == ranked.c.id)
                .filter(ranked.c.project_rank == 1)
                .order_by(ranked.c.score.asc(), model.id.asc())
                .limit(k)
                .all()
            )
