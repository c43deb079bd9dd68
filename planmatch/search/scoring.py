"""
Score breakdowns for similarity results.
Recomputes the weighted distance of a candidate in Python, term by term, so a
ranking produced by the database can be explained.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from .similarity_config import FloorSimilarityConfig, RoomSimilarityConfig
from ..core.records import FloorStructureRecord, RoomStructureRecord


@dataclass
class ScoreTerm:
    """One weighted distance term of a similarity score."""
    name: str
    distance: float
    weight: float
    explanation: str

    @property
    def contribution(self) -> float:
        return self.distance * self.weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'distance': self.distance,
            'weight': self.weight,
            'contribution': self.contribution,
            'explanation': self.explanation,
        }


def floor_score_terms(reference: FloorStructureRecord,
                      candidate: FloorStructureRecord,
                      config: FloorSimilarityConfig) -> List[ScoreTerm]:
    """Distance terms of a floor candidate against a reference floor."""
    weights = config.weights
    area_norm = max(reference.area, config.area_floor)
    room_diff = abs(candidate.room_count - reference.room_count)
    room_norm = max(reference.room_count, config.room_count_floor)

    return [
        ScoreTerm(
            name='area',
            distance=abs(candidate.area - reference.area) / area_norm,
            weight=weights.area,
            explanation=f"area {candidate.area:.2f} vs {reference.area:.2f}",
        ),
        ScoreTerm(
            name='aspect',
            distance=abs(candidate.bounding_box_aspect - reference.bounding_box_aspect),
            weight=weights.aspect,
            explanation=(
                f"aspect {candidate.bounding_box_aspect:.3f} "
                f"vs {reference.bounding_box_aspect:.3f}"
            ),
        ),
        ScoreTerm(
            name='rectangularity',
            distance=abs(candidate.rectangularity - reference.rectangularity),
            weight=weights.rectangularity,
            explanation=(
                f"rectangularity {candidate.rectangularity:.3f} "
                f"vs {reference.rectangularity:.3f}"
            ),
        ),
        ScoreTerm(
            name='room_count',
            distance=room_diff / (room_diff + room_norm),
            weight=weights.room_count,
            explanation=f"{candidate.room_count} rooms vs {reference.room_count}",
        ),
    ]


def room_score_terms(reference: RoomStructureRecord,
                     candidate: RoomStructureRecord,
                     config: RoomSimilarityConfig) -> List[ScoreTerm]:
    """Distance terms of a room candidate against a reference room."""
    weights = config.weights
    area_norm = max(reference.area, config.area_floor)

    return [
        ScoreTerm(
            name='area',
            distance=abs(candidate.area - reference.area) / area_norm,
            weight=weights.area,
            explanation=f"area {candidate.area:.0f} vs {reference.area:.0f}",
        ),
        ScoreTerm(
            name='aspect_ratio_inverted',
            distance=abs(
                candidate.bounding_box_aspect_ratio_inverted
                - reference.bounding_box_aspect_ratio_inverted
            ),
            weight=weights.aspect_ratio_inverted,
            explanation=(
                f"aspect ratio {candidate.bounding_box_aspect_ratio_inverted:.3f} "
                f"vs {reference.bounding_box_aspect_ratio_inverted:.3f}"
            ),
        ),
        ScoreTerm(
            name='rectangularity',
            distance=abs(candidate.rectangularity - reference.rectangularity),
            weight=weights.rectangularity,
            explanation=(
                f"rectangularity {candidate.rectangularity:.3f} "
                f"vs {reference.rectangularity:.3f}"
            ),
        ),
    ]


def total_score(terms: List[ScoreTerm]) -> float:
    return sum(term.contribution for term in terms)


def explain_score(terms: List[ScoreTerm]) -> Dict[str, Any]:
    """Summary of a score with its largest contributors first."""
    ordered = sorted(terms, key=lambda t: t.contribution, reverse=True)
    return {
        'score': total_score(terms),
        'terms': [term.to_dict() for term in ordered],
    }
