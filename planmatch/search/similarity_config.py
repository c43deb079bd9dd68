"""
Similarity constants.
Band widths, tolerances, normalisation floors and score weights for floor and
room similarity, overridable from the ``similarity`` config section.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

from ..exceptions import ConfigurationError


@dataclass(frozen=True)
class Band:
    """Multiplicative window around a reference value."""
    low: float = 0.85
    high: float = 1.15

    def bounds(self, reference: float):
        return reference * self.low, reference * self.high


@dataclass(frozen=True)
class FloorWeights:
    area: float = 0.3
    aspect: float = 0.3
    rectangularity: float = 0.2
    room_count: float = 0.2


@dataclass(frozen=True)
class RoomWeights:
    area: float = 0.3
    aspect_ratio_inverted: float = 0.5
    rectangularity: float = 0.2


@dataclass(frozen=True)
class FloorSimilarityConfig:
    area_band: Band = field(default_factory=Band)
    aspect_band: Band = field(default_factory=Band)
    rectangularity_tolerance: float = 0.1
    room_count_tolerance: int = 3
    area_floor: float = 30.0
    room_count_floor: int = 1
    dedup_per_project: bool = True
    weights: FloorWeights = field(default_factory=FloorWeights)


@dataclass(frozen=True)
class RoomSimilarityConfig:
    area_band: Band = field(default_factory=Band)
    aspect_band: Band = field(default_factory=Band)
    rectangularity_tolerance: float = 0.1
    area_floor: float = 5.0
    match_type: bool = True
    # Room area is stored in mm^2; overrides from outer surfaces come in m^2.
    area_override_scale: float = 1_000_000.0
    weights: RoomWeights = field(default_factory=RoomWeights)


@dataclass(frozen=True)
class SimilarityConfig:
    floor: FloorSimilarityConfig = field(default_factory=FloorSimilarityConfig)
    room: RoomSimilarityConfig = field(default_factory=RoomSimilarityConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SimilarityConfig":
        """Build a config from the ``similarity`` section, keeping defaults for absent keys."""
        data = data or {}
        unknown = set(data) - {'floor', 'room'}
        if unknown:
            raise ConfigurationError(
                f"Unknown similarity sections: {sorted(unknown)}",
                {"keys": ", ".join(sorted(unknown))},
            )
        return cls(
            floor=_apply_overrides(FloorSimilarityConfig(), data.get('floor'), 'similarity.floor'),
            room=_apply_overrides(RoomSimilarityConfig(), data.get('room'), 'similarity.room'),
        )


def _apply_overrides(base, overrides: Optional[Dict[str, Any]], path: str):
    """Return ``base`` with values from ``overrides`` applied recursively."""
    if not overrides:
        return base
    if not isinstance(overrides, dict):
        raise ConfigurationError(f"{path} must be a mapping")

    known = {f.name for f in fields(base)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in {path}: {sorted(unknown)}",
            {"keys": ", ".join(sorted(unknown))},
        )

    changes = {}
    for name, value in overrides.items():
        current = getattr(base, name)
        if hasattr(current, '__dataclass_fields__'):
            changes[name] = _apply_overrides(current, value, f"{path}.{name}")
        elif isinstance(current, bool):
            changes[name] = bool(value)
        else:
            try:
                changes[name] = type(current)(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid value for {path}.{name}: {value!r}"
                ) from e
    return replace(base, **changes)
