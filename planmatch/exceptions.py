"""
Exception hierarchy for PlanMatch.
"""

from typing import Any, Dict, Optional


class PlanMatchError(Exception):
    """Base exception for all PlanMatch errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PlanMatchError):
    """Raised when configuration values are invalid."""


class StructureError(PlanMatchError):
    """Base class for errors raised while building structure records."""


class MissingFieldError(StructureError):
    """Raised when a required floor-plan attribute is absent."""

    def __init__(self, field: str, floorplan_id: str):
        super().__init__(
            f"floorplan {floorplan_id} missing {field}",
            {"field": field, "floorplan_id": floorplan_id},
        )
        self.field = field
        self.floorplan_id = floorplan_id


class GeometryError(StructureError):
    """Base class for geometry extraction errors."""


class EmptyGeometryError(GeometryError):
    """Raised when no usable points are available for a bounding box."""


class RoomNotInFloorplanError(GeometryError):
    """Raised when a room is measured against a floor plan it does not belong to."""


class NotFoundError(PlanMatchError):
    """Raised when no record exists for the requested id."""


class StorageError(PlanMatchError):
    """Raised when the backing store fails."""


class FloorplanSourceError(StorageError):
    """Raised when floor-plan documents cannot be fetched."""
