"""
Pydantic models for API request/response schemas.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.records import FloorStructureRecord, RoomStructureRecord


def _finite(value: float) -> Optional[float]:
    """JSON has no infinity; degenerate ratios are reported as null."""
    return value if math.isfinite(value) else None


# Request Models
class IngestRequest(BaseModel):
    """Floor-plan documents to ingest instead of fetching them from the store."""
    floorplans: Optional[List[Dict[str, Any]]] = Field(
        None, description="Floor-plan documents in floor-plan store format"
    )


# Response Models
class FloorFeatures(BaseModel):
    """Stored features of a floor."""
    id: str = Field(..., description="Structure id ({projectId}_{floorArchiId})")
    title: str = Field(..., description="Floor title")
    project_id: str = Field(..., description="Owning project")
    area: float = Field(..., description="Declared floor area")
    room_count: int = Field(..., description="Number of rooms")
    bounding_box_width: float = Field(..., description="Bounding box width")
    bounding_box_height: float = Field(..., description="Bounding box height")
    bounding_box_area: float = Field(..., description="Bounding box area")
    bounding_box_aspect: Optional[float] = Field(None, description="Width / height")
    bounding_box_aspect_ratio_inverted: Optional[float] = Field(
        None, description="Long side / short side"
    )
    rectangularity: float = Field(..., description="Area relative to bounding box area")

    @classmethod
    def from_record(cls, record: FloorStructureRecord) -> "FloorFeatures":
        data = record.to_dict()
        data['bounding_box_aspect'] = _finite(record.bounding_box_aspect)
        data['bounding_box_aspect_ratio_inverted'] = _finite(
            record.bounding_box_aspect_ratio_inverted
        )
        return cls(**data)


class RoomFeatures(BaseModel):
    """Stored features of a room."""
    id: str = Field(..., description="Structure id ({projectId}_{roomArchiId})")
    project_id: str = Field(..., description="Owning project")
    type: int = Field(..., description="Room category code")
    area: float = Field(..., description="Room area")
    bounding_box_width: float = Field(..., description="Bounding box width")
    bounding_box_height: float = Field(..., description="Bounding box height")
    bounding_box_area: float = Field(..., description="Bounding box area")
    bounding_box_aspect: Optional[float] = Field(None, description="Width / height")
    bounding_box_aspect_ratio_inverted: Optional[float] = Field(
        None, description="Long side / short side"
    )
    rectangularity: float = Field(..., description="Area relative to bounding box area")

    @classmethod
    def from_record(cls, record: RoomStructureRecord) -> "RoomFeatures":
        data = record.to_dict()
        data['bounding_box_aspect'] = _finite(record.bounding_box_aspect)
        data['bounding_box_aspect_ratio_inverted'] = _finite(
            record.bounding_box_aspect_ratio_inverted
        )
        return cls(**data)


class SimilarFloorResult(BaseModel):
    """A similar floor with its score."""
    floor: FloorFeatures
    score: float = Field(..., description="Weighted distance, lower is more similar")
    explanation: Optional[Dict[str, Any]] = Field(None, description="Per-term score breakdown")


class SimilarRoomResult(BaseModel):
    """A similar room with its score."""
    room: RoomFeatures
    score: float = Field(..., description="Weighted distance, lower is more similar")
    explanation: Optional[Dict[str, Any]] = Field(None, description="Per-term score breakdown")


class ProjectStructureResponse(BaseModel):
    """Stored floor and room features of one project."""
    project_id: str = Field(..., description="Project id")
    floors: List[FloorFeatures] = Field(default_factory=list, description="Floor features by id")
    rooms: List[RoomFeatures] = Field(default_factory=list, description="Room features by id")


class IngestionResponse(BaseModel):
    """Summary of an ingestion run."""
    project_ids: List[str] = Field(default_factory=list, description="Projects ingested")
    skipped_project_ids: List[str] = Field(
        default_factory=list, description="Projects without floor plans"
    )
    floors_saved: int = Field(0, description="Floor records upserted")
    rooms_saved: int = Field(0, description="Room records upserted")
    processing_time: float = Field(0.0, description="Processing time in seconds")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Overall status")
    version: str = Field(..., description="API version")
    components: Dict[str, str] = Field(default_factory=dict, description="Component status")
    stats: Dict[str, Any] = Field(default_factory=dict, description="Record counts")


class ErrorResponse(BaseModel):
    """Error body."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Dict[str, Any] = Field(default_factory=dict, description="Error details")
