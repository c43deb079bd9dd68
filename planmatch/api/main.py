"""
FastAPI main application for PlanMatch.
Provides REST API endpoints for structure features, similarity search and ingestion.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .models import (
    ErrorResponse,
    FloorFeatures,
    HealthResponse,
    IngestionResponse,
    IngestRequest,
    ProjectStructureResponse,
    RoomFeatures,
    SimilarFloorResult,
    SimilarRoomResult,
)
from .. import __version__
from ..config import get_database_url, get_recent_limit, get_similar_limit, load_config
from ..core.floorplan import parse_floorplans
from ..exceptions import (
    ConfigurationError,
    NotFoundError,
    PlanMatchError,
    StorageError,
    StructureError,
)
from ..indexing.database import DatabaseManager
from ..indexing.ingestion import IngestionResult, StructureIngestor, create_floorplan_source
from ..logging_config import setup_logging_from_config
from ..search.similarity import SimilarityEngine
from ..search.similarity_config import SimilarityConfig


class PlanMatchAPI:
    """Main API application class."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize API components."""
        self.config = config if config is not None else load_config()
        self.database_manager = None
        self.similarity_engine = None
        self.ingestor = None

    def initialize(self):
        """Initialize all components."""
        logger.info("Initializing PlanMatch API...")

        similarity_config = SimilarityConfig.from_dict(self.config.get('similarity'))
        self.database_manager = DatabaseManager(get_database_url(self.config))
        self.similarity_engine = SimilarityEngine(self.database_manager, similarity_config)

        provider, lister = create_floorplan_source(self.config, self.database_manager)
        self.ingestor = StructureIngestor(self.database_manager, provider, lister)

        logger.info("PlanMatch API initialized successfully")

    def cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up PlanMatch API...")

        if self.database_manager:
            self.database_manager.close()

    @property
    def similar_limit(self) -> int:
        return get_similar_limit(self.config)

    @property
    def recent_limit(self) -> int:
        return get_recent_limit(self.config)


async def planmatch_exception_handler(request: Request, exc: PlanMatchError) -> JSONResponse:
    """Map PlanMatch exceptions to HTTP responses."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, StructureError):
        status_code = 422
    elif isinstance(exc, ConfigurationError):
        status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(exc, StorageError) or status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"Unexpected internal failure on {request.url.path}: {exc.message} {exc.details}")
        body = ErrorResponse(error=type(exc).__name__, message="unexpected error")
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        body = ErrorResponse(error=type(exc).__name__, message=exc.message, details=exc.details)

    return JSONResponse(status_code=status_code, content=body.model_dump())


def _ingestion_response(result: IngestionResult) -> IngestionResponse:
    return IngestionResponse(**result.to_dict())


def create_app(config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Build the FastAPI application around a PlanMatchAPI instance."""
    api_instance = PlanMatchAPI(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging_from_config(api_instance.config)
        api_instance.initialize()
        yield
        api_instance.cleanup()

    app = FastAPI(
        title="PlanMatch API",
        description="Floor plan structure indexing and similarity search",
        version=__version__,
        lifespan=lifespan
    )
    app.state.planmatch = api_instance

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PlanMatchError, planmatch_exception_handler)

    def get_api(request: Request) -> PlanMatchAPI:
        return request.app.state.planmatch

    @app.get("/health", response_model=HealthResponse)
    def health_check(api: PlanMatchAPI = Depends(get_api)):
        """Health check endpoint."""
        components = {}
        stats: Dict[str, Any] = {}

        try:
            stats = api.database_manager.get_database_stats()
            components["database"] = "healthy"
        except StorageError as e:
            components["database"] = f"error: {e.message}"

        overall_status = "healthy" if all("error" not in s for s in components.values()) else "degraded"

        return HealthResponse(
            status=overall_status,
            version=__version__,
            components=components,
            stats=stats
        )

    @app.get("/floors/{floor_id}", response_model=FloorFeatures)
    def get_floor_features(floor_id: str, api: PlanMatchAPI = Depends(get_api)):
        """Stored features of a floor."""
        record = api.similarity_engine.floors.find_by_id(floor_id)
        return FloorFeatures.from_record(record)

    @app.get("/rooms/{room_id}", response_model=RoomFeatures)
    def get_room_features(room_id: str, api: PlanMatchAPI = Depends(get_api)):
        """Stored features of a room."""
        record = api.similarity_engine.rooms.find_by_id(room_id)
        return RoomFeatures.from_record(record)

    @app.get("/floors/{floor_id}/similar", response_model=List[SimilarFloorResult])
    def get_similar_floors(
        floor_id: str,
        area_from: Optional[float] = Query(None, alias="areaFrom"),
        area_to: Optional[float] = Query(None, alias="areaTo"),
        limit: Optional[int] = Query(None, ge=0, le=100),
        explain: bool = False,
        api: PlanMatchAPI = Depends(get_api),
    ):
        """Floors of other projects most similar to the given floor."""
        engine = api.similarity_engine
        reference = engine.floors.find_by_id(floor_id)
        k = api.similar_limit if limit is None else limit

        results = engine.rank_floors(reference, area_from, area_to, k)

        return [
            SimilarFloorResult(
                floor=FloorFeatures.from_record(result.record),
                score=result.score,
                explanation=engine.explain_floor(reference, result.record) if explain else None,
            )
            for result in results
        ]

    @app.get("/rooms/{room_id}/similar", response_model=List[SimilarRoomResult])
    def get_similar_rooms(
        room_id: str,
        area_from: Optional[float] = Query(None, alias="areaFrom", description="Square metres"),
        area_to: Optional[float] = Query(None, alias="areaTo", description="Square metres"),
        limit: Optional[int] = Query(None, ge=0, le=100),
        match_type: Optional[bool] = Query(None, alias="matchType"),
        explain: bool = False,
        api: PlanMatchAPI = Depends(get_api),
    ):
        """Rooms of other projects most similar to the given room."""
        engine = api.similarity_engine
        scale = engine.config.room.area_override_scale
        reference = engine.rooms.find_by_id(room_id)
        k = api.similar_limit if limit is None else limit

        results = engine.rank_rooms(
            reference,
            area_from * scale if area_from is not None else None,
            area_to * scale if area_to is not None else None,
            k,
            match_type,
        )

        return [
            SimilarRoomResult(
                room=RoomFeatures.from_record(result.record),
                score=result.score,
                explanation=engine.explain_room(reference, result.record) if explain else None,
            )
            for result in results
        ]

    @app.get("/projects/{project_id}/structure", response_model=ProjectStructureResponse)
    def get_project_structure(project_id: str, api: PlanMatchAPI = Depends(get_api)):
        """Stored floor and room features of a project."""
        engine = api.similarity_engine
        floors = engine.floors.find_by_project(project_id)
        rooms = engine.rooms.find_by_project(project_id)
        if not floors and not rooms:
            raise NotFoundError(f"project {project_id} has no structure records", {"id": project_id})

        return ProjectStructureResponse(
            project_id=project_id,
            floors=[FloorFeatures.from_record(record) for record in floors],
            rooms=[RoomFeatures.from_record(record) for record in rooms],
        )

    @app.post("/projects/{project_id}/structure", response_model=IngestionResponse)
    def create_project_structure(
        project_id: str,
        request: Optional[IngestRequest] = None,
        api: PlanMatchAPI = Depends(get_api),
    ):
        """Build and store the structure records of one project."""
        if request is not None and request.floorplans is not None:
            floor_records, room_records = api.ingestor.ingest_project(
                project_id, parse_floorplans(request.floorplans)
            )
            return IngestionResponse(
                project_ids=[project_id],
                floors_saved=len(floor_records),
                rooms_saved=len(room_records),
            )

        return _ingestion_response(api.ingestor.ingest_project_from_source(project_id))

    @app.post("/projects/structures", response_model=IngestionResponse)
    def create_recent_project_structures(
        limit: Optional[int] = Query(None, ge=0),
        api: PlanMatchAPI = Depends(get_api),
    ):
        """Rebuild structure records for the most recently updated projects."""
        k = api.recent_limit if limit is None else limit
        return _ingestion_response(api.ingestor.refresh_recent_projects(k))

    return app


app = create_app()


def main():
    """Run the API server."""
    uvicorn.run(
        "planmatch.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False
    )


if __name__ == "__main__":
    main()
