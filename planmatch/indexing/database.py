"""
Database schema and operations for PlanMatch.
Handles storage of floor and room structure records and the project catalogue.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

from loguru import logger
from sqlalchemy import Column, DateTime, Float, Integer, String, create_engine, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..exceptions import StorageError

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Project(Base):
    """Project catalogue entry; ``updated_at`` drives bulk refresh order."""
    __tablename__ = 'projects'

    id = Column(String, primary_key=True)
    name = Column(String)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f"<Project(id={self.id}, updated_at={self.updated_at})>"


class FloorStructure(Base):
    """Feature row of one floor plan."""
    __tablename__ = 'floors'

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    project_id = Column(String, nullable=False, index=True)
    area = Column(Float, nullable=False)
    room_count = Column(Integer, nullable=False)
    bounding_box_width = Column(Float, nullable=False)
    bounding_box_height = Column(Float, nullable=False)
    bounding_box_area = Column(Float, nullable=False)
    bounding_box_aspect = Column(Float, nullable=False)
    bounding_box_aspect_ratio_inverted = Column(Float, nullable=False)
    rectangularity = Column(Float, nullable=False)

    def __repr__(self):
        return f"<FloorStructure(id={self.id}, project_id='{self.project_id}', area={self.area})>"


class RoomStructure(Base):
    """Feature row of one room."""
    __tablename__ = 'rooms'

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    type = Column(Integer, nullable=False, index=True)
    area = Column(Float, nullable=False)
    bounding_box_width = Column(Float, nullable=False)
    bounding_box_height = Column(Float, nullable=False)
    bounding_box_area = Column(Float, nullable=False)
    bounding_box_aspect = Column(Float, nullable=False)
    bounding_box_aspect_ratio_inverted = Column(Float, nullable=False)
    rectangularity = Column(Float, nullable=False)

    def __repr__(self):
        return f"<RoomStructure(id={self.id}, project_id='{self.project_id}', type={self.type})>"


class DatabaseManager:
    """Manages database connections and operations."""

    def __init__(self, database_url: str = "sqlite:///planmatch.db", echo: bool = False):
        """
        Initialize database manager.

        Args:
            database_url: Database connection URL
            echo: Log every SQL statement
        """
        self.database_url = database_url
        self.echo = echo
        self.engine = None
        self.SessionLocal = None
        self._initialize_database()

    def _initialize_database(self):
        """Initialize database connection and create tables."""
        engine_options: Dict[str, Any] = {'echo': self.echo, 'pool_pre_ping': True}
        if not self.database_url.startswith('sqlite'):
            engine_options.update(pool_size=10, max_overflow=20)

        try:
            self.engine = create_engine(self.database_url, **engine_options)

            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine
            )

            Base.metadata.create_all(bind=self.engine)

            logger.info(f"Database initialized: {self.engine.url.render_as_string(hide_password=True)}")

        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise StorageError("Failed to initialize database", {"error": str(e)}) from e

    def get_session(self) -> Session:
        """Get database session."""
        return self.SessionLocal()

    @contextmanager
    def session_scope(self, operation: str) -> Iterator[Session]:
        """Session whose SQLAlchemy failures surface as StorageError."""
        session = self.get_session()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database operation '{operation}' failed: {e}")
            raise StorageError(f"Database operation '{operation}' failed", {"error": str(e)}) from e
        finally:
            session.close()

    def get_database_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        with self.session_scope("stats") as session:
            return {
                'floors': session.query(FloorStructure).count(),
                'rooms': session.query(RoomStructure).count(),
                'floor_projects': session.query(
                    func.count(func.distinct(FloorStructure.project_id))
                ).scalar(),
                'room_projects': session.query(
                    func.count(func.distinct(RoomStructure.project_id))
                ).scalar(),
            }

    def close(self):
        """Close database connections."""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")
