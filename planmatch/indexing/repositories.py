"""
Repositories for structure records and the project catalogue.
Point lookup and atomic upsert by primary key.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from loguru import logger
from sqlalchemy.dialects import postgresql, sqlite

from .database import Base, DatabaseManager, FloorStructure, Project, RoomStructure, utcnow
from .providers import RecentProjectsLister
from ..core.records import FloorStructureRecord, RoomStructureRecord
from ..exceptions import NotFoundError, StorageError

RecordT = TypeVar('RecordT', FloorStructureRecord, RoomStructureRecord)

_DIALECT_INSERTS = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


def upsert_statement(model: Type[Base],
                     values: Dict[str, Any],
                     dialect_name: str,
                     update_columns: Optional[Sequence[str]] = None):
    """
    ``INSERT ... ON CONFLICT (id) DO UPDATE`` for one row.

    Args:
        model: Mapped table with an ``id`` primary key
        values: Column values of the row
        dialect_name: ``engine.dialect.name`` of the target database
        update_columns: Columns replaced on conflict; every non-id column by default

    Raises:
        StorageError: If the dialect has no native upsert
    """
    insert = _DIALECT_INSERTS.get(dialect_name)
    if insert is None:
        raise StorageError(
            f"Upsert is not supported on {dialect_name}",
            {"dialect": dialect_name},
        )

    statement = insert(model).values(**values)
    if update_columns is None:
        update_columns = [name for name in values if name != 'id']

    return statement.on_conflict_do_update(
        index_elements=[model.id],
        set_={name: statement.excluded[name] for name in update_columns},
    )


class StructureRepository(Generic[RecordT]):
    """Persists structure records of one kind in one table."""

    model: Type[Base]
    record_type: Type[RecordT]
    label: str = "structure"

    def __init__(self, database_manager: DatabaseManager):
        self.database_manager = database_manager

    def to_record(self, row) -> RecordT:
        return self.record_type(**{
            name: getattr(row, name)
            for name in self.record_type.__dataclass_fields__
        })

    def get(self, record_id: str) -> Optional[RecordT]:
        """Record for ``record_id`` or None."""
        with self.database_manager.session_scope(f"get {self.label}") as session:
            row = session.get(self.model, record_id)
            return self.to_record(row) if row is not None else None

    def find_by_id(self, record_id: str) -> RecordT:
        """Record for ``record_id``; raises NotFoundError when absent."""
        record = self.get(record_id)
        if record is None:
            raise NotFoundError(f"{self.label} {record_id} not found", {"id": record_id})
        return record

    def save_all(self, records: Sequence[RecordT]) -> int:
        """
        Upsert records by id, replacing every feature column on conflict.

        Each record is a single ``INSERT ... ON CONFLICT`` committed on its
        own, so concurrent saves of one id never collide and a failure
        part-way leaves the earlier records stored. Re-running the whole
        batch is safe.

        Returns:
            Number of records written
        """
        if not records:
            return 0

        dialect_name = self.database_manager.engine.dialect.name
        for record in records:
            statement = upsert_statement(self.model, asdict(record), dialect_name)
            with self.database_manager.session_scope(f"save {self.label}") as session:
                session.execute(statement)
                session.commit()

        logger.info(f"Saved {len(records)} {self.label} records")
        return len(records)

    def find_by_project(self, project_id: str) -> List[RecordT]:
        """All records of a project ordered by id."""
        with self.database_manager.session_scope(f"list {self.label}") as session:
            rows = (
                session.query(self.model)
                .filter(self.model.project_id == project_id)
                .order_by(self.model.id)
                .all()
            )
            return [self.to_record(row) for row in rows]


class FloorStructureRepository(StructureRepository[FloorStructureRecord]):
    model = FloorStructure
    record_type = FloorStructureRecord
    label = "floor"


class RoomStructureRepository(StructureRepository[RoomStructureRecord]):
    model = RoomStructure
    record_type = RoomStructureRecord
    label = "room"


class ProjectRepository(RecentProjectsLister):
    """Project catalogue shared with the project store; lists projects by last update."""

    def __init__(self, database_manager: DatabaseManager):
        self.database_manager = database_manager

    def touch(self, project_id: str, updated_at: Optional[datetime] = None,
              name: Optional[str] = None):
        """Record that a project changed, creating its catalogue entry if needed."""
        timestamp = updated_at or utcnow()
        values: Dict[str, Any] = {
            'id': project_id,
            'created_at': timestamp,
            'updated_at': timestamp,
        }
        update_columns = ['updated_at']
        if name is not None:
            values['name'] = name
            update_columns.append('name')

        statement = upsert_statement(
            Project, values, self.database_manager.engine.dialect.name, update_columns
        )
        with self.database_manager.session_scope("touch project") as session:
            session.execute(statement)
            session.commit()

        logger.debug(f"Project {project_id} updated at {timestamp.isoformat()}")

    def find_recent_ids(self, limit: int) -> List[str]:
        if limit <= 0:
            return []

        with self.database_manager.session_scope("recent projects") as session:
            rows = (
                session.query(Project.id)
                .order_by(Project.updated_at.desc(), Project.id.asc())
                .limit(limit)
                .all()
            )
            return [row.id for row in rows]
