# File: app/repositories/base_repository.py

from datetime import datetime, timezone
from typing import Generic, TypeVar, Dict, Any, Optional, List, Type, Sequence
import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy import select, delete

T = TypeVar("T")
logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Base repository class providing common CRUD operations for all entities using
    modern SQLAlchemy select() syntax.

    Single-entity writes (create/update) commit immediately. Bulk writes
    (upsert_many/delete_where) only flush so that a service can group them in
    one transaction.

    Attributes:
        session (Session): The SQLAlchemy session for database operations
        model (Type[T]): The SQLAlchemy model class this repository manages
    """

    def __init__(self, session: Session, model: Optional[Type[T]] = None):
        """
        Initialize the repository with a database session and the specific model.

        Args:
            session (Session): SQLAlchemy database session
            model (Type[T]): The SQLAlchemy model class this repository manages.
        """
        self.session = session
        self.model = model

    def _get_model(self) -> Type[T]:
        """Ensures the model is set before use."""
        if self.model is None:
            raise TypeError(f"Repository model is not set for {self.__class__.__name__}")
        return self.model

    def _column_names(self) -> List[str]:
        return [c.name for c in self._get_model().__table__.columns]

    def get_by_id(self, id: str) -> Optional[T]:
        """
        Retrieve an entity by its primary key ID.

        Args:
            id (str): The primary key ID of the entity

        Returns:
            Optional[T]: The entity if found, None otherwise
        """
        model_class = self._get_model()
        stmt = select(model_class).where(getattr(model_class, "id") == id)
        return self.session.execute(stmt).scalar_one_or_none()

    def create(self, data: Dict[str, Any]) -> T:
        """
        Create a new entity.

        Args:
            data (Dict[str, Any]): Dictionary containing entity field values

        Returns:
            T: The created entity
        """
        model_class = self._get_model()
        model_columns = set(self._column_names())
        filtered_data = {k: v for k, v in data.items() if k in model_columns}

        entity = model_class(**filtered_data)
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def update(self, id: str, data: Dict[str, Any]) -> Optional[T]:
        """
        Update an existing entity.

        Args:
            id (str): The primary key ID of the entity to update
            data (Dict[str, Any]): Dictionary containing the fields to update

        Returns:
            Optional[T]: The updated entity if found, None otherwise
        """
        entity = self.get_by_id(id)
        if not entity:
            return None

        columns = entity.__table__.columns.keys()
        for key, value in data.items():
            if key in columns and key != "id":
                setattr(entity, key, value)

        self.session.commit()
        self.session.refresh(entity)
        return entity

    def delete_where(self, **filters) -> int:
        """
        Bulk delete by equality filters (e.g. a foreign key). Flushes, does not commit.

        Returns:
            int: Number of deleted rows
        """
        if not filters:
            raise ValueError("delete_where requires at least one filter")
        model_class = self._get_model()
        stmt = delete(model_class)
        for key, value in filters.items():
            stmt = stmt.where(getattr(model_class, key) == value)
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        self.session.flush()
        return result.rowcount or 0

    def upsert_many(
        self,
        rows: List[Dict[str, Any]],
        conflict_columns: Sequence[str],
        update_columns: Optional[Sequence[str]] = None,
    ) -> int:
        """
        Insert rows, updating the existing row when the conflict columns collide.
        Flushes, does not commit.

        SQLite and PostgreSQL use a native ON CONFLICT DO UPDATE; other dialects
        fall back to a select-then-write loop.

        Args:
            rows: Column dictionaries
            conflict_columns: Unique column tuple used as the conflict target
            update_columns: Columns overwritten on conflict (defaults to every
                column except the primary key, the conflict columns and created_at)

        Returns:
            int: Number of rows written
        """
        if not rows:
            return 0

        columns = self._column_names()
        now = datetime.now(timezone.utc)
        payload = []
        for row in rows:
            record = {c: row.get(c) for c in columns if c in row or c in ("id", "created_at", "updated_at")}
            record["id"] = record.get("id") or str(uuid.uuid4())
            record["created_at"] = record.get("created_at") or now
            record["updated_at"] = now
            payload.append(record)

        # executemany needs the same keys on every row
        keys = sorted({k for record in payload for k in record})
        payload = [{k: record.get(k) for k in keys} for record in payload]

        if update_columns is None:
            update_columns = [
                k for k in keys if k not in ("id", "created_at") and k not in conflict_columns
            ]

        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            return self._upsert_many_orm(payload, conflict_columns, update_columns)

        table = self._get_model().__table__
        stmt = dialect_insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={c: stmt.excluded[c] for c in update_columns},
        )
        self.session.execute(stmt, payload)
        self.session.flush()
        logger.debug(f"Upserted {len(payload)} {table.name} rows on {tuple(conflict_columns)}")
        return len(payload)

    def _upsert_many_orm(
        self,
        payload: List[Dict[str, Any]],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> int:
        model_class = self._get_model()
        for record in payload:
            stmt = select(model_class)
            for column in conflict_columns:
                stmt = stmt.where(getattr(model_class, column) == record[column])
            existing = self.session.execute(stmt).scalar_one_or_none()
            if existing is None:
                self.session.add(model_class(**record))
            else:
                for column in update_columns:
                    setattr(existing, column, record[column])
        self.session.flush()
        return len(payload)
