"""Storage repository used by the event lifecycle engine.

The engine never talks to SQLAlchemy directly; it goes through a
``Repository`` per table, grouped in an ``EventStore`` that also owns the
transaction boundary.

Schema drift:
    Some deployments were created before ``meta`` or ``end_date`` existed on
    the event tables. Instead of matching database error messages, the
    repository reflects the live table once (``supported_fields``), reads
    only columns that exist, and strips unknown fields before every write.
    If a write still fails with a database error, the table is reflected
    again and the write is retried once with the refreshed field set. A
    second failure surfaces as ``SchemaMismatchError``.

Reads return detached model instances built from the selected columns, so
a missing optional column simply shows up as the model default (None).
"""
import logging
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Generic, TypeVar
from uuid import UUID

from fastapi import Depends
from sqlalchemy import delete, insert, inspect, select, update
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlmodel import Session, SQLModel

from app.core.database import get_session
from app.core.errors import SchemaMismatchError
from app.models import ArchivedEvent, Event, EventTemplate

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

SCHEMA_ERRORS = (OperationalError, ProgrammingError)


class Repository(Generic[ModelT]):
    """Generic find/create/update/delete access to one table."""

    def __init__(self, session: Session, model: type[ModelT]):
        self.session = session
        self.model = model
        self.table = model.__table__
        self._supported: set[str] | None = None

    @property
    def name(self) -> str:
        return self.table.name

    def supported_fields(self) -> set[str]:
        """Column names the live table actually has."""
        if self._supported is None:
            columns = inspect(self.session.connection()).get_columns(self.table.name)
            live = {column["name"] for column in columns}
            self._supported = {c.name for c in self.table.columns if c.name in live}
            missing = {c.name for c in self.table.columns} - self._supported
            if missing:
                logger.info(f"Table {self.name} lacks optional columns: {sorted(missing)}")
        return self._supported

    def supports(self, field: str) -> bool:
        return field in self.supported_fields()

    # Reads

    def _select(self):
        columns = [c for c in self.table.columns if c.name in self.supported_fields()]
        return select(*columns)

    def _to_model(self, row) -> ModelT:
        return self.model(**dict(row))

    def find_by_id(self, record_id: UUID) -> ModelT | None:
        return self.find_one(self.table.c.id == record_id)

    def find_one(self, *criteria) -> ModelT | None:
        rows = self.find_many(*criteria, limit=1)
        return rows[0] if rows else None

    def find_many(self, *criteria, order_by=None, limit: int | None = None) -> list[ModelT]:
        statement = self._select().where(*criteria)
        if order_by is not None:
            statement = statement.order_by(order_by)
        if limit is not None:
            statement = statement.limit(limit)
        result = self.session.connection().execute(statement)
        return [self._to_model(row) for row in result.mappings()]

    # Writes

    def _strip(self, data: dict) -> dict:
        supported = self.supported_fields()
        dropped = sorted(k for k in data if k not in supported)
        if dropped:
            logger.warning(f"Dropping fields unsupported by {self.name}: {dropped}")
        return {k: v for k, v in data.items() if k in supported}

    def _uses_savepoint(self) -> bool:
        # A rejected statement leaves a SQLite transaction usable; PostgreSQL
        # aborts the whole transaction unless the statement ran in a savepoint
        return self.session.connection().dialect.name != "sqlite"

    def _attempt(self, statement):
        if not self._uses_savepoint():
            return self.session.connection().execute(statement)
        with self.session.begin_nested():
            return self.session.connection().execute(statement)

    def _execute_write(self, build, data: dict):
        """Run a write, retrying once with a re-reflected field set."""
        fields = self._strip(data)
        try:
            return self._attempt(build(fields))
        except SCHEMA_ERRORS as exc:
            self._supported = None
            reduced = self._strip(data)
            if reduced.keys() == fields.keys():
                raise
            logger.warning(f"Retrying write on {self.name} without fields {sorted(fields.keys() - reduced.keys())}")
            try:
                return self._attempt(build(reduced))
            except SCHEMA_ERRORS as retry_exc:
                raise SchemaMismatchError(
                    f"Storage rejected write on {self.name}", table=self.name
                ) from retry_exc

    def create(self, data: dict) -> ModelT:
        """Insert a row and return the persisted record."""
        record = self.model(**data)
        values = record.model_dump()
        self._execute_write(lambda fields: insert(self.table).values(**fields), values)
        return self.find_by_id(record.id)

    def update(self, record_id: UUID, data: dict) -> ModelT | None:
        """Update one row; returns the persisted record or None if absent."""
        count = self.update_many([record_id], data)
        return self.find_by_id(record_id) if count else None

    def update_many(self, ids: Iterable[UUID], data: dict) -> int:
        ids = list(ids)
        if not ids or not data:
            return 0
        values = dict(data)
        if "updated_at" in self.table.columns:
            values.setdefault("updated_at", datetime.now(UTC))
        result = self._execute_write(
            lambda fields: update(self.table).where(self.table.c.id.in_(ids)).values(**fields),
            values,
        )
        return result.rowcount

    def delete(self, record_id: UUID) -> bool:
        return self.delete_many([record_id]) == 1

    def delete_many(self, ids: Iterable[UUID]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        result = self.session.connection().execute(
            delete(self.table).where(self.table.c.id.in_(ids))
        )
        return result.rowcount


class EventStore:
    """Repositories for the three event tables plus the transaction boundary.

    ``transaction()`` commits when the outermost block exits cleanly and
    rolls back everything on any exception, so nested calls (an archive
    inside a scoped update, for example) share one atomic unit.
    """

    def __init__(self, session: Session):
        self.session = session
        self.active: Repository[Event] = Repository(session, Event)
        self.archived: Repository[ArchivedEvent] = Repository(session, ArchivedEvent)
        self.templates: Repository[EventTemplate] = Repository(session, EventTemplate)
        self._depth = 0

    @contextmanager
    def transaction(self):
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            if self._depth == 0:
                self.session.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self.session.commit()


def get_store(session: Session = Depends(get_session)) -> EventStore:
    """Dependency for getting a request-scoped event store."""
    return EventStore(session)


def get_user_id() -> int:
    """Dependency for the acting user. Single user until authentication is wired in."""
    return 1
