"""Database engine and session management.

SQLite is the default store; any SQLAlchemy URL works through
``DATABASE_URL``. The event tables may come from an older deployment that
lacks optional columns (``meta``, ``end_date``); ``create_db_and_tables``
only creates missing tables and never alters existing ones, which is why the
repository negotiates columns at runtime.

SQLite connection settings:
    - **WAL**: readers keep working while a series-wide update holds the
      write lock.
    - **foreign_keys=ON**: off by default in SQLite.
    - **check_same_thread=False**: FastAPI may hand a session to a worker
      thread other than the one that opened the connection.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings

is_sqlite = settings.database_url.startswith("sqlite")

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if is_sqlite else {},
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


@sa_event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Apply per-connection SQLite pragmas."""
    if not is_sqlite:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_and_tables():
    """Create the event tables that do not exist yet."""
    import app.models  # noqa: F401  registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
