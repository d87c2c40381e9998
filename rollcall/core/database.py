"""Database engine and session management.

The check-in pipeline leans on the database for its safety guarantees:
session single-use and the display host lease are conditional UPDATEs
checked by row count, and duplicate submissions are stopped by the
unique constraint on ``(event_id, client_identity)``. Nothing here is
specific to one backend, but SQLite gets a few connection pragmas:

    - **WAL (Write-Ahead Logging)**: lets attendee reads proceed while a
      burst of check-in submissions is being written.

    - **Foreign Keys**: off by default in SQLite. Enabled so sessions,
      records and links cannot outlive their event.

    - **check_same_thread=False**: FastAPI may hand a connection to a
      different worker thread than the one that opened it.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from rollcall.core.config import settings

is_sqlite = settings.database_url.startswith("sqlite")
connect_args = {"check_same_thread": False} if is_sqlite else {}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


if is_sqlite:

    @sa_event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite pragmas on each new connection.

        These settings are connection-level, not database-level, so they must
        be set each time a new connection is established from the pool.
        """
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    # Import for side effect: registers every table on SQLModel.metadata
    import rollcall.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
