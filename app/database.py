"""Database engine and session management."""
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on."""
    if database_url.startswith("sqlite"):
        db_engine = create_engine(database_url, connect_args={"check_same_thread": False})

        @event.listens_for(db_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return db_engine

    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)


def init_db(db_engine: Engine = engine) -> None:
    """Create all tables registered on SQLModel metadata."""
    from app.models import conversation  # noqa: F401  registers tables

    SQLModel.metadata.create_all(db_engine)


def get_session() -> Iterator[Session]:
    """Yield a session bound to the application engine."""
    with Session(engine) as session:
        yield session
