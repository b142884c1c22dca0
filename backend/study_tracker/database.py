"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine. By default the
database is a local SQLite file at the backend root (`study.db`); set
`DB_URL` to point somewhere else.
"""

from sqlmodel import SQLModel, create_engine, Session
from pathlib import Path

from .config import settings

BASE = Path(__file__).resolve().parent.parent
DB_URL = settings.DB_URL or f"sqlite:///{BASE / 'study.db'}"
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; there is no migration
    tooling in this project.
    """
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
