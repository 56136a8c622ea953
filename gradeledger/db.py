"""Database engine and session helpers."""

from collections.abc import Generator
from pathlib import Path

from sqlmodel import Session, SQLModel, create_engine

from gradeledger.settings import settings


def build_engine(url: str | None = None):
    """Create a SQLite engine usable across request threads."""
    return create_engine(url or settings.sqlite_url, connect_args={"check_same_thread": False})


engine = build_engine()


def create_db_and_tables() -> None:
    """Create all SQLModel tables if they do not exist."""
    from gradeledger import models  # noqa: F401  registers tables on the metadata

    Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for request-scoped dependency injection."""
    with Session(engine) as session:
        yield session
