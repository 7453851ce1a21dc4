"""Database engine, session factory and declarative base."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def _engine_connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url_obj = make_url(url)
    if url_obj.get_backend_name() != "sqlite":
        return
    database = url_obj.database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


class DatabaseManager:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        _ensure_sqlite_directory(database_url)
        self.database_url = database_url
        self.engine = create_engine(
            database_url,
            echo=echo,
            connect_args=_engine_connect_args(database_url),
        )
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    def create_all(self) -> None:
        # Register models on Base.metadata before creating tables
        import app.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def db_session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()
