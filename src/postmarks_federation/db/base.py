from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base, Session


Base = declarative_base()


class StartupError(RuntimeError):
    """Raised when the store cannot be brought into a usable state."""


class DatabaseSessionManager:
    """Manages SQLAlchemy database sessions and engine lifecycle."""

    def __init__(self, database_url: str) -> None:
        """Initializes the DatabaseSessionManager.

        Args:
            database_url: The SQLAlchemy-compatible URL for the database connection.
        """
        url = make_url(database_url)
        connect_args = {}
        if url.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False
            if url.database and url.database != ":memory:":
                Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(url, connect_args=connect_args)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine
        )

    @classmethod
    def open(cls, database_url: str) -> "DatabaseSessionManager":
        """Builds a manager with its schema in place, ready for use.

        Raises:
            StartupError: If the URL is invalid or the schema cannot be created.
        """
        try:
            manager = cls(database_url)
            manager.create_all()
        except (ArgumentError, SQLAlchemyError, OSError) as exc:
            raise StartupError(f"unable to open database {database_url!r}: {exc}") from exc
        return manager

    def create_all(self) -> None:
        """Creates all database tables defined in the Base metadata."""
        Base.metadata.create_all(self._engine, checkfirst=True)

    def dispose(self) -> None:
        """Disposes of the database engine, closing all connections."""
        self._engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Provides a transactional SQLAlchemy session.

        Yields:
            A SQLAlchemy Session object.

        Raises:
            Exception: If any error occurs during the session, a rollback is performed.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
