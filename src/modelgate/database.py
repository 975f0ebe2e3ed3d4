from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Self, Union

from sqlalchemy import Connection, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from modelgate.config import DatabaseSettings


@dataclass(slots=True)
class SessionManager:
    engine: Engine

    @classmethod
    def from_settings(cls, s: DatabaseSettings) -> Self:
        url = s.sqlalchemy_url()
        if s.dialect == "sqlite" and not s.url:
            if s.sqlite_path is None:
                # one shared connection, otherwise every checkout sees a fresh empty DB
                engine = create_engine(
                    url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                engine = create_engine(url)
            return cls(engine=engine)

        engine = create_engine(
            url,
            pool_size=s.pool_size,
            max_overflow=s.max_overflow,
            pool_pre_ping=s.pool_pre_ping,
        )
        return cls(engine=engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Connection in a transaction: commit on success, rollback on error."""
        with self.engine.begin() as conn:
            yield conn

    def dispose(self) -> None:
        self.engine.dispose()


DbHandle = Union[Engine, SessionManager]


def normalize_db_handle(db: DbHandle) -> SessionManager:
    if isinstance(db, SessionManager):
        return db
    if isinstance(db, Engine):
        return SessionManager(engine=db)
    raise TypeError(f"expected Engine or SessionManager, got {type(db)!r}")
