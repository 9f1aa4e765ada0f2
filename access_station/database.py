# =======================================================================================
# access_station/database.py - Database Management (relational mirror)
# =======================================================================================
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import (
    Column, DateTime, Integer, MetaData, String, Table, UniqueConstraint,
    create_engine, text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool

from .config import config

metadata = MetaData()

users_table = Table(
    "users", metadata,
    Column("nfc_uid", String(64), primary_key=True),
    Column("user_name", String(100), nullable=False),
    Column("role", String(20), nullable=False, default="usuario"),
    Column("created_at", DateTime, nullable=True),
)

access_logs_table = Table(
    "access_logs", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nfc_uid", String(64), nullable=False),
    Column("station_id", Integer, nullable=False),
    Column("status", String(10), nullable=False),
    Column("accessed_at", DateTime, nullable=False),
    UniqueConstraint("nfc_uid", "station_id", "accessed_at", name="uq_access_logs_event"),
)


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection so every session sees the same in-memory db
            return create_engine(
                url, poolclass=StaticPool,
                connect_args={"check_same_thread": False}, future=True,
            )
        return create_engine(url, connect_args={"check_same_thread": False}, future=True)
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
        future=True,
    )


class DatabaseManager:
    """Manages database connections and transactions."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.DB_URL
        self.engine: Engine = _build_engine(self.url)

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    @contextmanager
    def get_connection(self):
        """Get a database connection with automatic cleanup."""
        with self.engine.begin() as conn:
            yield conn

    def fetch_one(self, query: str, params: dict = None):
        """Fetch a single result."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().first()

    def fetch_all(self, query: str, params: dict = None):
        """Fetch all results."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().all()

    def dispose(self) -> None:
        self.engine.dispose()
