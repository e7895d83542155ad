"""Relational data store backend.

Stores objects as rows of a single table through SQLAlchemy Core, so any
database SQLAlchemy supports (PostgreSQL, SQLite, ...) can hold Bridge data.

Table layout (default name "bridge_objects"):
    key         VARCHAR(1024) PRIMARY KEY
    body        BLOB / BYTEA
    size_bytes  INTEGER
    updated_at  TIMESTAMP WITH TIME ZONE

Blocking database calls run in worker threads. In-memory SQLite URLs are not
supported because each worker thread would see its own database.

Environment Variables:
    BRIDGE_DATABASE_URL: SQLAlchemy database URL
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError

from bridge_store.data_store.base import LIST_PAGE_SIZE, DataStoreDriver
from bridge_store.data_store.errors import (
    BackendUnavailableError,
    DataStoreError,
    ErrorKind,
    ObjectNotFoundError,
    normalize_error,
)
from bridge_store.data_store.settings import DataStoreSettings
from bridge_store.observability.tracing import instrument_sqlalchemy

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "bridge_objects"
MAX_KEY_LENGTH = 1024


def _build_objects_table(table_name: str, metadata: MetaData) -> Table:
    return Table(
        table_name,
        metadata,
        Column("key", String(MAX_KEY_LENGTH), primary_key=True),
        Column("body", LargeBinary, nullable=False),
        Column("size_bytes", Integer, nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    )


def _ensure_driver_url(url: str) -> str:
    """Accept the legacy "postgres://" scheme as SQLAlchemy's "postgresql://"."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _prefix_upper_bound(prefix: str) -> str:
    """Return the smallest string greater than every key that starts with prefix."""
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


class DatabaseDataStore(DataStoreDriver):
    """SQLAlchemy-backed data store.

    Writes upsert by key (update, then insert if nothing was updated) in one
    transaction. Listing uses keyset pagination ordered by key, so pages stay
    stable while other tasks insert rows.
    """

    def __init__(
        self,
        url: str,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        page_size: int = LIST_PAGE_SIZE,
        engine: Engine | None = None,
    ) -> None:
        """Initialize the relational backend.

        Args:
            url: SQLAlchemy database URL.
            table_name: Table holding the objects. Created on open if missing.
            page_size: Keys requested per listing page.
            engine: Pre-built engine to use instead of creating one from url.
                The caller keeps ownership of an injected engine.
        """
        self._url = _ensure_driver_url(url)
        self._page_size = page_size
        self._engine = engine
        self._owns_engine = engine is None
        self._ready = False
        self._open_lock = asyncio.Lock()
        self._metadata = MetaData()
        self._objects = _build_objects_table(table_name, self._metadata)

    @classmethod
    def from_settings(cls, settings: DataStoreSettings) -> DatabaseDataStore | None:
        """Build the backend from settings.

        Returns:
            DatabaseDataStore, or None if no database URL is configured.
        """
        if not settings.database_url:
            return None
        return cls(settings.database_url)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "database"

    def _create_schema(self) -> None:
        if self._engine is None:
            self._engine = create_engine(self._url, pool_pre_ping=True, echo=False)
            instrument_sqlalchemy(self._engine)
            logger.info("Created data store database engine: dialect=%s", self._engine.dialect.name)
        self._metadata.create_all(self._engine)

    async def open(self) -> None:
        """Create the engine and the objects table if needed."""
        async with self._open_lock:
            if self._ready:
                return
            try:
                await asyncio.to_thread(self._create_schema)
            except SQLAlchemyError as e:
                raise self._translate(e, "Failed to initialize database store", None) from e
            self._ready = True

    async def close(self) -> None:
        """Dispose of the engine if this driver created it."""
        engine = self._engine
        self._ready = False
        if engine is not None and self._owns_engine:
            self._engine = None
            await asyncio.to_thread(engine.dispose)

    async def _get_engine(self) -> Engine:
        if not self._ready:
            await self.open()
        if self._engine is None:
            raise BackendUnavailableError(
                "Database engine is not initialized", backend=self.backend_name
            )
        return self._engine

    def _translate(self, error: SQLAlchemyError, message: str, key: str | None) -> DataStoreError:
        if isinstance(error, (OperationalError, InterfaceError)):
            kind = ErrorKind.UNREACHABLE
        else:
            kind = ErrorKind.UNKNOWN
        return normalize_error(
            kind,
            message,
            key=key,
            code=error.code or type(error).__name__,
            backend=self.backend_name,
            cause=error,
        )

    def _read(self, engine: Engine, key: str) -> bytes | None:
        stmt = select(self._objects.c.body).where(self._objects.c.key == key)
        with engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        return bytes(row[0])

    async def read_bytes(self, key: str) -> bytes:
        """Read the row stored at key."""
        engine = await self._get_engine()
        try:
            data = await asyncio.to_thread(self._read, engine, key)
        except SQLAlchemyError as e:
            raise self._translate(e, "Failed to get object", key) from e
        if data is None:
            raise ObjectNotFoundError(key=key, backend=self.backend_name)
        return data

    def _upsert(self, engine: Engine, key: str, data: bytes) -> None:
        values = {
            "body": data,
            "size_bytes": len(data),
            "updated_at": datetime.now(UTC),
        }
        update_stmt = update(self._objects).where(self._objects.c.key == key).values(**values)
        try:
            with engine.begin() as conn:
                result = conn.execute(update_stmt)
                if result.rowcount == 0:
                    conn.execute(insert(self._objects).values(key=key, **values))
        except IntegrityError:
            # A concurrent writer inserted the key first; last write wins
            with engine.begin() as conn:
                conn.execute(update_stmt)

    async def write_bytes(self, key: str, data: bytes) -> None:
        """Insert or replace the row at key."""
        if len(key) > MAX_KEY_LENGTH:
            raise DataStoreError(
                f"Key exceeds {MAX_KEY_LENGTH} characters",
                key=key,
                backend=self.backend_name,
            )
        engine = await self._get_engine()
        try:
            await asyncio.to_thread(self._upsert, engine, key, data)
        except SQLAlchemyError as e:
            raise self._translate(e, "Failed to save object", key) from e

    def _list_page(self, engine: Engine, prefix: str, after: str | None) -> list[str]:
        key_column = self._objects.c.key
        stmt = select(key_column).order_by(key_column).limit(self._page_size)
        if prefix:
            # LIKE ignores case on SQLite and MySQL; a key range does not
            stmt = stmt.where(key_column >= prefix, key_column < _prefix_upper_bound(prefix))
        if after is not None:
            stmt = stmt.where(key_column > after)
        with engine.connect() as conn:
            return [row[0] for row in conn.execute(stmt)]

    async def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        """Yield keys under prefix, one keyset page at a time."""
        engine = await self._get_engine()
        after: str | None = None
        while True:
            try:
                page = await asyncio.to_thread(self._list_page, engine, prefix, after)
            except SQLAlchemyError as e:
                raise self._translate(e, "Unable to list objects", None) from e
            for key in page:
                yield key
            if len(page) < self._page_size:
                return
            after = page[-1]
