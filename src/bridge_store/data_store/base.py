"""Bridge Data Store Driver interface.

Defines the DataStoreDriver contract shared by every storage backend. The
driver owns key addressing and the plain/compressed encoding policy, so that
backends only move raw bytes to and from an already-derived storage key.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from types import TracebackType

from bridge_store.data_store.compression import DEFAULT_COMPRESSION_LEVEL, compress, decompress
from bridge_store.data_store.errors import CorruptObjectError, DataStoreError
from bridge_store.data_store.keys import derive_key, list_prefix
from bridge_store.data_store.tracing import traced_data_store_operation

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 50
UNKNOWN_KEY_PLACEHOLDER = "Unknown"


class DataStoreDriver(ABC):
    """Abstract base class for Bridge data store backends.

    Public operations (all coroutines):
    - list_objects: every key under a logical path, all pages aggregated
    - fetch_object / upload_object: UTF-8 text stored byte-identical
    - fetch_compressed_object / upload_compressed_object: compressed bytes

    Failures raise DataStoreError subclasses. A driver instance may be shared
    by concurrent tasks.

    Implementations:
    - S3DataStore: AWS S3 / S3-compatible object storage
    - DatabaseDataStore: relational table via SQLAlchemy
    - FilesystemDataStore: local directory tree
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for logs and spans (e.g. "s3")."""
        ...

    @abstractmethod
    async def read_bytes(self, key: str) -> bytes:
        """Read the full object stored at key.

        Raises:
            ObjectNotFoundError: If no object exists at key.
            DataStoreError: For any other backend failure.
        """
        ...

    @abstractmethod
    async def write_bytes(self, key: str, data: bytes) -> None:
        """Write data at key, replacing any existing object.

        Raises:
            DataStoreError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        """Yield every key starting with prefix, fetching page by page.

        Raises:
            DataStoreError: If any page cannot be fetched.
        """
        ...

    async def open(self) -> None:
        """Acquire backend resources. Backends without resources need not override."""

    async def close(self) -> None:
        """Release backend resources."""

    async def __aenter__(self) -> DataStoreDriver:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @traced_data_store_operation("list_objects")
    async def list_objects(self, path: str | None = None) -> list[str]:
        """List every storage key under a logical path.

        Args:
            path: Logical path without trailing separator. None lists the
                whole namespace.

        Returns:
            Full storage keys in backend iteration order.

        Raises:
            DataStoreError: If any page fails. No partial listing is returned.
        """
        prefix = list_prefix(path)
        keys: list[str] = []
        try:
            async for key in self.iter_keys(prefix):
                keys.append(key)
        except DataStoreError as e:
            logger.error(
                "Unable to list objects: backend=%s prefix=%r error=%s",
                self.backend_name,
                prefix,
                e,
            )
            raise
        return keys

    @traced_data_store_operation("fetch_object")
    async def fetch_object(self, name: str, path: str | None = None) -> str:
        """Fetch a plain object and decode it as UTF-8 text.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            CorruptObjectError: If the stored bytes are not valid UTF-8.
            DataStoreError: For any other backend failure.
        """
        key = derive_key(path, name)
        data = await self.read_bytes(key)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptObjectError(
                f"Failed to parse object as UTF-8 text: {e}",
                key=key,
                code="utf-8",
                backend=self.backend_name,
                cause=e,
            ) from e

    @traced_data_store_operation("upload_object")
    async def upload_object(self, name: str, contents: str, path: str | None = None) -> int:
        """Store text verbatim, overwriting any existing object.

        Returns:
            Number of bytes written.
        """
        key = derive_key(path, name)
        data = contents.encode("utf-8")
        await self.write_bytes(key, data)
        logger.debug(
            "Uploaded object: backend=%s key=%s size=%d", self.backend_name, key, len(data)
        )
        return len(data)

    @traced_data_store_operation("fetch_compressed_object")
    async def fetch_compressed_object(
        self, name: str, path: str | None = None
    ) -> tuple[bytes, int]:
        """Fetch and decompress a compressed object.

        Returns:
            Tuple of (decompressed payload, stored compressed size). The size
            is the wire size, meant for storage and bandwidth accounting.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            CorruptObjectError: If the stored bytes are not a valid compressed frame.
            DataStoreError: For any other backend failure.
        """
        key = derive_key(path, name)
        data = await self.read_bytes(key)
        try:
            payload = decompress(data)
        except CorruptObjectError as e:
            e.key = key
            e.backend = self.backend_name
            raise
        return payload, len(data)

    @traced_data_store_operation("upload_compressed_object")
    async def upload_compressed_object(
        self, name: str, contents: bytes, path: str | None = None
    ) -> int:
        """Compress bytes at the default level and store them.

        Returns:
            Compressed size in bytes, as written to the backend.

        Raises:
            CompressionError: If the payload cannot be compressed.
            DataStoreError: If the write fails.
        """
        key = derive_key(path, name)
        compressed = compress(contents, DEFAULT_COMPRESSION_LEVEL)
        await self.write_bytes(key, compressed)
        logger.debug(
            "Uploaded compressed object: backend=%s key=%s size=%d compressed=%d",
            self.backend_name,
            key,
            len(contents),
            len(compressed),
        )
        return len(compressed)
