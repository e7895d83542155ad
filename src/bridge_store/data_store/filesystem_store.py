"""Filesystem data store backend.

Provides local directory storage for development, tests and single-host
deployments with:
- Storage keys mapped onto relative file paths under a base directory
- Path traversal protection
- Atomic writes (temp file + rename)

Blocking file I/O runs in worker threads so callers can await it like any
other backend.

Environment Variables:
    BRIDGE_DATA_DIR: Base directory for storage
        (default: tempfile.gettempdir() / bridge_data)
"""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
import uuid
from collections.abc import AsyncIterator
from pathlib import Path

from bridge_store.data_store.base import LIST_PAGE_SIZE, DataStoreDriver
from bridge_store.data_store.errors import (
    DataStoreError,
    ErrorKind,
    PathTraversalError,
    normalize_error,
)
from bridge_store.data_store.settings import DataStoreSettings

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR_NAME = "bridge_data"

_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x1f\x7f]")
_TMP_PATTERN = re.compile(r"^\..+\.[0-9a-f]{32}\.tmp$")


def _is_path_traversal(key: str) -> bool:
    """Check if a key contains path traversal sequences.

    Detects:
    - ".." and "." segments, and empty segments ("a//b", trailing "/")
    - Absolute paths (starting with / or ~, or drive letters like C:)
    - Backslashes (Windows path separators)
    - Control characters, including null bytes
    """
    if not key:
        return True

    if "\\" in key or _CONTROL_CHAR_PATTERN.search(key):
        return True

    if key.startswith("/") or key.startswith("~"):
        return True

    if len(key) >= 2 and key[1] == ":":
        return True

    segments = key.split("/")
    return any(segment in ("", ".", "..") for segment in segments)


class FilesystemDataStore(DataStoreDriver):
    """Filesystem-based data store.

    Objects are stored as plain files:
        {base_dir}/{path}/{name}

    Listing walks the prefix directory and yields keys as POSIX-style paths
    relative to base_dir, in sorted pages. In-flight temp files are skipped.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        *,
        page_size: int = LIST_PAGE_SIZE,
    ) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses the OS temp
                directory.
            page_size: Keys yielded per listing page.
        """
        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / DEFAULT_DATA_DIR_NAME
        self._base_dir = Path(base_dir).resolve()
        self._page_size = page_size
        logger.debug("FilesystemDataStore initialized with base_dir=%s", self._base_dir)

    @classmethod
    def from_settings(cls, settings: DataStoreSettings) -> FilesystemDataStore:
        """Build the backend from settings. Always available."""
        return cls(settings.data_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _resolve(self, key: str) -> Path:
        """Map a key onto a path inside base_dir, rejecting traversal."""
        if _is_path_traversal(key):
            raise PathTraversalError(
                "Invalid key: path traversal or control characters detected",
                key=key,
                backend=self.backend_name,
            )
        path = self._base_dir / key
        try:
            path.resolve().relative_to(self._base_dir)
        except ValueError as e:
            raise PathTraversalError(
                "Path resolves outside storage base directory",
                key=key,
                backend=self.backend_name,
            ) from e
        return path

    def _translate(
        self, error: OSError, message: str, key: str | None, *, writing: bool = False
    ) -> DataStoreError:
        if writing and isinstance(error, (IsADirectoryError, NotADirectoryError, FileExistsError)):
            kind = ErrorKind.UNKNOWN
            message = f"{message}: key collides with a directory or file"
        elif isinstance(error, (FileNotFoundError, IsADirectoryError, NotADirectoryError)):
            kind = ErrorKind.NOT_FOUND
        elif isinstance(error, PermissionError):
            kind = ErrorKind.ACCESS_DENIED
        else:
            kind = ErrorKind.UNREACHABLE
        return normalize_error(
            kind,
            message,
            key=key,
            code=type(error).__name__,
            backend=self.backend_name,
            cause=error,
        )

    async def read_bytes(self, key: str) -> bytes:
        """Read the file stored at key."""
        path = self._resolve(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise self._translate(e, "Failed to read object", key) from e

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_file.write_bytes(data)
            tmp_file.replace(path)
        except OSError:
            tmp_file.unlink(missing_ok=True)
            raise

    async def write_bytes(self, key: str, data: bytes) -> None:
        """Write data to the file at key atomically."""
        path = self._resolve(key)
        try:
            await asyncio.to_thread(self._write_atomic, path, data)
        except OSError as e:
            raise self._translate(e, "Failed to save object", key, writing=True) from e

    def _scan(self, prefix: str) -> list[str]:
        """Collect every key starting with prefix, sorted."""
        if not self._base_dir.is_dir():
            return []

        # Walk only the deepest directory implied by the prefix
        directory, _, _ = prefix.rpartition("/")
        root = self._base_dir / directory if directory else self._base_dir
        if directory and _is_path_traversal(directory):
            return []
        if not root.is_dir():
            return []

        keys = []
        for file_path in root.rglob("*"):
            if not file_path.is_file() or _TMP_PATTERN.match(file_path.name):
                continue
            key = file_path.relative_to(self._base_dir).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        keys.sort()
        return keys

    async def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        """Yield keys under prefix in pages of page_size."""
        try:
            keys = await asyncio.to_thread(self._scan, prefix)
        except OSError as e:
            raise self._translate(e, "Unable to list objects", None) from e

        for start in range(0, len(keys), self._page_size):
            for key in keys[start : start + self._page_size]:
                yield key
            await asyncio.sleep(0)
