"""Bridge data store error types.

Every driver operation reports failure by raising one of these errors. Callers
only ever see the reduced taxonomy in ErrorKind plus a descriptive message;
the backend-native fault code and the original exception are carried along
for diagnostics.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    """Backend-agnostic classification of a data store failure."""

    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    UNREACHABLE = "unreachable"
    CORRUPT = "corrupt"
    UNKNOWN = "unknown"


class DataStoreError(Exception):
    """Base exception for data store operations.

    Also raised directly for backend errors the driver does not specifically
    classify (kind UNKNOWN).

    Attributes:
        message: Human-readable error message.
        key: Storage key associated with the operation (if applicable).
        code: Backend-native fault code (e.g. "NoSuchKey"), if known.
        backend: Name of the backend that raised the error.
        cause: Original backend exception, if any.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.code = code
        self.backend = backend
        self.cause = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.key:
            parts.append(f"key={self.key}")
        if self.code:
            parts.append(f"code={self.code}")
        return " ".join(parts)

    def to_dict(self) -> dict[str, str | None]:
        """Convert the error to a dictionary for JSON output."""
        return {
            "backend": self.backend,
            "code": self.code,
            "key": self.key,
            "kind": self.kind.value,
            "message": self.message,
        }


class ObjectNotFoundError(DataStoreError):
    """Raised when no object exists at the requested key."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str = "Object not found",
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, key=key, code=code, backend=backend, cause=cause)


class AccessDeniedError(DataStoreError):
    """Raised when the backend refuses the credentials or the operation."""

    kind = ErrorKind.ACCESS_DENIED

    def __init__(
        self,
        message: str = "Access denied",
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, key=key, code=code, backend=backend, cause=cause)


class PathTraversalError(AccessDeniedError):
    """Raised when a storage key would escape the backend's sandbox.

    Backends that map keys onto a filesystem refuse keys like "../x",
    absolute paths, backslashes or NUL bytes.
    """

    def __init__(
        self,
        message: str = "Invalid key: path traversal detected",
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, key=key, code=code, backend=backend, cause=cause)


class BackendUnavailableError(DataStoreError):
    """Raised when the backend cannot be reached or fails at the transport level.

    Covers network errors, timeouts, throttling and server-side faults, and
    local I/O failures for filesystem-like backends.
    """

    kind = ErrorKind.UNREACHABLE

    def __init__(
        self,
        message: str = "Storage backend unavailable",
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, key=key, code=code, backend=backend, cause=cause)


class CorruptObjectError(DataStoreError):
    """Raised when stored bytes cannot be decoded or decompressed."""

    kind = ErrorKind.CORRUPT

    def __init__(
        self,
        message: str = "Corrupt object",
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, key=key, code=code, backend=backend, cause=cause)


class CompressionError(DataStoreError):
    """Raised when a payload cannot be compressed before upload."""

    def __init__(
        self,
        message: str = "Compression failed",
        *,
        key: str | None = None,
        code: str | None = None,
        backend: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, key=key, code=code, backend=backend, cause=cause)


class DataStoreConfigError(Exception):
    """Raised when a data store backend cannot be selected.

    This is a fail-closed configuration error: the explicitly requested
    backend is unknown or not configured. Data operations never raise it.
    """

    pass


_ERRORS_BY_KIND: dict[ErrorKind, type[DataStoreError]] = {
    ErrorKind.NOT_FOUND: ObjectNotFoundError,
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.UNREACHABLE: BackendUnavailableError,
    ErrorKind.CORRUPT: CorruptObjectError,
    ErrorKind.UNKNOWN: DataStoreError,
}


def normalize_error(
    kind: ErrorKind,
    message: str,
    *,
    key: str | None = None,
    code: str | None = None,
    backend: str | None = None,
    cause: BaseException | None = None,
) -> DataStoreError:
    """Build the DataStoreError subclass for a classified backend failure.

    Backends classify their native errors into an ErrorKind and call this
    helper so callers always receive the same exception types.

    Args:
        kind: Classification of the failure.
        message: Human-readable description. The cause's text is appended.
        key: Storage key involved, if any.
        code: Backend-native fault code, if any.
        backend: Backend name.
        cause: Original exception.

    Returns:
        An error instance ready to be raised (``raise err from cause``).
    """
    if cause is not None:
        message = f"{message}: {cause}"
    error_cls = _ERRORS_BY_KIND[kind]
    return error_cls(message, key=key, code=code, backend=backend, cause=cause)
