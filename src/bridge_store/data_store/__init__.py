"""Bridge Data Store Driver abstraction.

Provides a backend-agnostic store for named text and compressed binary
objects under a hierarchical key namespace, with key prefixing, transparent
pagination, compression and error normalization handled once for every
backend.

Backends:
- S3DataStore: AWS S3 / S3-compatible object storage (aioboto3)
- DatabaseDataStore: relational table (SQLAlchemy)
- FilesystemDataStore: local directory tree

Use select_data_store() to pick the first configured backend; see
bridge_store.data_store.settings for the environment variables.
"""

from bridge_store.data_store.base import DataStoreDriver
from bridge_store.data_store.errors import (
    AccessDeniedError,
    BackendUnavailableError,
    CompressionError,
    CorruptObjectError,
    DataStoreConfigError,
    DataStoreError,
    ErrorKind,
    ObjectNotFoundError,
    PathTraversalError,
)
from bridge_store.data_store.keys import derive_key
from bridge_store.data_store.selection import select_data_store
from bridge_store.data_store.settings import DataStoreSettings

__all__ = [
    "DataStoreDriver",
    "DataStoreSettings",
    "select_data_store",
    "derive_key",
    "ErrorKind",
    "DataStoreError",
    "ObjectNotFoundError",
    "AccessDeniedError",
    "PathTraversalError",
    "BackendUnavailableError",
    "CorruptObjectError",
    "CompressionError",
    "DataStoreConfigError",
]
