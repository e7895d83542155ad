"""Data store backend selection.

Bridge picks its storage backend at startup by probing each candidate's
factory in priority order; a factory returns None when its configuration is
absent, and the next candidate is tried. The filesystem backend is always
available, so probing always yields a driver.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from bridge_store.data_store.base import DataStoreDriver
from bridge_store.data_store.database_store import DatabaseDataStore
from bridge_store.data_store.errors import DataStoreConfigError
from bridge_store.data_store.filesystem_store import FilesystemDataStore
from bridge_store.data_store.s3_store import S3DataStore
from bridge_store.data_store.settings import BRIDGE_DATA_STORE_BACKEND_ENV, DataStoreSettings

logger = logging.getLogger(__name__)

BackendFactory = Callable[[DataStoreSettings], DataStoreDriver | None]

BACKEND_PRIORITY: tuple[str, ...] = ("s3", "database", "filesystem")

BACKEND_FACTORIES: dict[str, BackendFactory] = {
    "s3": S3DataStore.from_settings,
    "database": DatabaseDataStore.from_settings,
    "filesystem": FilesystemDataStore.from_settings,
}


def select_data_store(settings: DataStoreSettings | None = None) -> DataStoreDriver:
    """Build the data store driver for the current configuration.

    Args:
        settings: Connection settings. If None, read from the environment.

    Returns:
        The forced backend if settings.backend is set, otherwise the first
        configured backend in BACKEND_PRIORITY.

    Raises:
        DataStoreConfigError: If the forced backend is unknown or not configured.
    """
    if settings is None:
        settings = DataStoreSettings.from_env()

    if settings.backend:
        name = settings.backend.lower()
        factory = BACKEND_FACTORIES.get(name)
        if factory is None:
            raise DataStoreConfigError(
                f"Unknown data store backend '{settings.backend}' in "
                f"{BRIDGE_DATA_STORE_BACKEND_ENV}. Valid options: {list(BACKEND_PRIORITY)}"
            )
        store = factory(settings)
        if store is None:
            raise DataStoreConfigError(
                f"Data store backend '{name}' was requested but is not configured"
            )
        logger.info("Selected data store backend: %s (forced)", store.backend_name)
        return store

    for name in BACKEND_PRIORITY:
        store = BACKEND_FACTORIES[name](settings)
        if store is not None:
            logger.info("Selected data store backend: %s", store.backend_name)
            return store
        logger.debug("Data store backend not configured, trying next: %s", name)

    raise DataStoreConfigError("No data store backend is configured")
