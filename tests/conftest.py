"""Pytest configuration and fixtures for Bridge data store tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

import pytest

from tests.fixtures.fake_s3 import TEST_BUCKET, FakeS3Client


@pytest.fixture(autouse=True)
def isolate_bridge_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every BRIDGE_* variable so tests never see the host configuration.

    Tests that need a variable set it themselves with monkeypatch.setenv.
    """
    for name in list(os.environ):
        if name.startswith("BRIDGE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_s3_client() -> FakeS3Client:
    """Return an empty in-memory S3 client."""
    return FakeS3Client()


@pytest.fixture
def s3_store(fake_s3_client: FakeS3Client) -> Any:
    """Create an S3DataStore wired to the in-memory client."""
    from bridge_store.data_store.s3_store import S3DataStore

    return S3DataStore(
        access_key_id="AKIATEST",
        secret_access_key="secret",
        region="us-east-1",
        bucket=TEST_BUCKET,
        client=fake_s3_client,
    )


@pytest.fixture
def fs_store(tmp_path: Path) -> Any:
    """Create a FilesystemDataStore rooted in a temp directory."""
    from bridge_store.data_store.filesystem_store import FilesystemDataStore

    return FilesystemDataStore(base_dir=tmp_path / "data")


@pytest.fixture
def db_store(tmp_path: Path) -> Any:
    """Create a DatabaseDataStore on a SQLite file in a temp directory.

    In-memory SQLite is not usable: each worker thread would get its own database.
    """
    from bridge_store.data_store.database_store import DatabaseDataStore

    store = DatabaseDataStore(f"sqlite:///{tmp_path / 'bridge.db'}")
    yield store
    asyncio.run(store.close())
