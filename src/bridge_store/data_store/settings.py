"""Data store configuration.

Connection settings are read once from the environment (optionally seeded from
a .env file) into an explicit DataStoreSettings value, which is then handed
to each backend's constructor.

Environment Variables:
    BRIDGE_DATA_STORE_BACKEND: Force "s3", "database" or "filesystem"
        (default: try them in that order)
    BRIDGE_AWS_ACCESS_KEY_ID: S3 access key id
    BRIDGE_AWS_SECRET_ACCESS_KEY: S3 secret access key
    BRIDGE_AWS_REGION: S3 region
    BRIDGE_AWS_BUCKET: S3 bucket holding all objects
    BRIDGE_AWS_ENDPOINT_URL: Optional endpoint for S3-compatible stores
    BRIDGE_DATABASE_URL: SQLAlchemy URL for the relational backend
    BRIDGE_DATA_DIR: Base directory for the filesystem backend
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict

BRIDGE_DATA_STORE_BACKEND_ENV = "BRIDGE_DATA_STORE_BACKEND"
BRIDGE_AWS_ACCESS_KEY_ID_ENV = "BRIDGE_AWS_ACCESS_KEY_ID"
BRIDGE_AWS_SECRET_ACCESS_KEY_ENV = "BRIDGE_AWS_SECRET_ACCESS_KEY"
BRIDGE_AWS_REGION_ENV = "BRIDGE_AWS_REGION"
BRIDGE_AWS_BUCKET_ENV = "BRIDGE_AWS_BUCKET"
BRIDGE_AWS_ENDPOINT_URL_ENV = "BRIDGE_AWS_ENDPOINT_URL"
BRIDGE_DATABASE_URL_ENV = "BRIDGE_DATABASE_URL"
BRIDGE_DATA_DIR_ENV = "BRIDGE_DATA_DIR"

_ENV_FIELDS = {
    "backend": BRIDGE_DATA_STORE_BACKEND_ENV,
    "aws_access_key_id": BRIDGE_AWS_ACCESS_KEY_ID_ENV,
    "aws_secret_access_key": BRIDGE_AWS_SECRET_ACCESS_KEY_ENV,
    "aws_region": BRIDGE_AWS_REGION_ENV,
    "aws_bucket": BRIDGE_AWS_BUCKET_ENV,
    "aws_endpoint_url": BRIDGE_AWS_ENDPOINT_URL_ENV,
    "database_url": BRIDGE_DATABASE_URL_ENV,
    "data_dir": BRIDGE_DATA_DIR_ENV,
}


class DataStoreSettings(BaseModel):
    """Connection settings for every data store backend.

    Every field is optional: a backend whose required fields are missing is
    simply not available, and selection moves on to the next candidate.

    Attributes:
        backend: Name of a backend to force instead of probing.
        aws_access_key_id: S3 access key id.
        aws_secret_access_key: S3 secret access key.
        aws_region: S3 region.
        aws_bucket: S3 bucket name (the storage namespace).
        aws_endpoint_url: Endpoint override for S3-compatible stores.
        database_url: SQLAlchemy database URL.
        data_dir: Filesystem backend base directory.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )

    backend: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_region: str | None = None
    aws_bucket: str | None = None
    aws_endpoint_url: str | None = None
    database_url: str | None = None
    data_dir: str | None = None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        env_file: str | Path | None = None,
    ) -> DataStoreSettings:
        """Build settings from environment variables.

        Values from env_file (if given and present) fill in variables that
        are not set in the environment. Empty values count as missing.

        Args:
            environ: Environment mapping (defaults to os.environ).
            env_file: Optional path to a .env file.

        Returns:
            DataStoreSettings instance.
        """
        values: dict[str, str | None] = {}
        if env_file is not None and Path(env_file).is_file():
            values.update(dotenv_values(env_file))
        values.update(os.environ if environ is None else environ)

        fields: dict[str, str] = {}
        for field_name, env_var in _ENV_FIELDS.items():
            raw = values.get(env_var)
            if raw is not None and raw.strip():
                fields[field_name] = raw
        return cls(**fields)

    @property
    def has_s3_credentials(self) -> bool:
        """Return True if all four required S3 values are present."""
        return all(
            [
                self.aws_access_key_id,
                self.aws_secret_access_key,
                self.aws_region,
                self.aws_bucket,
            ]
        )
