"""S3 data store backend.

Stores every object in one bucket of AWS S3 or an S3-compatible service,
using a single shared aioboto3 client per driver.

To use this backend, set (in the environment or a .env file):
    BRIDGE_AWS_ACCESS_KEY_ID
    BRIDGE_AWS_SECRET_ACCESS_KEY
    BRIDGE_AWS_REGION
    BRIDGE_AWS_BUCKET
If any of the four is missing, the backend is unavailable and selection falls
back to the next candidate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack
from typing import Any

import aioboto3
import aiohttp
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from bridge_store.data_store.base import LIST_PAGE_SIZE, UNKNOWN_KEY_PLACEHOLDER, DataStoreDriver
from bridge_store.data_store.errors import DataStoreError, ErrorKind, normalize_error
from bridge_store.data_store.settings import DataStoreSettings

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404", "NoSuchBucket"})
_ACCESS_DENIED_CODES = frozenset(
    {
        "AccessDenied",
        "403",
        "AllAccessDisabled",
        "ExpiredToken",
        "InvalidAccessKeyId",
        "InvalidToken",
        "SignatureDoesNotMatch",
    }
)
_UNREACHABLE_CODES = frozenset(
    {
        "InternalError",
        "RequestTimeout",
        "ServiceUnavailable",
        "SlowDown",
        "500",
        "502",
        "503",
        "504",
    }
)


def classify_client_error(error: ClientError) -> tuple[ErrorKind, str | None]:
    """Map a botocore ClientError onto an ErrorKind.

    Returns:
        Tuple of (kind, AWS error code or None).
    """
    code = error.response.get("Error", {}).get("Code")
    if code in _NOT_FOUND_CODES:
        return ErrorKind.NOT_FOUND, code
    if code in _ACCESS_DENIED_CODES:
        return ErrorKind.ACCESS_DENIED, code
    if code in _UNREACHABLE_CODES:
        return ErrorKind.UNREACHABLE, code

    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if isinstance(status, int) and status >= 500:
        return ErrorKind.UNREACHABLE, code
    return ErrorKind.UNKNOWN, code


class S3DataStore(DataStoreDriver):
    """S3-backed data store.

    Keys map one-to-one onto object keys in the bucket. Reads buffer the
    whole object in memory and writes are single-shot put_object calls, which
    suits the document-sized payloads Bridge stores.
    """

    def __init__(
        self,
        *,
        access_key_id: str,
        secret_access_key: str,
        region: str,
        bucket: str,
        endpoint_url: str | None = None,
        page_size: int = LIST_PAGE_SIZE,
        client: Any = None,
    ) -> None:
        """Initialize the S3 backend.

        Args:
            access_key_id: S3 access key id.
            secret_access_key: S3 secret access key.
            region: Bucket region.
            bucket: Bucket holding all objects.
            endpoint_url: Optional endpoint for S3-compatible services.
            page_size: Keys requested per listing page.
            client: Pre-built S3 client to use instead of creating one.
                The caller keeps ownership of an injected client.
        """
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._region = region
        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._page_size = page_size
        self._client = client
        self._exit_stack: AsyncExitStack | None = None
        self._open_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: DataStoreSettings, **kwargs: Any) -> S3DataStore | None:
        """Build the backend from settings.

        Returns:
            S3DataStore, or None if any required S3 value is missing.
        """
        if not settings.has_s3_credentials:
            return None
        return cls(
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            region=settings.aws_region or "",
            bucket=settings.aws_bucket or "",
            endpoint_url=settings.aws_endpoint_url,
            **kwargs,
        )

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "s3"

    @property
    def bucket(self) -> str:
        """Return the bucket name."""
        return self._bucket

    async def open(self) -> None:
        """Create the shared S3 client if it does not exist yet."""
        async with self._open_lock:
            if self._client is not None:
                return
            session = aioboto3.Session(
                aws_access_key_id=self._access_key_id,
                aws_secret_access_key=self._secret_access_key,
                region_name=self._region,
            )
            stack = AsyncExitStack()
            self._client = await stack.enter_async_context(
                session.client("s3", endpoint_url=self._endpoint_url)
            )
            self._exit_stack = stack
            logger.info(
                "Created S3 client: bucket=%s region=%s endpoint=%s",
                self._bucket,
                self._region,
                self._endpoint_url or "aws",
            )

    async def close(self) -> None:
        """Release the S3 client if this driver created it."""
        if self._exit_stack is None:
            return
        stack, self._exit_stack = self._exit_stack, None
        self._client = None
        await stack.aclose()

    async def _get_client(self) -> Any:
        if self._client is None:
            await self.open()
        return self._client

    def _translate(self, error: Exception, message: str, key: str | None) -> DataStoreError:
        """Normalize a botocore/transport exception into a DataStoreError."""
        if isinstance(error, ClientError):
            kind, code = classify_client_error(error)
        elif isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            kind, code = ErrorKind.ACCESS_DENIED, type(error).__name__
        else:
            kind, code = ErrorKind.UNREACHABLE, type(error).__name__
        return normalize_error(
            kind, message, key=key, code=code, backend=self.backend_name, cause=error
        )

    async def read_bytes(self, key: str) -> bytes:
        """Download the object at key, concatenating the streamed body."""
        client = await self._get_client()
        try:
            response = await client.get_object(Bucket=self._bucket, Key=key)
            buffer = bytearray()
            async with response["Body"] as stream:
                async for chunk in stream.iter_chunks(READ_CHUNK_SIZE):
                    buffer.extend(chunk)
        except (ClientError, BotoCoreError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, "Failed to get object", key) from e

        logger.debug("Fetched object: bucket=%s key=%s size=%d", self._bucket, key, len(buffer))
        return bytes(buffer)

    async def write_bytes(self, key: str, data: bytes) -> None:
        """Upload data at key in a single request."""
        client = await self._get_client()
        try:
            await client.put_object(Bucket=self._bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, "Failed to save object", key) from e

    async def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        """Yield keys under prefix, one list_objects_v2 page at a time."""
        client = await self._get_client()
        paginator = client.get_paginator("list_objects_v2")
        pages = paginator.paginate(
            Bucket=self._bucket,
            Prefix=prefix,
            PaginationConfig={"PageSize": self._page_size},
        )
        try:
            async for page in pages:
                for entry in page.get("Contents", []):
                    key = entry.get("Key")
                    if not key:
                        logger.warning(
                            "Listing entry without key in bucket=%s prefix=%r; using placeholder",
                            self._bucket,
                            prefix,
                        )
                        key = UNKNOWN_KEY_PLACEHOLDER
                    yield key
        except (ClientError, BotoCoreError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, "Unable to list objects", None) from e
