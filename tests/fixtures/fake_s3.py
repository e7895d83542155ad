"""In-memory stand-in for the aioboto3 S3 client calls used by S3DataStore."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from botocore.exceptions import ClientError

TEST_BUCKET = "bridge-test-bucket"


def make_client_error(code: str, status: int, operation: str) -> ClientError:
    """Build a botocore ClientError shaped like a real S3 error response."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"Simulated {code}"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeStreamingBody:
    """Minimal async streaming body (async context manager + iter_chunks)."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.closed = False

    async def __aenter__(self) -> FakeStreamingBody:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True

    async def iter_chunks(self, chunk_size: int = 1024) -> AsyncIterator[bytes]:
        for start in range(0, len(self._data), chunk_size):
            yield self._data[start : start + chunk_size]


class FakePaginator:
    """list_objects_v2 paginator returning pages from the fake client."""

    def __init__(self, client: FakeS3Client) -> None:
        self._client = client

    def paginate(
        self,
        *,
        Bucket: str,
        Prefix: str = "",
        PaginationConfig: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        page_size = (PaginationConfig or {}).get("PageSize", 1000)
        return self._client.iter_list_pages(Bucket, Prefix, page_size)


class FakeS3Client:
    """In-memory S3 client.

    Attributes:
        objects: Stored objects by key.
        page_requests: Number of listing pages requested so far.
        page_sizes: PageSize passed to each paginate() call.
        fail_on_page: 1-based page number whose request raises fail_error.
        keyless_entries: Number of entries without "Key" put at the front of the listing.
        errors: Exceptions to raise from get_object / put_object, by method name.
    """

    def __init__(self, bucket: str = TEST_BUCKET) -> None:
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.page_requests = 0
        self.page_sizes: list[int] = []
        self.fail_on_page: int | None = None
        self.fail_error: Exception = make_client_error("InternalError", 500, "ListObjectsV2")
        self.keyless_entries = 0
        self.errors: dict[str, Exception] = {}

    def _check_bucket(self, bucket: str, operation: str) -> None:
        if bucket != self.bucket:
            raise make_client_error("NoSuchBucket", 404, operation)

    async def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        if "get_object" in self.errors:
            raise self.errors["get_object"]
        self._check_bucket(Bucket, "GetObject")
        if Key not in self.objects:
            raise make_client_error("NoSuchKey", 404, "GetObject")
        data = self.objects[Key]
        return {"Body": FakeStreamingBody(data), "ContentLength": len(data)}

    async def put_object(self, *, Bucket: str, Key: str, Body: bytes) -> dict[str, Any]:
        if "put_object" in self.errors:
            raise self.errors["put_object"]
        self._check_bucket(Bucket, "PutObject")
        self.objects[Key] = bytes(Body)
        return {"ETag": '"fake"'}

    def get_paginator(self, operation_name: str) -> FakePaginator:
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)

    async def iter_list_pages(
        self, bucket: str, prefix: str, page_size: int
    ) -> AsyncIterator[dict[str, Any]]:
        self.page_sizes.append(page_size)
        self._check_bucket(bucket, "ListObjectsV2")
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        entries: list[dict[str, Any]] = [{"Size": 0} for _ in range(self.keyless_entries)]
        entries.extend({"Key": k, "Size": len(self.objects[k])} for k in keys)

        page_number = 0
        start = 0
        while True:
            page_number += 1
            self.page_requests += 1
            if self.fail_on_page == page_number:
                raise self.fail_error
            chunk = entries[start : start + page_size]
            start += page_size
            page: dict[str, Any] = {
                "IsTruncated": start < len(entries),
                "KeyCount": len(chunk),
                "Prefix": prefix,
            }
            if chunk:
                page["Contents"] = chunk
            yield page
            if not page["IsTruncated"]:
                return
