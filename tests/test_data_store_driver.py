"""Tests for the DataStoreDriver operations, run against every backend.

Tests cover:
- Text round trip is byte-identical; upload returns the UTF-8 byte length
- Compressed round trip; sizes reported are the compressed wire sizes
- Listing aggregates every key under a path and never matches siblings
- Missing objects raise ObjectNotFoundError; undecodable bytes raise CorruptObjectError
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from bridge_store.data_store.compression import decompress
from bridge_store.data_store.errors import CorruptObjectError, ErrorKind, ObjectNotFoundError


@pytest.fixture(params=["s3", "filesystem", "database"])
def store(request: pytest.FixtureRequest) -> Any:
    """Yield each backend in turn."""
    fixture_name = {"s3": "s3_store", "filesystem": "fs_store", "database": "db_store"}
    return request.getfixturevalue(fixture_name[request.param])


class TestTextObjects:
    """Tests for fetch_object / upload_object."""

    def test_upload_then_fetch_returns_identical_text(self, store: Any) -> None:
        """Fetching an uploaded object returns the exact text."""
        written = asyncio.run(store.upload_object("hello.txt", "Hello, Bridge!", "docs"))
        text = asyncio.run(store.fetch_object("hello.txt", "docs"))

        assert text == "Hello, Bridge!"
        assert written == 14

    def test_upload_returns_utf8_byte_length(self, store: Any) -> None:
        """Returned size counts UTF-8 bytes, not characters."""
        written = asyncio.run(store.upload_object("greek.txt", "αβγ"))

        assert written == 6

    def test_empty_text_round_trip(self, store: Any) -> None:
        """Empty text is stored and returned as empty."""
        written = asyncio.run(store.upload_object("empty.txt", ""))

        assert written == 0
        assert asyncio.run(store.fetch_object("empty.txt")) == ""

    def test_upload_overwrites_existing_object(self, store: Any) -> None:
        """A second upload to the same key replaces the first."""
        asyncio.run(store.upload_object("note.txt", "first", "notes"))
        asyncio.run(store.upload_object("note.txt", "second", "notes"))

        assert asyncio.run(store.fetch_object("note.txt", "notes")) == "second"

    def test_path_and_name_aliasing_address_same_object(self, store: Any) -> None:
        """("a/b", "c") and ("a", "b/c") derive the same key."""
        asyncio.run(store.upload_object("c.txt", "shared", "a/b"))

        assert asyncio.run(store.fetch_object("b/c.txt", "a")) == "shared"

    def test_empty_path_addresses_root_object(self, store: Any) -> None:
        """path="" stores at the bare name, never under a leading separator."""
        asyncio.run(store.upload_object("root.txt", "top", ""))

        assert asyncio.run(store.fetch_object("root.txt")) == "top"
        assert asyncio.run(store.list_objects()) == ["root.txt"]

    def test_names_with_spaces_and_accents_round_trip(self, store: Any) -> None:
        """Object names are not limited to an ASCII alphabet."""
        asyncio.run(store.upload_object("Q1 report.json", "{}", "deals"))
        asyncio.run(store.upload_object("résumé+cv@2024.txt", "cv", "people"))

        assert asyncio.run(store.fetch_object("Q1 report.json", "deals")) == "{}"
        assert asyncio.run(store.fetch_object("résumé+cv@2024.txt", "people")) == "cv"
        assert asyncio.run(store.list_objects("deals")) == ["deals/Q1 report.json"]

    def test_fetch_missing_object_raises_not_found(self, store: Any) -> None:
        """Fetching an absent key raises ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError) as exc_info:
            asyncio.run(store.fetch_object("missing.txt", "docs"))

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.key == "docs/missing.txt"
        assert exc_info.value.backend == store.backend_name

    def test_fetch_binary_object_as_text_raises_corrupt(self, store: Any) -> None:
        """Bytes that are not UTF-8 are reported as corrupt."""
        asyncio.run(store.write_bytes("bin/blob", b"\xff\xfe\x00\x80"))

        with pytest.raises(CorruptObjectError) as exc_info:
            asyncio.run(store.fetch_object("blob", "bin"))

        assert exc_info.value.kind == ErrorKind.CORRUPT
        assert exc_info.value.code == "utf-8"
        assert exc_info.value.key == "bin/blob"


class TestCompressedObjects:
    """Tests for fetch_compressed_object / upload_compressed_object."""

    def test_round_trip_returns_payload_and_wire_size(self, store: Any) -> None:
        """Fetch returns the original payload and the stored compressed size."""
        payload = b"compressible payload " * 500

        compressed_size = asyncio.run(store.upload_compressed_object("blob.zst", payload, "bin"))
        data, fetched_size = asyncio.run(store.fetch_compressed_object("blob.zst", "bin"))

        assert data == payload
        assert fetched_size == compressed_size
        assert compressed_size < len(payload)

    def test_stored_bytes_are_compressed_frame(self, store: Any) -> None:
        """The backend holds the compressed frame, not the raw payload."""
        payload = b"x" * 10_000
        compressed_size = asyncio.run(store.upload_compressed_object("x.zst", payload))

        stored = asyncio.run(store.read_bytes("x.zst"))

        assert len(stored) == compressed_size
        assert decompress(stored) == payload

    def test_empty_payload_round_trip(self, store: Any) -> None:
        """An empty payload compresses to a non-empty frame and comes back empty."""
        compressed_size = asyncio.run(store.upload_compressed_object("empty.zst", b""))
        data, fetched_size = asyncio.run(store.fetch_compressed_object("empty.zst"))

        assert data == b""
        assert compressed_size > 0
        assert fetched_size == compressed_size

    def test_plain_object_fetched_as_compressed_raises_corrupt(self, store: Any) -> None:
        """Text stored uncompressed is not a valid frame."""
        asyncio.run(store.upload_object("plain.txt", "not compressed", "docs"))

        with pytest.raises(CorruptObjectError) as exc_info:
            asyncio.run(store.fetch_compressed_object("plain.txt", "docs"))

        assert exc_info.value.key == "docs/plain.txt"
        assert exc_info.value.backend == store.backend_name

    def test_fetch_missing_compressed_object_raises_not_found(self, store: Any) -> None:
        """Fetching an absent compressed key raises ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            asyncio.run(store.fetch_compressed_object("missing.zst"))


class TestListObjects:
    """Tests for list_objects."""

    def test_lists_keys_under_path(self, store: Any) -> None:
        """Only keys under the path are returned, as full storage keys."""
        asyncio.run(store.upload_object("a.txt", "a", "docs"))
        asyncio.run(store.upload_object("b.txt", "b", "docs"))
        asyncio.run(store.upload_object("c.txt", "c", "other"))

        keys = asyncio.run(store.list_objects("docs"))

        assert sorted(keys) == ["docs/a.txt", "docs/b.txt"]

    def test_sibling_with_shared_prefix_not_listed(self, store: Any) -> None:
        """Listing "docs" does not match "docs-archive"."""
        asyncio.run(store.upload_object("a.txt", "a", "docs"))
        asyncio.run(store.upload_object("old.txt", "old", "docs-archive"))

        assert asyncio.run(store.list_objects("docs")) == ["docs/a.txt"]

    def test_listing_is_case_sensitive(self, store: Any) -> None:
        """Listing "docs" does not match keys under "Docs"."""
        asyncio.run(store.upload_object("a.txt", "A", "Docs"))
        asyncio.run(store.upload_object("b.txt", "b", "docs"))

        assert asyncio.run(store.list_objects("docs")) == ["docs/b.txt"]
        assert asyncio.run(store.list_objects("Docs")) == ["Docs/a.txt"]

    def test_nested_keys_included(self, store: Any) -> None:
        """Keys in nested paths are part of the listing."""
        asyncio.run(store.upload_object("deep.txt", "d", "docs/2024/q1"))

        assert asyncio.run(store.list_objects("docs")) == ["docs/2024/q1/deep.txt"]

    def test_no_path_lists_whole_namespace(self, store: Any) -> None:
        """Without a path every key is listed."""
        asyncio.run(store.upload_object("root.txt", "r"))
        asyncio.run(store.upload_object("a.txt", "a", "docs"))

        assert sorted(asyncio.run(store.list_objects())) == ["docs/a.txt", "root.txt"]

    def test_empty_path_returns_empty_list(self, store: Any) -> None:
        """Listing a path with no objects is not an error."""
        assert asyncio.run(store.list_objects("nothing-here")) == []

    def test_listing_spans_multiple_pages(self, store: Any) -> None:
        """More keys than one page are all returned."""
        for i in range(120):
            asyncio.run(store.upload_object(f"item-{i:03d}.txt", str(i), "many"))

        keys = asyncio.run(store.list_objects("many"))

        assert len(keys) == 120
        assert sorted(keys) == [f"many/item-{i:03d}.txt" for i in range(120)]

    def test_compressed_objects_listed_alongside_text(self, store: Any) -> None:
        """Plain and compressed objects share one namespace."""
        asyncio.run(store.upload_object("a.txt", "a", "mixed"))
        asyncio.run(store.upload_compressed_object("b.zst", b"b", "mixed"))

        assert sorted(asyncio.run(store.list_objects("mixed"))) == ["mixed/a.txt", "mixed/b.zst"]


class TestConcurrentUse:
    """Tests for sharing one driver across tasks."""

    def test_concurrent_uploads_and_fetches(self, store: Any) -> None:
        """Concurrent operations on one driver all complete."""

        async def scenario() -> list[str]:
            async with store:
                await asyncio.gather(
                    *(store.upload_object(f"f{i}.txt", f"value {i}", "conc") for i in range(10))
                )
                return await asyncio.gather(
                    *(store.fetch_object(f"f{i}.txt", "conc") for i in range(10))
                )

        results = asyncio.run(scenario())

        assert results == [f"value {i}" for i in range(10)]
