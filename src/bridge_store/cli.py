"""Bridge data store CLI - inspect and move objects through the selected backend.

Usage:
    bridge-store [--backend NAME] [--env-file PATH] [--verbose] backend
    bridge-store ls [--path PATH]
    bridge-store get NAME [--path PATH] [--compressed] [--out FILE]
    bridge-store put NAME [--input FILE] [--path PATH] [--compressed]

Backends: s3, database, filesystem (tried in that order unless --backend is given)

Exit codes:
    0: Success
    1: Configuration error / Internal error
    2: Data store error (not found, access denied, unreachable, corrupt, unknown)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from bridge_store.data_store import (
    DataStoreConfigError,
    DataStoreDriver,
    DataStoreError,
    DataStoreSettings,
    derive_key,
    select_data_store,
)
from bridge_store.observability import TracingConfigError, configure_tracing

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

VALID_BACKENDS = ("s3", "database", "filesystem")


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error(kind: str, message: str) -> dict[str, Any]:
    """Create an error payload for failures that are not DataStoreErrors."""
    return {"error": {"code": None, "kind": kind, "message": message}}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _load_settings(args: argparse.Namespace) -> DataStoreSettings:
    """Read settings from the environment, applying the --backend override."""
    settings = DataStoreSettings.from_env(env_file=args.env_file)
    if args.backend:
        settings = settings.model_copy(update={"backend": args.backend})
    return settings


def _run_with_store(
    store: DataStoreDriver,
    operation: Callable[[DataStoreDriver], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    """Run one driver operation inside the store's lifecycle."""

    async def runner() -> dict[str, Any]:
        async with store:
            return await operation(store)

    return asyncio.run(runner())


def cmd_backend(args: argparse.Namespace, store: DataStoreDriver) -> int:
    """Report the selected backend without touching storage."""
    _output_json({"backend": store.backend_name})
    return 0


def cmd_ls(args: argparse.Namespace, store: DataStoreDriver) -> int:
    """List every key under --path."""

    async def operation(driver: DataStoreDriver) -> dict[str, Any]:
        keys = await driver.list_objects(args.path)
        return {"count": len(keys), "keys": keys}

    _output_json(_run_with_store(store, operation))
    return 0


def cmd_get(args: argparse.Namespace, store: DataStoreDriver) -> int:
    """Fetch an object to stdout or --out.

    Exit codes:
        0: Object fetched
        1: --compressed given without --out
    """
    if args.compressed and not args.out:
        _output_json(_make_error("usage", "--compressed requires --out FILE"))
        return 1

    key = derive_key(args.path, args.name)

    if args.compressed:

        async def fetch_compressed(driver: DataStoreDriver) -> dict[str, Any]:
            payload, compressed_size = await driver.fetch_compressed_object(args.name, args.path)
            Path(args.out).write_bytes(payload)
            return {
                "compressed_size_bytes": compressed_size,
                "key": key,
                "out": args.out,
                "size_bytes": len(payload),
            }

        _output_json(_run_with_store(store, fetch_compressed))
        return 0

    async def fetch(driver: DataStoreDriver) -> dict[str, Any]:
        text = await driver.fetch_object(args.name, args.path)
        return {"key": key, "size_bytes": len(text.encode("utf-8")), "text": text}

    result = _run_with_store(store, fetch)
    text = result.pop("text")
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        result["out"] = args.out
        _output_json(result)
    else:
        sys.stdout.write(text)
    return 0


def _read_input(input_path: str | None, binary: bool) -> str | bytes:
    """Read the object contents from a file or stdin."""
    if input_path:
        path = Path(input_path)
        return path.read_bytes() if binary else path.read_text(encoding="utf-8")
    return sys.stdin.buffer.read() if binary else sys.stdin.read()


def cmd_put(args: argparse.Namespace, store: DataStoreDriver) -> int:
    """Upload a file (or stdin) as an object."""
    contents = _read_input(args.input, binary=args.compressed)
    key = derive_key(args.path, args.name)

    async def upload(driver: DataStoreDriver) -> dict[str, Any]:
        if isinstance(contents, bytes):
            compressed_size = await driver.upload_compressed_object(args.name, contents, args.path)
            return {
                "compressed_size_bytes": compressed_size,
                "key": key,
                "size_bytes": len(contents),
            }
        written = await driver.upload_object(args.name, contents, args.path)
        return {"key": key, "size_bytes": written}

    _output_json(_run_with_store(store, upload))
    return 0


COMMAND_DISPATCH: dict[str, Callable[[argparse.Namespace, DataStoreDriver], int]] = {
    "backend": cmd_backend,
    "ls": cmd_ls,
    "get": cmd_get,
    "put": cmd_put,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bridge-store",
        description="Bridge data store CLI",
    )
    parser.add_argument(
        "--backend",
        choices=VALID_BACKENDS,
        default=None,
        help="Force a backend instead of probing s3, database, filesystem in order",
    )
    parser.add_argument(
        "--env-file",
        metavar="PATH",
        default=None,
        help="Read settings from a .env file (environment variables take precedence)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log debug output to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("backend", help="Show the selected backend")

    ls_parser = subparsers.add_parser("ls", help="List object keys")
    ls_parser.add_argument("--path", default=None, help="Logical path to list")

    get_parser = subparsers.add_parser("get", help="Fetch an object")
    get_parser.add_argument("name", help="Object name")
    get_parser.add_argument("--path", default=None, help="Logical path of the object")
    get_parser.add_argument(
        "--compressed",
        action="store_true",
        default=False,
        help="Fetch a compressed object (requires --out)",
    )
    get_parser.add_argument(
        "--out",
        metavar="FILE",
        default=None,
        help="Write the object to FILE instead of stdout",
    )

    put_parser = subparsers.add_parser("put", help="Upload an object")
    put_parser.add_argument("name", help="Object name")
    put_parser.add_argument(
        "--input",
        metavar="FILE",
        default=None,
        help="File to upload (reads from stdin if omitted)",
    )
    put_parser.add_argument("--path", default=None, help="Logical path of the object")
    put_parser.add_argument(
        "--compressed",
        action="store_true",
        default=False,
        help="Compress the contents before upload",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Configuration error / Internal error (unexpected)
        2: Data store error
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)

    try:
        configure_tracing()
        store = select_data_store(_load_settings(args))
        return COMMAND_DISPATCH[args.command](args, store)

    except DataStoreError as e:
        _output_json({"error": e.to_dict()})
        return 2

    except (DataStoreConfigError, TracingConfigError) as e:
        _output_json(_make_error("config", str(e)))
        return 1

    except OSError as e:
        _output_json(_make_error("io", str(e)))
        return 1

    except Exception as e:
        # Fail-closed: unexpected errors return exit code 1
        logger.exception("Unexpected error in %s command", args.command)
        _output_json(_make_error("internal", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
