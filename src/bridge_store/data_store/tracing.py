"""OpenTelemetry spans for data store operations.

Security:
    - Raw storage keys are never exported; only their SHA256 hash
    - No object contents, credentials or filesystem paths in attributes
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from bridge_store.data_store.errors import DataStoreError
from bridge_store.data_store.keys import derive_key, list_prefix
from bridge_store.observability.tracing import is_tracing_enabled

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

TRACER_NAME = "bridge.data_store"


def _hash_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def traced_data_store_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace an async driver operation with OpenTelemetry.

    The wrapped coroutine must take ``name`` and/or ``path`` parameters; the
    derived key (or listing prefix) is hashed into the span.

    Args:
        operation: Operation name (e.g., "fetch_object", "list_objects").

    Returns:
        Decorated coroutine function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return await func(self, *args, **kwargs)

            from opentelemetry import trace

            bound = signature.bind(self, *args, **kwargs)
            bound.apply_defaults()
            name = bound.arguments.get("name")
            path = bound.arguments.get("path")

            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(f"bridge.data_store.{operation}") as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                if name is not None:
                    key_hash = _hash_key(derive_key(path, name))
                    span.set_attribute("bridge.object_key_sha256", key_hash)
                else:
                    span.set_attribute("bridge.prefix_sha256", _hash_key(list_prefix(path)))

                try:
                    result = await func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    if isinstance(e, DataStoreError):
                        span.set_attribute("bridge.error_kind", e.kind.value)
                    raise

                _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add size/count attributes derived from an operation result."""
    try:
        if operation == "list_objects":
            span.set_attribute("bridge.object_count", len(result))
        elif operation == "fetch_object":
            span.set_attribute("bridge.object_size_bytes", len(result.encode("utf-8")))
        elif operation == "fetch_compressed_object":
            payload, compressed_size = result
            span.set_attribute("bridge.object_size_bytes", len(payload))
            span.set_attribute("bridge.object_compressed_size_bytes", compressed_size)
        elif operation == "upload_object":
            span.set_attribute("bridge.object_size_bytes", result)
        elif operation == "upload_compressed_object":
            span.set_attribute("bridge.object_compressed_size_bytes", result)
    except Exception as e:
        logger.debug("Failed to add result attributes to span: %s", e)
