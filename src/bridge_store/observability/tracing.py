"""OpenTelemetry tracing configuration for Bridge data stores.

Tracing is off by default. When enabled, data store operations emit spans
(see bridge_store.data_store.tracing) and the relational backend's engine is
instrumented.

Environment Variables:
    BRIDGE_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    BRIDGE_REQUIRE_OTEL: Set to "1" to fail startup if tracing cannot initialize
    BRIDGE_OTEL_SERVICE_NAME: Service name for spans (default: "bridge")
    BRIDGE_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    BRIDGE_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    BRIDGE_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")
    BRIDGE_OTEL_RESOURCE_ATTRS: Comma-separated k=v pairs for resource attributes
    BRIDGE_OTEL_TEST_CAPTURE: Set to "1" to use in-memory exporter for tests

Security:
    - Never export credentials, object contents or raw storage keys
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider

logger = logging.getLogger(__name__)

BRIDGE_OTEL_ENABLED_ENV = "BRIDGE_OTEL_ENABLED"
BRIDGE_REQUIRE_OTEL_ENV = "BRIDGE_REQUIRE_OTEL"
BRIDGE_OTEL_TEST_CAPTURE_ENV = "BRIDGE_OTEL_TEST_CAPTURE"

_FLAG_ENV_FIELDS = {
    "enabled": BRIDGE_OTEL_ENABLED_ENV,
    "required": BRIDGE_REQUIRE_OTEL_ENV,
    "test_capture": BRIDGE_OTEL_TEST_CAPTURE_ENV,
}
_TEXT_ENV_FIELDS = {
    "service_name": "BRIDGE_OTEL_SERVICE_NAME",
    "exporter": "BRIDGE_OTEL_EXPORTER",
    "otlp_endpoint": "BRIDGE_OTEL_EXPORTER_OTLP_ENDPOINT",
    "otlp_protocol": "BRIDGE_OTEL_EXPORTER_OTLP_PROTOCOL",
    "resource_attrs": "BRIDGE_OTEL_RESOURCE_ATTRS",
}
_TRUE_VALUES = frozenset({"1", "true", "yes"})

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None  # InMemorySpanExporter when test capture is on


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and BRIDGE_REQUIRE_OTEL=1."""

    pass


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in _TRUE_VALUES


class TracingSettings(BaseModel):
    """Tracing options read from BRIDGE_OTEL_* variables.

    Attributes:
        enabled: Emit spans at all.
        required: Fail startup instead of running untraced.
        test_capture: Keep spans in memory for assertions.
        service_name: service.name resource attribute.
        exporter: Span exporter name, a key of the exporter registry.
        otlp_endpoint: Collector endpoint; the exporter default if unset.
        otlp_protocol: "grpc" or "http".
        resource_attrs: Extra resource attributes. A "k=v,k2=v2" string is
            accepted and parsed; entries without "=" are skipped.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    enabled: bool = False
    required: bool = False
    test_capture: bool = False
    service_name: str = "bridge"
    exporter: str = "otlp"
    otlp_endpoint: str | None = None
    otlp_protocol: str = "grpc"
    resource_attrs: dict[str, str] = Field(default_factory=dict)

    @field_validator("resource_attrs", mode="before")
    @classmethod
    def _split_pairs(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        pairs = (item.split("=", 1) for item in value.split(",") if "=" in item)
        return {k.strip(): v.strip() for k, v in pairs}

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TracingSettings:
        """Read tracing settings; blank variables keep their defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            field: _env_flag(env, name) for field, name in _FLAG_ENV_FIELDS.items()
        }
        for field, name in _TEXT_ENV_FIELDS.items():
            raw = env.get(name, "").strip()
            if raw:
                values[field] = raw
        return cls(**values)

    def resource_attributes(self) -> dict[str, str]:
        """Resource attributes with service.name first; explicit attrs win."""
        return {"service.name": self.service_name, **self.resource_attrs}


def _otlp_processor(settings: TracingSettings) -> SpanProcessor:
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    kwargs = {"endpoint": settings.otlp_endpoint} if settings.otlp_endpoint else {}
    if settings.otlp_protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HTTPSpanExporter,
        )

        return BatchSpanProcessor(HTTPSpanExporter(**kwargs))
    if settings.otlp_protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter as GRPCSpanExporter,
        )

        return BatchSpanProcessor(GRPCSpanExporter(**kwargs))
    raise ValueError(f"Unsupported OTLP protocol: {settings.otlp_protocol!r}")


def _console_processor(settings: TracingSettings) -> SpanProcessor:
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

    return SimpleSpanProcessor(ConsoleSpanExporter())


SPAN_PROCESSOR_FACTORIES: dict[str, Callable[[TracingSettings], SpanProcessor]] = {
    "otlp": _otlp_processor,
    "console": _console_processor,
}


def is_tracing_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _env_flag(os.environ, BRIDGE_OTEL_ENABLED_ENV)


def _build_processor(settings: TracingSettings) -> SpanProcessor:
    global _test_exporter

    if settings.test_capture:
        from opentelemetry.sdk.trace.export import SimpleSpanProcessor
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _test_exporter = InMemorySpanExporter()
        return SimpleSpanProcessor(_test_exporter)

    factory = SPAN_PROCESSOR_FACTORIES.get(settings.exporter)
    if factory is None:
        raise ValueError(f"Unknown span exporter: {settings.exporter!r}")
    return factory(settings)


def configure_tracing(settings: TracingSettings | None = None) -> bool:
    """Install the Bridge TracerProvider.

    Idempotent. The global provider can be set only once per process, so a
    second call after a successful one is a no-op.

    Args:
        settings: Tracing options. Read from the environment if None.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If tracing is required and configuration fails.
    """
    global _tracer_provider, _is_configured

    if settings is None:
        settings = TracingSettings.from_env()

    if not settings.enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", BRIDGE_OTEL_ENABLED_ENV)
        return False

    if settings.test_capture and _test_exporter is not None:
        return True
    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider(resource=Resource.create(settings.resource_attributes()))
        provider.add_span_processor(_build_processor(settings))
        trace.set_tracer_provider(provider)
        _tracer_provider = provider
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if settings.required:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False

    logger.info(
        "OpenTelemetry tracing configured: service=%s, exporter=%s",
        settings.service_name,
        "in-memory" if settings.test_capture else settings.exporter,
    )
    return True


def instrument_sqlalchemy(engine: Any) -> None:
    """Instrument a SQLAlchemy engine with OpenTelemetry.

    Requires the optional opentelemetry-instrumentation-sqlalchemy package;
    a missing package is logged and ignored.
    """
    if not is_tracing_enabled():
        return

    try:
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

        SQLAlchemyInstrumentor().instrument(engine=engine, enable_commenter=False)
        logger.debug("SQLAlchemy engine instrumented with OpenTelemetry")
    except Exception as e:
        logger.warning("Failed to instrument SQLAlchemy: %s", e)


def get_test_spans() -> list[ReadableSpan]:
    """Spans captured in memory, or [] when test capture is off."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())


def clear_test_spans() -> None:
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Forget the configured state, keeping the in-memory exporter.

    The OpenTelemetry TracerProvider cannot be replaced once set, so only the
    captured spans are cleared.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
