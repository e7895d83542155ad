"""Bridge observability helpers (OpenTelemetry tracing)."""

from bridge_store.observability.tracing import (
    TracingConfigError,
    TracingSettings,
    configure_tracing,
    is_tracing_enabled,
)

__all__ = [
    "TracingConfigError",
    "TracingSettings",
    "configure_tracing",
    "is_tracing_enabled",
]
