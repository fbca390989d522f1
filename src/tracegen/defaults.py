"""
Export defaults from the standard OpenTelemetry environment variables.

OTEL_SERVICE_NAME, OTEL_EXPORTER_OTLP_ENDPOINT and OTEL_EXPORTER_OTLP_HEADERS seed the
service name, endpoint and headers of a new ScenarioConfig; flags and scenario files win.
"""

import os

DEFAULT_SERVICE_NAME = "telemetrygen"


def default_service_name() -> str:
    """Service name for generated spans: OTEL_SERVICE_NAME or telemetrygen."""
    return os.environ.get("OTEL_SERVICE_NAME", "").strip() or DEFAULT_SERVICE_NAME


def default_endpoint() -> str | None:
    """Collector endpoint from OTEL_EXPORTER_OTLP_ENDPOINT; None means the transport default."""
    return os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip() or None


def default_headers() -> dict[str, str]:
    """Export headers from OTEL_EXPORTER_OTLP_HEADERS (comma-separated key=value)."""
    raw = os.environ.get("OTEL_EXPORTER_OTLP_HEADERS", "").strip()
    if not raw:
        return {}
    headers: dict[str, str] = {}
    for part in raw.split(","):
        key, sep, value = part.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers
