"""
OTLP span exporter factory.

Supports both gRPC (default, port 4317) and HTTP/protobuf (port 4318) protocols.
The OTLP encoding itself is left to the OpenTelemetry exporter packages.
"""

import logging
from typing import Any

from opentelemetry.sdk.trace.export import SpanExporter

logger = logging.getLogger(__name__)


def _http_url(endpoint: str, http_path: str, insecure: bool) -> str:
    """Build the full HTTP URL: scheme from insecure when missing, path appended unless present."""
    url = endpoint
    if not url.startswith(("http://", "https://")):
        url = f"{'http' if insecure else 'https'}://{url}"
    path = http_path if http_path.startswith("/") else f"/{http_path}"
    if not url.rstrip("/").endswith(path.rstrip("/")):
        url = f"{url.rstrip('/')}{path}"
    return url


def create_otlp_trace_exporter(
    endpoint: str = "localhost:4317",
    protocol: str = "grpc",
    http_path: str = "/v1/traces",
    headers: dict[str, str] | None = None,
    insecure: bool = False,
    timeout: float | None = None,
    **kwargs: Any,
) -> SpanExporter:
    """
    Create an OTLP trace exporter.

    Args:
        endpoint: host:port or URL of the collector
        protocol: "grpc" or "http"
        http_path: URL path for HTTP exports (default /v1/traces)
        headers: Optional headers to include
        insecure: Disable TLS (gRPC) / default to http:// (HTTP)
        timeout: Per-export timeout in seconds
        **kwargs: Additional exporter configuration

    Returns:
        Configured SpanExporter
    """
    if protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        target = endpoint.replace("http://", "").replace("https://", "")
        logger.info("starting gRPC exporter endpoint=%s insecure=%s", target, insecure)
        return OTLPSpanExporter(
            endpoint=target,
            insecure=insecure,
            headers=headers or None,
            timeout=timeout,
            **kwargs,
        )
    if protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (  # type: ignore[assignment]
            OTLPSpanExporter,
        )

        url = _http_url(endpoint, http_path, insecure)
        logger.info("starting HTTP exporter endpoint=%s", url)
        return OTLPSpanExporter(
            endpoint=url,
            headers=headers or None,
            timeout=timeout,
            **kwargs,
        )
    raise ValueError(f"Unsupported OTLP protocol: {protocol!r} (expected grpc or http)")
