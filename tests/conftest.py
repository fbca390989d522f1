"""Shared fixtures."""

import pytest
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


@pytest.fixture(autouse=True)
def _clean_otel_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep OTEL_* environment from leaking into config defaults."""
    for name in (
        "OTEL_SERVICE_NAME",
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "OTEL_EXPORTER_OTLP_HEADERS",
        "TRACEGEN_ROOT",
    ):
        monkeypatch.delenv(name, raising=False)


class RecordingSpanExporter(InMemorySpanExporter):
    """In-memory exporter that also remembers the size of every export call."""

    def __init__(self) -> None:
        super().__init__()
        self.batch_sizes: list[int] = []

    def export(self, spans):
        self.batch_sizes.append(len(spans))
        return super().export(spans)


class FailingSpanExporter(SpanExporter):
    """Rejects every export, optionally by raising instead of returning FAILURE."""

    def __init__(self, raise_error: bool = False) -> None:
        self.raise_error = raise_error
        self.calls = 0

    def export(self, spans):
        self.calls += 1
        if self.raise_error:
            raise ConnectionError("collector unreachable")
        return SpanExportResult.FAILURE

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


@pytest.fixture
def memory_exporter() -> RecordingSpanExporter:
    return RecordingSpanExporter()
