"""Tests for converting and delivering synthetic traces."""

import pytest
from opentelemetry.sdk.trace.export import SpanExportResult
from opentelemetry.trace import SpanKind, StatusCode

from conftest import FailingSpanExporter, RecordingSpanExporter
from tracegen.config import ScenarioConfig
from tracegen.exporters.otlp_exporter import _http_url
from tracegen.exporters.trace_exporter import DeliveryError, DeliveryLedger, TraceExporter
from tracegen.generators.trace_generator import SpanTreeBuilder


def _config(**kwargs) -> ScenarioConfig:
    kwargs.setdefault("num_traces", 1)
    return ScenarioConfig(**kwargs)


def test_immediate_export_sends_whole_trace(memory_exporter: RecordingSpanExporter) -> None:
    """Without batching one trace is one export call."""
    cfg = _config(batch=False, num_child_spans=2)
    exporter = TraceExporter(memory_exporter, cfg)
    exporter.export(SpanTreeBuilder(cfg).build(), worker_id=0)
    assert memory_exporter.batch_sizes == [3]
    assert exporter.ledger.counts(0).delivered == 1
    exporter.shutdown()


def test_readable_spans_keep_tree_and_links(memory_exporter: RecordingSpanExporter) -> None:
    """Conversion preserves ids, parentage, kind, status, links and resource."""
    cfg = _config(
        batch=False,
        num_child_spans=1,
        num_span_links=2,
        status_code="Error",
        service_name="svc",
        resource_attributes={"env": "test"},
    )
    synthetic = SpanTreeBuilder(cfg).build()
    exporter = TraceExporter(memory_exporter, cfg)
    exporter.export(synthetic)
    root, child = memory_exporter.get_finished_spans()

    assert root.context.trace_id == child.context.trace_id == synthetic.trace_id
    assert root.context.span_id == synthetic.root.span_id
    assert root.parent is None
    assert child.parent is not None
    assert child.parent.span_id == root.context.span_id
    assert root.kind is SpanKind.CLIENT
    assert child.kind is SpanKind.SERVER
    assert root.status.status_code is StatusCode.ERROR
    assert root.end_time - root.start_time == 123_000
    assert [link.context.span_id for link in root.links] == [
        link.span_id for link in synthetic.root.links
    ]
    assert root.resource.attributes["service.name"] == "svc"
    assert root.resource.attributes["env"] == "test"
    assert root.instrumentation_scope.name == "tracegen"
    exporter.shutdown()


def test_rejected_export_raises_delivery_error() -> None:
    """A FAILURE result surfaces to the worker and is counted."""
    cfg = _config(batch=False)
    exporter = TraceExporter(FailingSpanExporter(), cfg)
    with pytest.raises(DeliveryError, match="rejected"):
        exporter.export(SpanTreeBuilder(cfg).build(), worker_id=2)
    assert exporter.ledger.counts(2).failed == 1
    assert exporter.ledger.counts(2).delivered == 0


def test_transport_exception_is_wrapped() -> None:
    """Transport errors become DeliveryError with the original cause."""
    cfg = _config(batch=False)
    exporter = TraceExporter(FailingSpanExporter(raise_error=True), cfg)
    with pytest.raises(DeliveryError) as info:
        exporter.export(SpanTreeBuilder(cfg).build())
    assert isinstance(info.value.__cause__, ConnectionError)
    assert exporter.ledger.totals().failed == 1


def test_batched_export_flushes_on_shutdown(memory_exporter: RecordingSpanExporter) -> None:
    """Batched spans are delivered together once flushed."""
    cfg = _config(batch=True, num_child_spans=2, batch_schedule_delay=60)
    builder = SpanTreeBuilder(cfg)
    exporter = TraceExporter(memory_exporter, cfg)
    assert exporter.batched
    for _ in range(4):
        exporter.export(builder.build(), worker_id=1)
    exporter.shutdown()
    assert len(memory_exporter.get_finished_spans()) == 12
    assert sum(memory_exporter.batch_sizes) == 12
    assert exporter.ledger.counts(1).delivered == 4


def test_trace_split_across_batches_counts_once(memory_exporter: RecordingSpanExporter) -> None:
    """A trace is delivered when its last span is exported, whichever batch carries it."""
    cfg = _config(
        batch=True,
        num_child_spans=2,
        batch_max_export_size=2,
        batch_schedule_delay=60,
    )
    builder = SpanTreeBuilder(cfg)
    exporter = TraceExporter(memory_exporter, cfg)
    exporter.export(builder.build())
    exporter.export(builder.build())
    exporter.shutdown()
    assert all(size <= 2 for size in memory_exporter.batch_sizes)
    assert sum(memory_exporter.batch_sizes) == 6
    assert exporter.ledger.totals().delivered == 2
    assert exporter.ledger.totals().failed == 0


def test_batched_failures_are_counted_not_raised() -> None:
    """In batched mode failures only show up in the ledger."""
    cfg = _config(batch=True, batch_schedule_delay=60)
    exporter = TraceExporter(FailingSpanExporter(), cfg)
    exporter.export(SpanTreeBuilder(cfg).build())
    exporter.shutdown()
    assert exporter.ledger.totals().failed == 1
    assert exporter.ledger.totals().delivered == 0


def test_export_after_shutdown_is_a_delivery_error(memory_exporter: RecordingSpanExporter) -> None:
    """Nothing can be sent once the exporter is closed."""
    cfg = _config(batch=False)
    exporter = TraceExporter(memory_exporter, cfg)
    exporter.shutdown()
    with pytest.raises(DeliveryError):
        exporter.export(SpanTreeBuilder(cfg).build())


class _Span:
    def __init__(self, trace_id: int) -> None:
        self.context = type("Ctx", (), {"trace_id": trace_id})()


def test_ledger_settles_partial_and_abandoned_traces() -> None:
    """Partial exports stay pending; abandoned traces count as failed."""
    ledger = DeliveryLedger()
    ledger.register(1, worker_id=0, span_count=3)
    ledger.register(2, worker_id=1, span_count=1)
    ledger.settle([_Span(1), _Span(1)], success=True)  # type: ignore[list-item]
    assert ledger.pending == 2
    ledger.settle([_Span(2)], success=True)  # type: ignore[list-item]
    assert ledger.counts(1).delivered == 1
    assert ledger.abandon_pending() == 1
    assert ledger.counts(0).failed == 1
    assert ledger.totals().delivered == 1
    ledger.settle([_Span(1)], success=True)  # type: ignore[list-item]
    assert ledger.totals().delivered == 1


@pytest.mark.parametrize(
    ("endpoint", "path", "insecure", "url"),
    [
        ("localhost:4318", "/v1/traces", True, "http://localhost:4318/v1/traces"),
        ("collector:4318", "/v1/traces", False, "https://collector:4318/v1/traces"),
        ("http://c:4318/v1/traces", "/v1/traces", False, "http://c:4318/v1/traces"),
        ("http://c:4318/", "custom/path", False, "http://c:4318/custom/path"),
    ],
)
def test_http_url(endpoint: str, path: str, insecure: bool, url: str) -> None:
    """HTTP exporter URL gets a scheme and the configured path."""
    assert _http_url(endpoint, path, insecure) == url


def test_memory_exporter_reports_success(memory_exporter: RecordingSpanExporter) -> None:
    """Sanity check of the recording helper."""
    assert memory_exporter.export([]) is SpanExportResult.SUCCESS
