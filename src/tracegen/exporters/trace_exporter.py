"""
Deliver synthetic traces through an OpenTelemetry SpanExporter.

Two delivery modes:
- immediate (batch=False): every trace is one export call made by the worker; a failed
  call raises DeliveryError back to that worker.
- batched (batch=True): spans are queued on the SDK BatchSpanProcessor and flushed by
  size, by schedule delay, and at shutdown.

A DeliveryLedger tracks each trace until all of its spans are exported (delivered) or
an export carrying it fails (failed), so the run result reports per-worker delivery in
both modes.

With propagate_context the trace carries the traceparent headers of a simulated
in-process hop. They only shape the parent links of the children and are logged at
debug level; the OTLP request itself carries only the configured export headers.
"""

import logging
import threading
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter, SpanExportResult
from opentelemetry.sdk.util.instrumentation import InstrumentationScope
from opentelemetry.trace import Link, SpanContext, Status, TraceFlags

from .. import __version__
from ..config import ScenarioConfig
from ..generators.trace_generator import SyntheticSpan, SyntheticTrace

logger = logging.getLogger(__name__)

INSTRUMENTATION_SCOPE = "tracegen"
_SAMPLED = TraceFlags(TraceFlags.SAMPLED)


class DeliveryError(Exception):
    """Raised when a single export attempt fails (transport error or endpoint rejection)."""

    pass


@dataclass
class DeliveryCounts:
    delivered: int = 0
    failed: int = 0


class DeliveryLedger:
    """Thread-safe record of which traces were delivered or failed, per worker."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # trace_id -> [worker_id, spans not yet exported]
        self._pending: dict[int, list[int]] = {}
        self._counts: dict[int, DeliveryCounts] = {}

    def register(self, trace_id: int, worker_id: int, span_count: int) -> None:
        with self._lock:
            self._counts.setdefault(worker_id, DeliveryCounts())
            self._pending[trace_id] = [worker_id, span_count]

    def settle(self, spans: Sequence[ReadableSpan], success: bool) -> None:
        """Apply one export outcome to the traces carried by spans."""
        per_trace = Counter(span.context.trace_id for span in spans)
        with self._lock:
            for trace_id, n in per_trace.items():
                entry = self._pending.get(trace_id)
                if entry is None:
                    continue
                worker_id, remaining = entry
                counts = self._counts[worker_id]
                if not success:
                    counts.failed += 1
                    del self._pending[trace_id]
                elif remaining - n <= 0:
                    counts.delivered += 1
                    del self._pending[trace_id]
                else:
                    entry[1] = remaining - n

    def abandon_pending(self) -> int:
        """Count every unsettled trace as failed; returns how many there were."""
        with self._lock:
            abandoned = len(self._pending)
            for worker_id, _ in self._pending.values():
                self._counts[worker_id].failed += 1
            self._pending.clear()
            return abandoned

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def counts(self, worker_id: int) -> DeliveryCounts:
        with self._lock:
            c = self._counts.get(worker_id, DeliveryCounts())
            return DeliveryCounts(c.delivered, c.failed)

    def totals(self) -> DeliveryCounts:
        with self._lock:
            return DeliveryCounts(
                sum(c.delivered for c in self._counts.values()),
                sum(c.failed for c in self._counts.values()),
            )


class _LedgerSpanExporter(SpanExporter):
    """Wraps a SpanExporter and settles the ledger with the outcome of every export call."""

    def __init__(self, exporter: SpanExporter, ledger: DeliveryLedger):
        self._exporter = exporter
        self._ledger = ledger

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        try:
            result = self._exporter.export(spans)
        except Exception:
            self._ledger.settle(spans, success=False)
            raise
        self._ledger.settle(spans, success=result is SpanExportResult.SUCCESS)
        return result

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


def build_resource(config: ScenarioConfig) -> Resource:
    """Resource for generated spans: service.name plus configured resource attributes."""
    attrs = {"service.name": config.service_name}
    attrs.update(config.resource_attributes)
    return Resource.create(attrs)


class TraceExporter:
    """Convert SyntheticTraces to SDK spans and deliver them, immediately or batched."""

    def __init__(
        self,
        span_exporter: SpanExporter,
        config: ScenarioConfig,
        resource: Resource | None = None,
    ):
        self.config = config
        self.ledger = DeliveryLedger()
        self.resource = resource or build_resource(config)
        self.scope = InstrumentationScope(INSTRUMENTATION_SCOPE, __version__)
        self._exporter = _LedgerSpanExporter(span_exporter, self.ledger)
        self._processor: BatchSpanProcessor | None = None
        if config.batch:
            self._processor = BatchSpanProcessor(
                self._exporter,
                max_queue_size=config.batch_max_queue_size,
                schedule_delay_millis=config.batch_schedule_delay * 1000,
                max_export_batch_size=config.batch_max_export_size,
                export_timeout_millis=config.export_timeout * 1000,
            )
        self._shutdown = False

    @property
    def batched(self) -> bool:
        return self._processor is not None

    def to_readable_span(self, span: SyntheticSpan) -> ReadableSpan:
        context = SpanContext(span.trace_id, span.span_id, is_remote=False, trace_flags=_SAMPLED)
        parent = None
        if span.parent_span_id is not None:
            parent = SpanContext(
                span.trace_id,
                span.parent_span_id,
                is_remote=span.parent_is_remote,
                trace_flags=_SAMPLED,
            )
        links = [
            Link(
                SpanContext(link.trace_id, link.span_id, is_remote=False, trace_flags=_SAMPLED),
                attributes=dict(link.attributes),
            )
            for link in span.links
        ]
        return ReadableSpan(
            name=span.name,
            context=context,
            parent=parent,
            resource=self.resource,
            attributes=dict(span.attributes),
            links=links,
            kind=span.kind,
            status=Status(span.status_code),
            start_time=span.start_time,
            end_time=span.end_time,
            instrumentation_scope=self.scope,
        )

    def to_readable_spans(self, synthetic: SyntheticTrace) -> list[ReadableSpan]:
        return [self.to_readable_span(span) for span in synthetic.spans]

    def export(self, synthetic: SyntheticTrace, worker_id: int = 0) -> None:
        """Send one trace. In immediate mode a failed send raises DeliveryError."""
        if self._shutdown:
            raise DeliveryError("exporter already shut down")
        spans = self.to_readable_spans(synthetic)
        if synthetic.headers:
            logger.debug("trace %s propagated with %s", synthetic.trace_id_hex, synthetic.headers)
        self.ledger.register(synthetic.trace_id, worker_id, len(spans))
        if self._processor is not None:
            for span in spans:
                self._processor.on_end(span)
            return
        try:
            result = self._exporter.export(spans)
        except Exception as e:
            raise DeliveryError(f"export of trace {synthetic.trace_id_hex} failed: {e}") from e
        if result is not SpanExportResult.SUCCESS:
            raise DeliveryError(f"export of trace {synthetic.trace_id_hex} was rejected")

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        if self._processor is not None:
            return self._processor.force_flush(timeout_millis)
        return self._exporter.force_flush(timeout_millis)

    def shutdown(self) -> None:
        """Flush queued spans, shut the exporter down, and fail whatever never got exported."""
        if self._shutdown:
            return
        self._shutdown = True
        logger.info("stopping the exporter")
        if self._processor is not None:
            self._processor.shutdown()
        else:
            self._exporter.shutdown()
        abandoned = self.ledger.abandon_pending()
        if abandoned:
            logger.warning("%d traces were not exported before shutdown", abandoned)
