"""
Console output for debugging and development.

TracePrinter backs the --print-traces option: a human-readable dump of each generated
trace that never touches the exported data. create_console_exporter prints the exported
spans themselves (SDK JSON form) instead of sending them to a collector.
"""

import sys
import threading
from typing import TextIO

from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from ..generators.trace_generator import SyntheticTrace, format_span_id, format_trace_id


def create_console_exporter(out: TextIO | None = None) -> ConsoleSpanExporter:
    """Create a span exporter that writes spans to stdout (or out)."""
    if out is None:
        return ConsoleSpanExporter()
    return ConsoleSpanExporter(out=out)


class TracePrinter:
    """Print trace and span information; safe to share between workers."""

    def __init__(self, out: TextIO | None = None):
        self._out = out
        self._lock = threading.Lock()

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def format_trace(self, synthetic: SyntheticTrace, worker_id: int | None = None) -> str:
        worker = f" worker={worker_id}" if worker_id is not None else ""
        lines = [f"trace trace_id={synthetic.trace_id_hex} spans={len(synthetic.spans)}{worker}"]
        for span in synthetic.spans:
            parent_id = format_span_id(span.parent_span_id) if span.parent_span_id else ""
            lines.append(
                f"   span name={span.name} span_id={format_span_id(span.span_id)}"
                f" parent_id={parent_id} kind={span.kind.name} status={span.status_code.name}"
                f" duration={span.duration_ns}ns"
            )
            for k, v in sorted(span.attributes.items()):
                lines.append(f"      {k}={v}")
            for link in span.links:
                lines.append(
                    f"      link trace_id={format_trace_id(link.trace_id)}"
                    f" span_id={format_span_id(link.span_id)}"
                )
        return "\n".join(lines)

    def print_trace(self, synthetic: SyntheticTrace, worker_id: int | None = None) -> None:
        text = self.format_trace(synthetic, worker_id)
        with self._lock:
            print(text, file=self.out, flush=True)
