"""
File-based span exporter for offline analysis and debugging.

Writes one JSON object per span (JSON lines) for:
- Checking generated trace shapes without a collector
- Test fixtures
- Pipeline debugging
"""

import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

logger = logging.getLogger(__name__)


def span_to_dict(span: ReadableSpan) -> dict[str, Any]:
    """Flatten a span into a JSON-serializable dict."""
    return {
        "name": span.name,
        "trace_id": format(span.context.trace_id, "032x"),
        "span_id": format(span.context.span_id, "016x"),
        "parent_span_id": format(span.parent.span_id, "016x") if span.parent else None,
        "start_time": span.start_time,
        "end_time": span.end_time,
        "status": {
            "status_code": span.status.status_code.name,
            "description": span.status.description,
        },
        "attributes": dict(span.attributes) if span.attributes else {},
        "links": [
            {
                "trace_id": format(link.context.trace_id, "032x"),
                "span_id": format(link.context.span_id, "016x"),
                "attributes": dict(link.attributes) if link.attributes else {},
            }
            for link in span.links
        ],
        "kind": span.kind.name if span.kind else "INTERNAL",
        "resource": dict(span.resource.attributes) if span.resource else {},
    }


class FileSpanExporter(SpanExporter):
    """Export spans to a JSON lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        """Initialize file exporter."""
        self.output_path = Path(output_path)
        self.append = append
        self._lock = threading.Lock()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        if not append and self.output_path.exists():
            self.output_path.unlink()

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Append spans to the file."""
        try:
            lines = [json.dumps(span_to_dict(span), default=str) + "\n" for span in spans]
            with self._lock, open(self.output_path, "a", encoding="utf-8") as f:
                f.writelines(lines)
            return SpanExportResult.SUCCESS
        except (OSError, TypeError, ValueError) as e:
            logger.warning("failed to write spans to %s: %s", self.output_path, e)
            return SpanExportResult.FAILURE

    def shutdown(self) -> None:
        """Shutdown exporter."""
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Force flush."""
        return True
