"""Trace exporters and delivery."""

from .console_exporter import TracePrinter, create_console_exporter
from .file_exporter import FileSpanExporter
from .otlp_exporter import create_otlp_trace_exporter
from .trace_exporter import DeliveryError, DeliveryLedger, TraceExporter

__all__ = [
    "create_otlp_trace_exporter",
    "create_console_exporter",
    "FileSpanExporter",
    "TracePrinter",
    "TraceExporter",
    "DeliveryLedger",
    "DeliveryError",
]
