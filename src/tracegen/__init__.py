"""
tracegen - synthetic OpenTelemetry trace load generator.

Produces a controlled stream of synthetic traces (root span, child spans, span links,
attributes) and sends it to an OTLP collector at a requested rate, for a requested
duration or trace count, across a pool of workers.
"""

__version__ = "1.0.0"
