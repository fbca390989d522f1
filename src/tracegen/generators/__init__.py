"""Synthetic trace building blocks: pacing, component state and span trees."""

from .component_state import ComponentState, ComponentStateTracker
from .rate_limiter import RateLimiter
from .trace_generator import SpanLinkRef, SpanTreeBuilder, SyntheticSpan, SyntheticTrace

__all__ = [
    "ComponentState",
    "ComponentStateTracker",
    "RateLimiter",
    "SpanTreeBuilder",
    "SpanLinkRef",
    "SyntheticSpan",
    "SyntheticTrace",
]
