"""
Build synthetic traces: one root span and a flat layer of child spans.

Example tree (num_child_spans=2, num_span_links=1):
  lets-go (CLIENT)            links -> (random trace, random span)
  ├── okey-dokey-0 (SERVER)   links -> (random trace, random span)
  └── okey-dokey-1 (SERVER)   links -> (random trace, random span)

Every span shares the trace id, the configured status and duration, and the same
attribute policy (telemetry attributes, trace_id, static value, component state).
Traces are plain data; exporters convert them to SDK spans.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.trace.id_generator import IdGenerator, RandomIdGenerator
from opentelemetry.trace import (
    NonRecordingSpan,
    SpanContext,
    SpanKind,
    StatusCode,
    TraceFlags,
)
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from ..config import ScenarioConfig, parse_status_code
from .component_state import ComponentStateTracker

ROOT_SPAN_NAME = "lets-go"
CHILD_SPAN_NAME = "okey-dokey"
TRACE_ID_ATTR = "trace_id"
STATIC_ATTR = "static"

ROOT_SPAN_ATTRIBUTES: dict[str, Any] = {
    "net.peer.ip": "1.2.3.4",
    "peer.service": "telemetrygen-server",
}
CHILD_SPAN_ATTRIBUTES: dict[str, Any] = {
    "net.sock.peer.addr": "1.2.3.4",
    "peer.service": "telemetrygen-client",
}

_PROPAGATOR = TraceContextTextMapPropagator()


def format_trace_id(trace_id: int) -> str:
    return format(trace_id, "032x")


def format_span_id(span_id: int) -> str:
    return format(span_id, "016x")


@dataclass(frozen=True)
class SpanLinkRef:
    """Synthetic link target; not resolvable to a real span."""

    trace_id: int
    span_id: int
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class SyntheticSpan:
    """One generated span."""

    trace_id: int
    span_id: int
    name: str
    kind: SpanKind
    start_time: int
    end_time: int
    status_code: StatusCode
    parent_span_id: int | None = None
    parent_is_remote: bool = False
    attributes: dict[str, Any] = field(default_factory=dict)
    links: list[SpanLinkRef] = field(default_factory=list)

    @property
    def duration_ns(self) -> int:
        return self.end_time - self.start_time

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None


@dataclass
class SyntheticTrace:
    """A root span, its children, and the propagation headers used for the simulated hop."""

    trace_id: int
    root: SyntheticSpan
    children: list[SyntheticSpan] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def spans(self) -> list[SyntheticSpan]:
        return [self.root, *self.children]

    @property
    def trace_id_hex(self) -> str:
        return format_trace_id(self.trace_id)

    def span_names(self) -> list[str]:
        return [s.name for s in self.spans]


class SpanTreeBuilder:
    """Build one SyntheticTrace per call from a ScenarioConfig.

    The status code is parsed here, once; an unknown value raises ConfigurationError
    before any trace is built.
    """

    def __init__(
        self,
        config: ScenarioConfig,
        state_tracker: ComponentStateTracker | None = None,
        id_generator: IdGenerator | None = None,
        clock: Callable[[], int] = time.time_ns,
    ):
        self.config = config
        self.status_code = parse_status_code(config.status_code)
        self.state_tracker = state_tracker or ComponentStateTracker(
            config.component_id_attr_max, config.change_probability
        )
        self.id_generator = id_generator or RandomIdGenerator()
        self._clock = clock
        self._span_duration_ns = int(round(config.span_duration * 1_000_000_000))

    def build(self) -> SyntheticTrace:
        """Generate a fresh trace."""
        cfg = self.config
        trace_id = self.id_generator.generate_trace_id()
        root_span_id = self.id_generator.generate_span_id()
        used_ids: set[tuple[int, int]] = {(trace_id, root_span_id)}

        common = self._common_attributes(trace_id)
        start = self._clock()
        end = start + self._span_duration_ns

        root = SyntheticSpan(
            trace_id=trace_id,
            span_id=root_span_id,
            name=ROOT_SPAN_NAME,
            kind=SpanKind.CLIENT,
            start_time=start,
            end_time=end,
            status_code=self.status_code,
            attributes={**ROOT_SPAN_ATTRIBUTES, **common},
            links=self._links(used_ids),
        )

        headers: dict[str, str] = {}
        parent_span_id = root_span_id
        parent_is_remote = False
        if cfg.propagate_context:
            headers, remote_parent = _simulate_remote_hop(trace_id, root_span_id)
            parent_span_id = remote_parent.span_id
            parent_is_remote = remote_parent.is_remote

        children = []
        for i in range(cfg.num_child_spans):
            span_id = self._unique_span_id(trace_id, used_ids)
            children.append(
                SyntheticSpan(
                    trace_id=trace_id,
                    span_id=span_id,
                    name=f"{CHILD_SPAN_NAME}-{i}",
                    kind=SpanKind.SERVER,
                    start_time=start,
                    end_time=end,
                    status_code=self.status_code,
                    parent_span_id=parent_span_id,
                    parent_is_remote=parent_is_remote,
                    attributes={**CHILD_SPAN_ATTRIBUTES, **common},
                    links=self._links(used_ids),
                )
            )
        return SyntheticTrace(trace_id=trace_id, root=root, children=children, headers=headers)

    def _common_attributes(self, trace_id: int) -> dict[str, Any]:
        cfg = self.config
        attrs: dict[str, Any] = dict(cfg.telemetry_attributes)
        if cfg.add_trace_id_attr:
            attrs[TRACE_ID_ATTR] = format_trace_id(trace_id)
        if cfg.static_attr_value:
            attrs[STATIC_ATTR] = cfg.static_attr_value
        state = self.state_tracker.next_state()
        if state is not None:
            attrs.update(state.attributes())
        return attrs

    def _unique_span_id(self, trace_id: int, used_ids: set[tuple[int, int]]) -> int:
        span_id = self.id_generator.generate_span_id()
        while (trace_id, span_id) in used_ids:
            span_id = self.id_generator.generate_span_id()
        used_ids.add((trace_id, span_id))
        return span_id

    def _links(self, used_ids: set[tuple[int, int]]) -> list[SpanLinkRef]:
        links = []
        for i in range(self.config.num_span_links):
            target = (self.id_generator.generate_trace_id(), self.id_generator.generate_span_id())
            while target in used_ids:
                target = (
                    self.id_generator.generate_trace_id(),
                    self.id_generator.generate_span_id(),
                )
            used_ids.add(target)
            links.append(SpanLinkRef(target[0], target[1], {"link.index": i}))
        return links


def _simulate_remote_hop(trace_id: int, span_id: int) -> tuple[dict[str, str], SpanContext]:
    """Inject the root context into W3C trace-context headers and extract it back as a remote parent."""
    span_context = SpanContext(
        trace_id=trace_id,
        span_id=span_id,
        is_remote=False,
        trace_flags=TraceFlags(TraceFlags.SAMPLED),
    )
    carrier: dict[str, str] = {}
    _PROPAGATOR.inject(carrier, context=trace.set_span_in_context(NonRecordingSpan(span_context)))
    extracted = _PROPAGATOR.extract(carrier)
    return carrier, trace.get_current_span(extracted).get_span_context()
