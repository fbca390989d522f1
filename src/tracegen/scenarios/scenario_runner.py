"""
Run a trace generation scenario across a pool of workers.

The pool orchestrates:
- Validating the scenario before any worker starts
- One thread per worker, each with its own RateLimiter
- Building, printing and exporting traces
- Stopping on trace count, duration or external cancellation
- Aggregating per-worker counts into a RunResult
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum

from opentelemetry.sdk.trace.export import SpanExporter

from ..config import ScenarioConfig
from ..exporters.console_exporter import TracePrinter
from ..exporters.trace_exporter import DeliveryError, TraceExporter
from ..generators.component_state import ComponentStateTracker
from ..generators.rate_limiter import RateLimiter
from ..generators.trace_generator import SpanTreeBuilder

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (WorkerState.COMPLETED, WorkerState.CANCELLED, WorkerState.FAILED)


@dataclass
class WorkerResult:
    """Outcome of one worker. delivered/failed come from the exporter's delivery ledger."""

    worker_id: int
    state: WorkerState = WorkerState.IDLE
    traces_attempted: int = 0
    traces_delivered: int = 0
    traces_failed: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None


@dataclass
class RunResult:
    """Aggregate of a run, reported even when the run was cancelled."""

    workers: list[WorkerResult] = field(default_factory=list)
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def traces_attempted(self) -> int:
        return sum(w.traces_attempted for w in self.workers)

    @property
    def traces_delivered(self) -> int:
        return sum(w.traces_delivered for w in self.workers)

    @property
    def failures(self) -> int:
        return sum(w.traces_failed for w in self.workers)

    @property
    def failed_workers(self) -> list[WorkerResult]:
        return [w for w in self.workers if w.state is WorkerState.FAILED]

    @property
    def ok(self) -> bool:
        return self.failures == 0 and not self.failed_workers


class WorkerPool:
    """Own N worker loops against one ScenarioConfig."""

    def __init__(
        self,
        config: ScenarioConfig,
        span_exporter: SpanExporter,
        state_tracker: ComponentStateTracker | None = None,
        printer: TracePrinter | None = None,
        builder: SpanTreeBuilder | None = None,
    ):
        self.config = config
        self.span_exporter = span_exporter
        self.state_tracker = state_tracker
        self.printer = printer
        self.builder = builder
        self.exporter: TraceExporter | None = None
        self.workers: list[WorkerResult] = []
        self._halt = threading.Event()
        self._cancelled = threading.Event()
        self._started = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask every worker to stop at its next rate-limit wait or export."""
        if not self._halt.is_set():
            logger.info("cancellation requested")
        self._cancelled.set()
        self._halt.set()

    def wait_started(self, timeout: float | None = None) -> bool:
        """Block until run() has started its workers."""
        return self._started.wait(timeout)

    def run(self) -> RunResult:
        """Run the scenario to completion (or cancellation) and return the aggregate result.

        ConfigurationError is raised before any worker thread exists.
        """
        cfg = self.config
        cfg.validate()
        # Events are per run; a pool may be run more than once.
        self._halt.clear()
        self._cancelled.clear()
        self._started.clear()
        if self.state_tracker is None:
            self.state_tracker = ComponentStateTracker(
                cfg.component_id_attr_max, cfg.change_probability
            )
        self.state_tracker.reset()
        if self.builder is None:
            self.builder = SpanTreeBuilder(cfg, self.state_tracker)
        if cfg.print_traces and self.printer is None:
            self.printer = TracePrinter()
        self.exporter = TraceExporter(self.span_exporter, cfg)

        if cfg.rate > 0:
            logger.info("generation of traces is limited rate=%g per worker", cfg.rate)
        else:
            logger.info("generation of traces isn't being throttled")

        self.workers = [WorkerResult(worker_id=i) for i in range(cfg.workers)]
        threads = [
            threading.Thread(
                target=self._run_worker,
                args=(w, self.builder, self.exporter),
                name=f"tracegen-worker-{w.worker_id}",
            )
            for w in self.workers
        ]

        timer: threading.Timer | None = None
        duration = cfg.total_duration
        if not duration.is_inf() and duration.duration() > 0:
            timer = threading.Timer(duration.duration(), self._halt.set)
            timer.daemon = True

        start = time.monotonic()
        for t in threads:
            t.start()
        if timer is not None:
            timer.start()
        self._started.set()
        try:
            self._join(threads)
        except KeyboardInterrupt:
            self.cancel()
            self._join(threads)
        finally:
            if timer is not None:
                timer.cancel()
            self.exporter.shutdown()
        elapsed = time.monotonic() - start

        for w in self.workers:
            counts = self.exporter.ledger.counts(w.worker_id)
            w.traces_delivered = counts.delivered
            w.traces_failed = counts.failed
        result = RunResult(workers=self.workers, elapsed=elapsed, cancelled=self.cancelled)
        logger.info(
            "traces generated attempted=%d delivered=%d failed=%d elapsed=%.3fs",
            result.traces_attempted,
            result.traces_delivered,
            result.failures,
            result.elapsed,
        )
        return result

    @staticmethod
    def _join(threads: list[threading.Thread]) -> None:
        # Short joins keep the main thread responsive to KeyboardInterrupt.
        for t in threads:
            while t.is_alive():
                t.join(0.2)

    def _should_continue(self, worker: WorkerResult) -> bool:
        if self._halt.is_set():
            return False
        # The trace count is ignored once a duration is given.
        duration = self.config.total_duration
        if duration.is_inf() or duration.duration() > 0:
            return True
        return worker.traces_attempted < self.config.num_traces

    def _run_worker(
        self, worker: WorkerResult, builder: SpanTreeBuilder, exporter: TraceExporter
    ) -> None:
        limiter = RateLimiter(self.config.rate)
        max_failures = self.config.max_consecutive_failures
        worker.state = WorkerState.RUNNING
        logger.debug("worker %d started", worker.worker_id)
        try:
            while self._should_continue(worker):
                if not limiter.wait(self._halt):
                    break
                synthetic = builder.build()
                worker.traces_attempted += 1
                if self.printer is not None:
                    self.printer.print_trace(synthetic, worker.worker_id)
                try:
                    exporter.export(synthetic, worker.worker_id)
                    worker.consecutive_failures = 0
                except DeliveryError as e:
                    worker.consecutive_failures += 1
                    worker.last_error = str(e)
                    logger.warning("worker %d: %s", worker.worker_id, e)
                    if max_failures and worker.consecutive_failures >= max_failures:
                        logger.error(
                            "worker %d stopping after %d consecutive delivery failures",
                            worker.worker_id,
                            worker.consecutive_failures,
                        )
                        worker.state = WorkerState.FAILED
                        return
        except Exception as e:
            logger.exception("worker %d failed", worker.worker_id)
            worker.last_error = str(e)
            worker.state = WorkerState.FAILED
            return
        worker.state = WorkerState.CANCELLED if self.cancelled else WorkerState.COMPLETED
        logger.debug(
            "worker %d %s after %d traces",
            worker.worker_id,
            worker.state.value,
            worker.traces_attempted,
        )


def run_scenario(
    config: ScenarioConfig,
    span_exporter: SpanExporter,
    printer: TracePrinter | None = None,
) -> RunResult:
    """Convenience wrapper: run one scenario with a fresh pool."""
    return WorkerPool(config, span_exporter, printer=printer).run()
