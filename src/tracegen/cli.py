"""
Command-line interface for tracegen.

Provides commands for:
- Generating traces from flags (traces)
- Running YAML-defined scenarios, optionally overridden by flags (scenario)
- Listing available scenarios (list)
"""

import argparse
import logging
import signal
import sys
from typing import Any

from opentelemetry.sdk.trace.export import SpanExporter

from .config import ConfigurationError, DurationWithInf, ScenarioConfig, parse_key_values
from .exporters.console_exporter import create_console_exporter
from .exporters.file_exporter import FileSpanExporter
from .exporters.otlp_exporter import create_otlp_trace_exporter
from .scenarios.scenario_loader import ScenarioLoader
from .scenarios.scenario_runner import RunResult, WorkerPool

logger = logging.getLogger(__name__)

# argparse dest -> ScenarioConfig field for flags that map one to one.
_FLAG_FIELDS = {
    "workers": "workers",
    "rate": "rate",
    "traces": "num_traces",
    "child_spans": "num_child_spans",
    "span_links": "num_span_links",
    "span_duration": "span_duration",
    "status_code": "status_code",
    "batch": "batch",
    "marshal": "propagate_context",
    "add_traceid_attr": "add_trace_id_attr",
    "component_id_attr_max": "component_id_attr_max",
    "change_probability": "change_probability",
    "static_attr": "static_attr_value",
    "print_traces": "print_traces",
    "otlp_endpoint": "endpoint",
    "otlp_http": "use_http",
    "otlp_http_url_path": "http_path",
    "otlp_insecure": "insecure",
    "service": "service_name",
    "export_timeout": "export_timeout",
    "max_consecutive_failures": "max_consecutive_failures",
}


def _add_generation_flags(parser: argparse.ArgumentParser) -> None:
    """Register the scenario flags. Defaults are None so unset flags never override a scenario file."""
    parser.add_argument(
        "--workers", type=int, default=None, help="Number of workers (goroutines) to run"
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help="Approximately how many traces per second each worker should generate. Zero means no throttling.",
    )
    parser.add_argument(
        "--duration",
        type=str,
        default=None,
        help='For how long to run the test (e.g. 10s, 1m, or "inf" to run until stopped)',
    )
    parser.add_argument(
        "--traces",
        type=int,
        default=None,
        help="Number of traces to generate in each worker (ignored if duration is provided)",
    )
    parser.add_argument(
        "--child-spans",
        type=int,
        default=None,
        help="Number of child spans to generate for each trace",
    )
    parser.add_argument(
        "--marshal",
        action="store_true",
        default=None,
        help="Whether to marshal trace context through W3C traceparent headers (a simulated in-process hop; the headers are not sent to the collector)",
    )
    parser.add_argument(
        "--status-code",
        type=str,
        default=None,
        help="Status code to use for the spans, one of (Unset, Error, Ok) or the equivalent integer (0,1,2)",
    )
    parser.add_argument(
        "--batch",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Whether to batch traces (default: on)",
    )
    parser.add_argument(
        "--span-links",
        type=int,
        default=None,
        help="Number of span links to generate for each span",
    )
    parser.add_argument(
        "--span-duration",
        type=str,
        default=None,
        help="The duration of each generated span (default: 123us)",
    )
    parser.add_argument(
        "--add-traceid-attr",
        action="store_true",
        default=None,
        help="Whether to add traceId as an attribute to each span",
    )
    parser.add_argument(
        "--component-id-attr-max",
        type=int,
        default=None,
        help="If set, adds a 'componentId' attribute with a random number from 0 to this value (exclusive)",
    )
    parser.add_argument(
        "--change-probability",
        type=int,
        default=None,
        help="How often the state changes per componentId (e.g. 1=every trace, 100=every 100 traces). 0 freezes state.",
    )
    parser.add_argument(
        "--static-attr",
        type=str,
        default=None,
        help="If set, adds a 'static' attribute with this value to each span",
    )
    parser.add_argument(
        "--print-traces",
        action="store_true",
        default=None,
        help="Whether to print trace and span information to stdout",
    )
    parser.add_argument(
        "--otlp-endpoint",
        type=str,
        default=None,
        help="Destination endpoint for exporting (default: localhost:4317 for gRPC, localhost:4318 for HTTP)",
    )
    parser.add_argument(
        "--otlp-http",
        action="store_true",
        default=None,
        help="Whether to use HTTP exporter rather than a gRPC one",
    )
    parser.add_argument(
        "--otlp-http-url-path",
        type=str,
        default=None,
        help="Which URL path to write to (default: /v1/traces)",
    )
    parser.add_argument(
        "--otlp-insecure",
        action="store_true",
        default=None,
        help="Whether to enable client transport security for the exporter's connection",
    )
    parser.add_argument(
        "--otlp-header",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help='Custom header to be passed along with each OTLP request (repeatable), e.g. key="value"',
    )
    parser.add_argument(
        "--otlp-attributes",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Custom resource attribute (repeatable)",
    )
    parser.add_argument(
        "--telemetry-attributes",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Custom attribute added to every span (repeatable)",
    )
    parser.add_argument(
        "--service",
        type=str,
        default=None,
        help="Service name to use (default: telemetrygen)",
    )
    parser.add_argument(
        "--export-timeout",
        type=float,
        default=None,
        help="Seconds to wait for each export call (default: 10)",
    )
    parser.add_argument(
        "--max-consecutive-failures",
        type=int,
        default=None,
        help="Stop a worker after this many consecutive failed exports (default: 0, never)",
    )
    parser.add_argument(
        "--output-file",
        type=str,
        default=None,
        help="Write spans as JSON lines to this file instead of exporting over OTLP",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Print exported spans to stdout instead of exporting over OTLP",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tracegen",
        description="Synthetic OpenTelemetry trace load generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 100 traces from each of 4 workers to a local gRPC collector
  tracegen traces --workers 4 --traces 100 --otlp-insecure

  # One minute at 50 traces/s over OTLP/HTTP with component state churn
  tracegen traces --rate 50 --duration 1m --otlp-http --component-id-attr-max 10 --change-probability 5

  # Run a bundled scenario with an endpoint override
  tracegen scenario --name batched_links --otlp-endpoint collector:4317 --otlp-insecure
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    traces_parser = subparsers.add_parser("traces", help="Generate traces from flags")
    _add_generation_flags(traces_parser)

    scenario_parser = subparsers.add_parser("scenario", help="Run YAML-defined scenario")
    scenario_parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Scenario name (without .yaml extension)",
    )
    scenario_parser.add_argument(
        "--file",
        type=str,
        default=None,
        help="Path to a scenario YAML file (instead of --name)",
    )
    scenario_parser.add_argument(
        "--scenarios-dir",
        type=str,
        default=None,
        help="Folder with scenario YAML files (default: built-in sample definitions)",
    )
    _add_generation_flags(scenario_parser)

    list_parser = subparsers.add_parser("list", help="List available scenarios")
    list_parser.add_argument(
        "--scenarios-dir",
        type=str,
        default=None,
        help="Folder with scenario YAML files (default: built-in sample definitions)",
    )

    return parser


def config_from_args(args: argparse.Namespace, base: ScenarioConfig | None = None) -> ScenarioConfig:
    """Apply flags on top of base (defaults when None). Unset flags leave base values untouched."""
    base = base or ScenarioConfig()
    changes: dict[str, Any] = {}
    for dest, field_name in _FLAG_FIELDS.items():
        value = getattr(args, dest, None)
        if value is not None:
            changes[field_name] = value
    if getattr(args, "duration", None) is not None:
        changes["total_duration"] = DurationWithInf.parse(args.duration)
    if getattr(args, "otlp_header", None):
        changes["headers"] = {
            **base.headers,
            **{k: str(v) for k, v in parse_key_values(args.otlp_header, "header").items()},
        }
    if getattr(args, "otlp_attributes", None):
        changes["resource_attributes"] = {
            **base.resource_attributes,
            **parse_key_values(args.otlp_attributes, "resource attribute"),
        }
    if getattr(args, "telemetry_attributes", None):
        changes["telemetry_attributes"] = {
            **base.telemetry_attributes,
            **parse_key_values(args.telemetry_attributes, "telemetry attribute"),
        }
    return base.with_overrides(**changes)


def create_span_exporter(args: argparse.Namespace, config: ScenarioConfig) -> SpanExporter:
    """Pick the sink: JSON lines file, console, or OTLP (gRPC or HTTP)."""
    if getattr(args, "output_file", None):
        return FileSpanExporter(args.output_file)
    if getattr(args, "console", False):
        return create_console_exporter()
    return create_otlp_trace_exporter(
        endpoint=config.resolved_endpoint(),
        protocol="http" if config.use_http else "grpc",
        http_path=config.http_path,
        headers=config.headers,
        insecure=config.insecure,
        timeout=config.export_timeout,
    )


def _print_summary(result: RunResult) -> None:
    print()
    status = "cancelled" if result.cancelled else "finished"
    print(f"Run {status} in {result.elapsed:.2f}s")
    print(f"   Traces attempted: {result.traces_attempted}")
    print(f"   Traces delivered: {result.traces_delivered}")
    print(f"   Traces failed: {result.failures}")
    if len(result.workers) > 1 or result.failed_workers:
        for w in result.workers:
            line = (
                f"   worker {w.worker_id}: {w.state.value} "
                f"attempted={w.traces_attempted} delivered={w.traces_delivered} failed={w.traces_failed}"
            )
            if w.last_error:
                line += f" last_error={w.last_error}"
            print(line)


def _run(args: argparse.Namespace, config: ScenarioConfig) -> int:
    config.validate()
    print(f"   Workers: {config.workers}, rate: {config.rate:g}/s per worker")
    print(f"   Traces per worker: {config.num_traces or 'unlimited'}, duration: {config.total_duration}")
    if getattr(args, "output_file", None):
        print(f"   Output: {args.output_file}")
    elif getattr(args, "console", False):
        print("   Output: console")
    else:
        transport = "HTTP" if config.use_http else "gRPC"
        print(f"   Endpoint: {config.resolved_endpoint()} ({transport})")
    print()

    pool = WorkerPool(config, create_span_exporter(args, config))
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: pool.cancel())
    try:
        result = pool.run()
    finally:
        signal.signal(signal.SIGTERM, previous)
    _print_summary(result)
    return 0 if result.ok else 1


def cmd_traces(args: argparse.Namespace) -> int:
    """Generate traces from flags."""
    print("Generating traces")
    return _run(args, config_from_args(args))


def cmd_scenario(args: argparse.Namespace) -> int:
    """Run YAML-defined scenario."""
    loader = ScenarioLoader(args.scenarios_dir)
    if args.file:
        try:
            scenario = loader.load_file(args.file)
        except FileNotFoundError:
            print(f"Scenario file not found: {args.file}")
            return 1
    elif args.name:
        try:
            scenario = loader.load(args.name)
        except FileNotFoundError:
            available = loader.list_scenarios()
            print(f"Scenario not found: {args.name}")
            print(f"   Available scenarios: {', '.join(available)}")
            return 1
    else:
        print("Either --name or --file is required")
        return 1

    print(f"Running scenario: {scenario.name}")
    if scenario.description:
        print(f"   Description: {scenario.description}")
    if scenario.tags:
        print(f"   Tags: {', '.join(scenario.tags)}")
    return _run(args, config_from_args(args, base=scenario.config))


def cmd_list(args: argparse.Namespace) -> int:
    """List available scenarios."""
    loader = ScenarioLoader(args.scenarios_dir)
    scenarios = loader.load_all()

    if not scenarios:
        print("No scenarios found.")
        print(f"Looking in: {loader.scenarios_dir}")
        return 0

    print("Available scenarios:")
    print()
    for scenario in scenarios:
        cfg = scenario.config
        tags = ", ".join(scenario.tags) if scenario.tags else "none"
        print(f"  - {scenario.name}")
        if scenario.description:
            print(f"     {scenario.description}")
        print(f"     Tags: {tags}")
        print(
            f"     Workers: {cfg.workers}, Rate: {cfg.rate:g}/s, "
            f"Traces: {cfg.num_traces}, Duration: {cfg.total_duration}"
        )
        print()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {"traces": cmd_traces, "scenario": cmd_scenario, "list": cmd_list}
    try:
        return commands[args.command](args)
    except ConfigurationError as e:
        print(f"\nConfiguration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
