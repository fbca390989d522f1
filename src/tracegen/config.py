"""
Scenario configuration for synthetic trace generation.

A ScenarioConfig is the full parameter set of one run: pacing (workers, rate,
duration or trace count), trace shape (child spans, links, span duration,
status), attribute options (trace id, static value, component id / state) and
export options (transport, endpoint, batching).

Scenario files and bundled definitions live outside src/ under resource/
(resource/scenarios/definitions/). When running from source, resource/ at the
project root is used. When the package is installed, set TRACEGEN_ROOT to a
directory containing scenarios/.
"""

import math
import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml
from opentelemetry.trace import StatusCode

from .defaults import default_endpoint, default_headers, default_service_name


class ConfigurationError(Exception):
    """Raised when a scenario cannot be run as configured."""

    pass


def get_resources_root() -> Path:
    """Return the root directory for scenario resources.

    Resolution order:
    1. TRACEGEN_ROOT env var (must contain scenarios/)
    2. resource/ under directory containing pyproject.toml (when running from source)
    3. tracegen/resources/ next to this package (when installed; set TRACEGEN_ROOT if not present)
    """
    env_root = os.environ.get("TRACEGEN_ROOT")
    if env_root:
        p = Path(env_root).resolve()
        if p.is_dir():
            return p
    here = Path(__file__).resolve().parent
    for candidate in [here, *here.parents]:
        if (candidate / "pyproject.toml").is_file():
            return candidate / "resource"
    return Path(__file__).resolve().parent / "resources"


def load_yaml(path: Path, default: Any = None) -> Any:
    """Load YAML file; return default on missing file. Parse errors raise ConfigurationError."""
    if default is None:
        default = {}
    if not path.exists():
        return default
    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    return data if isinstance(data, dict) else default


# Duration units accepted by --duration and --span-duration.
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_INF_VALUES = frozenset({"inf", "infinite", "infinity"})


def parse_duration(value: Any) -> float:
    """Parse a duration ("1m30s", "123us", "2.5s" or a bare number of seconds) to seconds."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        raise ConfigurationError("Invalid duration: empty string")
    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    try:
        return sign * float(text)
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    return sign * total


@dataclass(frozen=True)
class DurationWithInf:
    """A run duration that is either finite (seconds) or explicitly infinite."""

    seconds: float = 0.0
    infinite: bool = False

    @classmethod
    def finite(cls, seconds: float) -> "DurationWithInf":
        return cls(seconds=float(seconds), infinite=False)

    @classmethod
    def inf(cls) -> "DurationWithInf":
        return cls(seconds=math.inf, infinite=True)

    @classmethod
    def parse(cls, value: Any) -> "DurationWithInf":
        """Parse "inf" or any duration accepted by parse_duration."""
        if isinstance(value, DurationWithInf):
            return value
        if isinstance(value, str) and value.strip().lower() in _INF_VALUES:
            return cls.inf()
        if isinstance(value, float) and math.isinf(value) and value > 0:
            return cls.inf()
        return cls.finite(parse_duration(value))

    def is_inf(self) -> bool:
        return self.infinite

    def duration(self) -> float:
        """Seconds; math.inf when infinite."""
        return math.inf if self.infinite else self.seconds

    def __str__(self) -> str:
        return "inf" if self.infinite else f"{self.seconds:g}s"


# Go telemetrygen status codes: 0=Unset, 1=Error, 2=Ok. The OpenTelemetry Python enum numbers
# OK and ERROR the other way round, so numeric strings never go through StatusCode(int).
_STATUS_CODES: dict[str, StatusCode] = {
    "0": StatusCode.UNSET,
    "Unset": StatusCode.UNSET,
    "1": StatusCode.ERROR,
    "Error": StatusCode.ERROR,
    "2": StatusCode.OK,
    "Ok": StatusCode.OK,
}


def parse_status_code(value: str) -> StatusCode:
    """Parse a status code flag value (Unset, Error, Ok or 0, 1, 2)."""
    code = _STATUS_CODES.get(str(value).strip())
    if code is None:
        raise ConfigurationError(
            f"expected `status-code` to be one of (Unset, Error, Ok) or (0, 1, 2), got {value!r}"
        )
    return code


def parse_key_values(value: Any, what: str = "attribute") -> dict[str, Any]:
    """Parse key=value pairs from a mapping, a list of strings, or a comma-separated string.

    Values wrapped in double quotes are taken as strings; true/false become booleans and
    integers are converted, as for --otlp-attributes.
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    if isinstance(value, str):
        items = [p for p in value.split(",") if p.strip()]
    else:
        items = [str(p) for p in value]
    result: dict[str, Any] = {}
    for item in items:
        key, sep, raw = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"Invalid {what} {item!r}: expected key=value")
        result[key] = _coerce_attribute_value(raw.strip())
    return result


def _coerce_attribute_value(raw: str) -> Any:
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        return raw[1:-1]
    if raw in ("true", "false"):
        return raw == "true"
    try:
        return int(raw)
    except ValueError:
        return raw


def _non_negative(value: Any) -> int:
    return max(0, int(value))


def _parse_bool(key: Any, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ConfigurationError(
        f"Invalid scenario setting: `{key}` must be true or false, got {value!r}"
    )


@dataclass(frozen=True)
class ScenarioConfig:
    """Describes one trace generation run. Validated once before any worker starts."""

    workers: int = 1
    rate: float = 1.0
    total_duration: DurationWithInf = field(default_factory=DurationWithInf)
    num_traces: int = 0
    num_child_spans: int = 1
    num_span_links: int = 0
    span_duration: float = 123e-6
    status_code: str = "0"
    batch: bool = True
    propagate_context: bool = False
    add_trace_id_attr: bool = False
    component_id_attr_max: int = 0
    change_probability: int = 0
    static_attr_value: str = ""
    print_traces: bool = False

    # Export options
    endpoint: str | None = field(default_factory=default_endpoint)
    use_http: bool = False
    http_path: str = "/v1/traces"
    insecure: bool = False
    headers: dict[str, str] = field(default_factory=default_headers)
    resource_attributes: dict[str, Any] = field(default_factory=dict)
    telemetry_attributes: dict[str, Any] = field(default_factory=dict)
    service_name: str = field(default_factory=default_service_name)
    export_timeout: float = 10.0
    max_consecutive_failures: int = 0
    batch_max_export_size: int = 512
    batch_max_queue_size: int = 2048
    batch_schedule_delay: float = 1.0

    def __post_init__(self) -> None:
        # Out-of-range counts are clamped so builders never see negative values.
        object.__setattr__(self, "workers", max(1, int(self.workers)))
        object.__setattr__(self, "rate", max(0.0, float(self.rate)))
        object.__setattr__(self, "total_duration", DurationWithInf.parse(self.total_duration))
        for name in (
            "num_traces",
            "num_child_spans",
            "num_span_links",
            "component_id_attr_max",
            "change_probability",
            "max_consecutive_failures",
        ):
            object.__setattr__(self, name, _non_negative(getattr(self, name)))
        object.__setattr__(self, "span_duration", max(0.0, parse_duration(self.span_duration)))
        object.__setattr__(self, "status_code", str(self.status_code))
        object.__setattr__(self, "batch_max_export_size", max(1, int(self.batch_max_export_size)))
        object.__setattr__(
            self,
            "batch_max_queue_size",
            max(self.batch_max_export_size, int(self.batch_max_queue_size)),
        )
        # The batch processor rejects non-positive delays and timeouts.
        for name in ("batch_schedule_delay", "export_timeout"):
            object.__setattr__(self, name, max(_MIN_INTERVAL, float(getattr(self, name))))

    def validate(self) -> None:
        """Raise ConfigurationError when the run has no stop condition or an unknown status code."""
        if (
            self.total_duration.duration() <= 0
            and self.num_traces <= 0
            and not self.total_duration.is_inf()
        ):
            raise ConfigurationError("either `traces` or `duration` must be greater than 0")
        parse_status_code(self.status_code)

    def resolved_endpoint(self) -> str:
        """Endpoint to export to; the transport's localhost default when unset."""
        if self.endpoint:
            return self.endpoint
        return "localhost:4318" if self.use_http else "localhost:4317"

    def with_overrides(self, **changes: Any) -> "ScenarioConfig":
        """Return a copy with the given fields replaced (None values are ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "ScenarioConfig":
        """Build a config from a scenario YAML mapping.

        Keys may use field names (num_child_spans) or the CLI flag spelling (child-spans).
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for raw_key, value in (data or {}).items():
            key = _FLAG_ALIASES.get(raw_key, str(raw_key).replace("-", "_"))
            if key not in known:
                raise ConfigurationError(f"Unknown scenario setting: {raw_key}")
            if key in ("headers", "resource_attributes", "telemetry_attributes"):
                value = parse_key_values(value, what=key.rstrip("s"))
            elif key == "total_duration":
                value = DurationWithInf.parse(value)
            elif key in _BOOL_FIELDS:
                value = _parse_bool(raw_key, value)
            kwargs[key] = value
        try:
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid scenario setting: {e}") from e


_MIN_INTERVAL = 0.001

_BOOL_FIELDS = {
    "batch",
    "propagate_context",
    "add_trace_id_attr",
    "print_traces",
    "use_http",
    "insecure",
}

# CLI flag spellings accepted in scenario files.
_FLAG_ALIASES = {
    "duration": "total_duration",
    "traces": "num_traces",
    "child-spans": "num_child_spans",
    "span-links": "num_span_links",
    "span-duration": "span_duration",
    "status-code": "status_code",
    "marshal": "propagate_context",
    "add-traceid-attr": "add_trace_id_attr",
    "component-id-attr-max": "component_id_attr_max",
    "change-probability": "change_probability",
    "static-attr": "static_attr_value",
    "print-traces": "print_traces",
    "otlp-endpoint": "endpoint",
    "otlp-http": "use_http",
    "otlp-http-url-path": "http_path",
    "otlp-insecure": "insecure",
    "otlp-header": "headers",
    "otlp-attributes": "resource_attributes",
    "telemetry-attributes": "telemetry_attributes",
    "service": "service_name",
}


def new_config() -> ScenarioConfig:
    """Return a config with default values."""
    return ScenarioConfig()
