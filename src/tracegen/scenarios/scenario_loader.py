"""
Load YAML-based scenario definitions.

A scenario file names a reproducible load shape:

    name: batched_links
    description: Five traces with two children and one link per span
    tags: [smoke, batch]
    settings:
      traces: 5
      child-spans: 2
      span-links: 1
      batch: true

Settings accept ScenarioConfig field names or the CLI flag spellings.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..config import ConfigurationError, ScenarioConfig, get_resources_root, load_yaml

SAMPLE_DEFINITIONS_DIR = get_resources_root() / "scenarios" / "definitions"


@dataclass
class Scenario:
    """A named, tagged ScenarioConfig."""

    name: str
    config: ScenarioConfig
    description: str = ""
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_name: str = "") -> "Scenario":
        data = data if isinstance(data, dict) else {}
        settings = data.get("settings") or {}
        if not isinstance(settings, dict):
            raise ConfigurationError("scenario `settings` must be a mapping")
        tags = data.get("tags") or []
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]
        return cls(
            name=str(data.get("name") or default_name),
            description=str(data.get("description") or ""),
            tags=[str(t) for t in tags],
            config=ScenarioConfig.from_mapping(settings),
        )


class ScenarioLoader:
    """Load scenarios from YAML files."""

    def __init__(self, scenarios_dir: Path | str | None = None):
        """Initialize loader with scenarios directory.

        If scenarios_dir is None, uses the bundled sample definitions
        (SAMPLE_DEFINITIONS_DIR). Pass a path to use custom scenario YAML files.
        """
        if scenarios_dir is None:
            self.scenarios_dir = SAMPLE_DEFINITIONS_DIR
        else:
            self.scenarios_dir = Path(scenarios_dir)

    def _path_for(self, scenario_name: str) -> Path | None:
        for suffix in (".yaml", ".yml"):
            path = self.scenarios_dir / f"{scenario_name}{suffix}"
            if path.exists():
                return path
        return None

    def load(self, scenario_name: str) -> Scenario:
        """Load a scenario by name (file stem)."""
        path = self._path_for(scenario_name)
        if path is None:
            raise FileNotFoundError(f"Scenario not found: {scenario_name}")
        return self.load_file(path)

    def load_file(self, path: Path | str) -> Scenario:
        """Load a scenario from an explicit file path."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Scenario not found: {path}")
        try:
            return Scenario.from_dict(load_yaml(path), default_name=path.stem)
        except ConfigurationError as e:
            raise ConfigurationError(f"{path.name}: {e}") from e

    def list_scenarios(self) -> list[str]:
        """List available scenario names (YAML stems), sorted."""
        if not self.scenarios_dir.exists():
            return []
        return sorted(
            {f.stem for f in self.scenarios_dir.iterdir() if f.suffix in (".yaml", ".yml")}
        )

    def load_all(self) -> list[Scenario]:
        """Load every scenario in the directory."""
        return [self.load(name) for name in self.list_scenarios()]
