"""Tests for scenario loading."""

from pathlib import Path

import pytest

from tracegen.config import ConfigurationError
from tracegen.scenarios.scenario_loader import SAMPLE_DEFINITIONS_DIR, Scenario, ScenarioLoader


def test_sample_definitions_dir_exists():
    """SAMPLE_DEFINITIONS_DIR points to bundled scenarios."""
    assert SAMPLE_DEFINITIONS_DIR.exists()
    assert SAMPLE_DEFINITIONS_DIR.is_dir()


def test_default_loader_uses_sample_definitions():
    loader = ScenarioLoader()
    assert loader.scenarios_dir == SAMPLE_DEFINITIONS_DIR


def test_list_scenarios():
    names = ScenarioLoader().list_scenarios()
    assert "batched_links" in names
    assert "steady_rate" in names
    assert names == sorted(names)


def test_load_bundled_scenario():
    scenario = ScenarioLoader().load("batched_links")
    cfg = scenario.config
    assert scenario.name == "batched_links"
    assert "batch" in scenario.tags
    assert cfg.num_traces == 5
    assert cfg.num_child_spans == 2
    assert cfg.num_span_links == 1
    assert cfg.batch is True
    assert cfg.rate == 0


def test_every_bundled_scenario_is_runnable():
    """Each sample definition parses and has a stop condition."""
    for scenario in ScenarioLoader().load_all():
        scenario.config.validate()


def test_duration_setting_is_parsed():
    cfg = ScenarioLoader().load("steady_rate").config
    assert cfg.total_duration.duration() == 60
    assert cfg.span_duration == pytest.approx(0.005)


def test_missing_scenario_raises():
    with pytest.raises(FileNotFoundError, match="Scenario not found: nope"):
        ScenarioLoader().load("nope")


def test_custom_dir(tmp_path: Path):
    (tmp_path / "tiny.yml").write_text(
        "description: two traces\n"
        "tags: quick, local\n"
        "settings:\n"
        "  traces: 2\n"
        "  status-code: Error\n"
        "  otlp-attributes:\n"
        "    - region=\"eu\"\n"
        "    - shard=3\n"
    )
    (tmp_path / "notes.txt").write_text("ignored")
    loader = ScenarioLoader(tmp_path)
    assert loader.list_scenarios() == ["tiny"]

    scenario = loader.load("tiny")
    assert scenario.name == "tiny"
    assert scenario.tags == ["quick", "local"]
    assert scenario.config.num_traces == 2
    assert scenario.config.status_code == "Error"
    assert scenario.config.resource_attributes == {"region": "eu", "shard": 3}


def test_empty_dir_lists_nothing(tmp_path: Path):
    assert ScenarioLoader(tmp_path / "missing").list_scenarios() == []


def test_unknown_setting_names_the_file(tmp_path: Path):
    (tmp_path / "bad.yaml").write_text("settings:\n  wrokers: 3\n")
    with pytest.raises(ConfigurationError, match="bad.yaml: Unknown scenario setting: wrokers"):
        ScenarioLoader(tmp_path).load("bad")


def test_malformed_yaml_raises(tmp_path: Path):
    path = tmp_path / "broken.yaml"
    path.write_text("settings: [unclosed\n")
    with pytest.raises(ConfigurationError):
        ScenarioLoader().load_file(path)


def test_settings_must_be_mapping():
    with pytest.raises(ConfigurationError):
        Scenario.from_dict({"settings": ["traces", 3]})
