"""Scenario definitions and the worker pool that runs them."""

from .scenario_loader import SAMPLE_DEFINITIONS_DIR, Scenario, ScenarioLoader
from .scenario_runner import RunResult, WorkerPool, WorkerResult, WorkerState, run_scenario

__all__ = [
    "SAMPLE_DEFINITIONS_DIR",
    "Scenario",
    "ScenarioLoader",
    "RunResult",
    "WorkerPool",
    "WorkerResult",
    "WorkerState",
    "run_scenario",
]
