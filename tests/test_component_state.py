"""Tests for per-component state tracking."""

import random
import threading

import pytest

from tracegen.generators.component_state import (
    COMPONENT_ID_ATTR,
    STATE_ATTR,
    ComponentState,
    ComponentStateTracker,
)


def test_disabled_when_max_is_zero() -> None:
    """No component is drawn without a max value."""
    tracker = ComponentStateTracker(0, change_probability=3)
    assert not tracker.enabled
    assert tracker.next_state() is None


def test_ids_stay_in_range() -> None:
    """Component ids are drawn from [0, max)."""
    tracker = ComponentStateTracker(5, rng=random.Random(1))
    ids = {tracker.next_state().component_id for _ in range(500)}  # type: ignore[union-attr]
    assert ids == {0, 1, 2, 3, 4}


def test_zero_change_probability_freezes_state() -> None:
    """With change probability 0 the state of an id never moves."""
    tracker = ComponentStateTracker(4, change_probability=0, rng=random.Random(2))
    seen: dict[int, str] = {}
    for _ in range(1000):
        state = tracker.next_state()
        assert state is not None
        assert not state.changed
        seen.setdefault(state.component_id, state.token)
        assert seen[state.component_id] == state.token
    assert set(tracker.snapshot().values()) == {0}


def test_change_probability_one_changes_every_trace() -> None:
    """N=1 advances the state on every draw."""
    tracker = ComponentStateTracker(1, change_probability=1, rng=random.Random(3))
    versions = [tracker.next_state().version for _ in range(10)]  # type: ignore[union-attr]
    assert versions == list(range(1, 11))


def test_change_rate_converges_to_one_over_n() -> None:
    """For a fixed component the empirical change rate is close to 1/N."""
    tracker = ComponentStateTracker(1, change_probability=4, rng=random.Random(42))
    draws = 20000
    changes = sum(1 for _ in range(draws) if tracker.next_state().changed)  # type: ignore[union-attr]
    assert changes / draws == pytest.approx(0.25, abs=0.02)
    assert tracker.state_of(0) == changes


def test_attributes_pair_id_and_state() -> None:
    """Spans get the id and an id-version token."""
    state = ComponentState(component_id=7, version=3)
    assert state.attributes() == {COMPONENT_ID_ATTR: 7, STATE_ATTR: "7-3"}


def test_reset_clears_versions() -> None:
    """A new run starts from version 0."""
    tracker = ComponentStateTracker(1, change_probability=1)
    tracker.next_state()
    assert tracker.state_of(0) == 1
    tracker.reset()
    assert tracker.snapshot() == {}
    assert tracker.state_of(0) == 0


def test_concurrent_updates_are_not_lost() -> None:
    """Read-modify-write of a component is serialized across workers."""
    tracker = ComponentStateTracker(3, change_probability=1)
    per_thread = 1000

    def work() -> None:
        for _ in range(per_thread):
            tracker.next_state()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sum(tracker.snapshot().values()) == 8 * per_thread
