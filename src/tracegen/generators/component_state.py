"""
Pseudo-stateful component attributes.

Every trace is attributed to one synthetic component picked uniformly from
[0, component_id_attr_max). Each component carries a version counter; with
change_probability N > 0 the version advances with probability 1/N per trace.
With N = 0 the version never moves for the whole run.

The table is shared by all workers and guarded by a single lock; contention is
low because a draw is a handful of operations.
"""

import random
import threading
from dataclasses import dataclass

COMPONENT_ID_ATTR = "componentId"
STATE_ATTR = "state"


@dataclass(frozen=True)
class ComponentState:
    """State of one component as seen by one trace."""

    component_id: int
    version: int
    changed: bool = False

    @property
    def token(self) -> str:
        return f"{self.component_id}-{self.version}"

    def attributes(self) -> dict[str, int | str]:
        return {COMPONENT_ID_ATTR: self.component_id, STATE_ATTR: self.token}


class ComponentStateTracker:
    """Decide per trace which component it belongs to and whether that component's state changes."""

    def __init__(
        self,
        max_value: int,
        change_probability: int = 0,
        rng: random.Random | None = None,
    ):
        self.max_value = max(0, int(max_value))
        self.change_probability = max(0, int(change_probability))
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._versions: dict[int, int] = {}

    @property
    def enabled(self) -> bool:
        return self.max_value > 0

    def reset(self) -> None:
        """Forget all component versions (start of a run)."""
        with self._lock:
            self._versions.clear()

    def next_state(self) -> ComponentState | None:
        """Pick a component and maybe advance its state. None when component ids are disabled."""
        if not self.enabled:
            return None
        with self._lock:
            component_id = self._rng.randrange(self.max_value)
            version = self._versions.get(component_id, 0)
            if self.change_probability == 0:
                # State changes disabled: the id is still reported, its version stays put.
                self._versions.setdefault(component_id, version)
                return ComponentState(component_id, version, changed=False)
            changed = self._rng.randint(1, self.change_probability) == 1
            if changed:
                version += 1
            self._versions[component_id] = version
            return ComponentState(component_id, version, changed=changed)

    def state_of(self, component_id: int) -> int:
        """Current version of a component (0 if never seen)."""
        with self._lock:
            return self._versions.get(component_id, 0)

    def snapshot(self) -> dict[int, int]:
        with self._lock:
            return dict(self._versions)
