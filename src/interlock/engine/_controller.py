"""Line controller: the user-facing object for driving one line.

Owns the ``LineState`` aggregate, serializes commands and ticks against
it, and hands out read-only snapshots.
"""

from __future__ import annotations

import logging

from interlock.model.config import LineConfig
from interlock.model.state import (
    GroupMode,
    LineSnapshot,
    LineState,
    RunState,
    UnitMode,
)

from . import _commands
from ._scheduler import CascadeScheduler

logger = logging.getLogger(__name__)


class LineController:
    """Interlock and cascade engine for a single line.

    Provides ``tick()``, ``advance()``, the five operator commands and
    ``snapshot()``.

    Parameters
    ----------
    config : LineConfig
        Topology, countdown length and policy flags.
    state : LineState, optional
        Initial state, e.g. restored after a restart.  Defaults to every
        unit OFF in group mode AUTO.  An inconsistent but well-formed
        state is repaired on the first tick.
    """

    def __init__(self, config: LineConfig, state: LineState | None = None) -> None:
        self._config = config
        if state is None:
            state = LineState.initial(config.topology)
        else:
            state = state.model_copy(deep=True)
            state.check_against(config.topology)
            logger.info(
                "Line %s resumed: group mode %s, run %s, %d timer(s)",
                config.name, state.group_mode.value, state.run_state.value,
                len(state.timers),
            )
        self._state = state
        self._clock_s = 0

    # -----------------------------------------------------------------------
    # Time
    # -----------------------------------------------------------------------

    def tick(self) -> list[str]:
        """Advance one second. Returns the units whose countdown expired."""
        expired = CascadeScheduler(self._state, self._config).execute()
        self._clock_s += 1
        return expired

    def advance(self, seconds: int = 1) -> None:
        """Run *seconds* ticks back to back."""
        for _ in range(seconds):
            self.tick()

    def run_until_idle(self, limit: int = 1000) -> int:
        """Tick until no timer is pending and no run is active.

        Returns the number of ticks taken.  Raises RuntimeError if the
        line is still busy after *limit* ticks.
        """
        for n in range(limit + 1):
            if not self._state.timers and not self._state.run_active:
                return n
            self.tick()
        raise RuntimeError(f"Line still busy after {limit} ticks")

    @property
    def clock_s(self) -> int:
        """Ticks elapsed since construction."""
        return self._clock_s

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def toggle_unit(self, key: str) -> bool:
        return _commands.toggle_unit(self._state, self._config, key)

    def toggle_defect(self, key: str) -> bool:
        return _commands.toggle_defect(self._state, self._config, key)

    def set_group_mode(self, mode: GroupMode | str) -> bool:
        return _commands.set_group_mode(self._state, self._config, mode)

    def group_power_on(self) -> bool:
        return _commands.group_power_on(self._state, self._config)

    def group_power_off(self) -> bool:
        return _commands.group_power_off(self._state, self._config)

    # -----------------------------------------------------------------------
    # Read access
    # -----------------------------------------------------------------------

    def snapshot(self) -> LineSnapshot:
        return LineSnapshot.of(self._state)

    @property
    def config(self) -> LineConfig:
        return self._config

    @property
    def state(self) -> LineState:
        """Deep copy of the live state, for persistence."""
        return self._state.model_copy(deep=True)

    def mode(self, key: str) -> UnitMode:
        self._config.topology.check(key)
        return self._state.modes[key]

    def is_on(self, key: str) -> bool:
        self._config.topology.check(key)
        return self._state.is_on(key)

    @property
    def timers(self) -> dict[str, int]:
        return dict(self._state.timers)

    @property
    def group_mode(self) -> GroupMode:
        return self._state.group_mode

    @property
    def run_state(self) -> RunState:
        return self._state.run_state

    def __repr__(self) -> str:
        return (
            f"LineController(line={self._config.name!r}, "
            f"group_mode={self._state.group_mode.value}, "
            f"run={self._state.run_state.value}, t={self._clock_s}s)"
        )
