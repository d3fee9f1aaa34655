"""Unit modes, group mode and the owned line state aggregate.

``LineState`` is the single mutable record the engine works on: the mode
of every unit, the pending countdowns, the group mode and the run flags.
``LineSnapshot`` is the frozen read-only view handed to consumers.
"""

from __future__ import annotations

from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .topology import Topology, UnknownUnitError


class UnitMode(str, Enum):
    OFF = "off"
    MANUAL = "manual"      # Operator-commanded
    AUTO = "auto"          # Energized by group/interlock logic
    DEFECT = "defect"      # Sticky fault flag


ON_MODES = frozenset({UnitMode.MANUAL, UnitMode.AUTO})

# Precedence for resolving a disagreeing pair
_RANK = {UnitMode.OFF: 0, UnitMode.AUTO: 1, UnitMode.MANUAL: 2}


def most_on(a: UnitMode, b: UnitMode) -> UnitMode:
    """Resolve two non-defect modes with ``MANUAL > AUTO > OFF``."""
    return a if _RANK[a] >= _RANK[b] else b


class GroupMode(str, Enum):
    AUTO = "auto"
    MANU = "manu"


class RunState(str, Enum):
    IDLE = "idle"
    STARTUP = "startup"
    SHUTDOWN = "shutdown"


class LineState(BaseModel):
    """Live state of one line.

    ``visited`` holds the unit keys already processed by the current
    shutdown run; it is empty whenever no shutdown run is active.
    """

    modes: dict[str, UnitMode]
    timers: dict[str, int] = {}
    group_mode: GroupMode = GroupMode.AUTO
    startup_run: bool = False
    shutdown_run: bool = False
    visited: set[str] = set()

    @model_validator(mode="after")
    def _validate_state(self) -> Self:
        if self.startup_run and self.shutdown_run:
            raise ValueError("startup_run and shutdown_run are mutually exclusive")
        for key, seconds in self.timers.items():
            if seconds < 0:
                raise ValueError(f"Timer on {key!r} must not be negative, got {seconds}")
        return self

    @classmethod
    def initial(cls, topology: Topology, group_mode: GroupMode = GroupMode.AUTO) -> LineState:
        """All units off, no timers, no run."""
        return cls(
            modes={k: UnitMode.OFF for k in topology.keys},
            group_mode=group_mode,
        )

    def check_against(self, topology: Topology) -> None:
        """Raise UnknownUnitError unless every unit key matches *topology*."""
        expected = set(topology.keys)
        extra = (set(self.modes) | set(self.timers) | self.visited) - expected
        if extra:
            raise UnknownUnitError(f"State references unknown units: {sorted(extra)}")
        missing = expected - set(self.modes)
        if missing:
            raise UnknownUnitError(f"State has no mode for units: {sorted(missing)}")

    @property
    def run_state(self) -> RunState:
        if self.startup_run:
            return RunState.STARTUP
        if self.shutdown_run:
            return RunState.SHUTDOWN
        return RunState.IDLE

    @property
    def run_active(self) -> bool:
        return self.startup_run or self.shutdown_run

    def is_on(self, key: str) -> bool:
        return self.modes[key] in ON_MODES

    def any_on(self) -> bool:
        return any(m in ON_MODES for m in self.modes.values())


class LineSnapshot(BaseModel):
    """Read-only view of a line for the presentation layer."""

    model_config = ConfigDict(frozen=True)

    modes: dict[str, UnitMode]
    timers: dict[str, int] = Field(default_factory=dict)
    group_mode: GroupMode
    run: RunState

    @classmethod
    def of(cls, state: LineState) -> LineSnapshot:
        return cls(
            modes=dict(state.modes),
            timers=dict(state.timers),
            group_mode=state.group_mode,
            run=state.run_state,
        )
