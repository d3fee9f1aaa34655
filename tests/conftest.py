"""Shared test helpers for the interlock test suite."""

from interlock.engine import build_controller
from interlock.model.presets import (
    INTAKE,
    MID_BELT,
    MILL_A,
    MILL_B,
    OUTPUT_LEFT,
    OUTPUT_RIGHT,
    SCREEN,
    VALVE,
    milling_line,
)
from interlock.model.state import GroupMode, LineState, UnitMode

OFF = UnitMode.OFF
MANUAL = UnitMode.MANUAL
AUTO = UnitMode.AUTO
DEFECT = UnitMode.DEFECT

ORDER = [INTAKE, MILL_A, MILL_B, VALVE, MID_BELT, SCREEN, OUTPUT_LEFT, OUTPUT_RIGHT]


def make_state(config, modes=None, timers=None, group_mode=GroupMode.AUTO, **flags):
    """Build a LineState for *config*; unlisted units are OFF."""
    state = LineState.initial(config.topology, group_mode=group_mode)
    state.modes.update(modes or {})
    state.timers.update(timers or {})
    for name, value in flags.items():
        setattr(state, name, value)
    return state


def make_line(modes=None, timers=None, group_mode=GroupMode.AUTO, countdown=2, **policy):
    """Build a controller on the milling line with the given starting state."""
    config = milling_line(countdown_seconds=countdown, **policy)
    state = make_state(config, modes=modes, timers=timers, group_mode=group_mode)
    return build_controller(config, state=state)


def all_on(mode=MANUAL):
    """Mode mapping with every unit of the milling line in *mode*."""
    return {k: mode for k in ORDER}


def modes_of(line):
    """Current modes as a plain dict."""
    return dict(line.snapshot().modes)
