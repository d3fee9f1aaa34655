"""interlock engine — tick-driven cascade control of a material-handling line.

Entry point::

    from interlock.engine import build_controller

    line = build_controller()
    line.group_power_on()
    line.advance(seconds=10)
    assert line.mode("esteiraMain") == "manual"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from interlock.model.config import LineConfig, load_line_config
from interlock.model.presets import milling_line
from interlock.model.state import LineState
from interlock.model.topology import InterlockError, UnknownUnitError

from ._controller import LineController


def build_controller(
    config: Any = None,
    *,
    state: LineState | None = None,
) -> LineController:
    """Create a controller for a line.

    Parameters
    ----------
    config
        A ``LineConfig``, a mapping accepted by ``LineConfig``, or a path
        to a JSON file.  Defaults to the built-in milling line.
    state
        Optional initial state (resume after restart).

    Returns
    -------
    LineController
    """
    return LineController(_resolve_config(config), state=state)


def _resolve_config(config: Any) -> LineConfig:
    """Resolve a config argument to a ``LineConfig``."""
    if config is None:
        return milling_line()
    if isinstance(config, LineConfig):
        return config
    if isinstance(config, dict):
        return LineConfig.from_mapping(config)
    if isinstance(config, (str, Path)):
        return load_line_config(config)
    raise TypeError(
        f"build_controller() expects a LineConfig, mapping or path, "
        f"got {type(config).__name__}"
    )


__all__ = [
    "build_controller",
    "LineController",
    "InterlockError",
    "UnknownUnitError",
]
