"""Operator commands.

Every command takes the owned ``LineState`` and the ``LineConfig`` and
returns True if it applied.  A command whose preconditions fail does
nothing and returns False, like a disabled button on a physical panel.
Applied commands finish with the invariant pass.
"""

from __future__ import annotations

import logging

from interlock.model.config import LineConfig
from interlock.model.state import GroupMode, LineState, UnitMode

from ._rules import enforce_invariants, is_blocked, ready_units, topmost_on
from ._timers import TimerBank

logger = logging.getLogger(__name__)


def _reject(command: str, reason: str) -> bool:
    logger.debug("%s rejected: %s", command, reason)
    return False


# ---------------------------------------------------------------------------
# Per-unit commands (group mode MANU)
# ---------------------------------------------------------------------------

def toggle_unit(state: LineState, config: LineConfig, key: str) -> bool:
    """Flip *key* (and its pair) between MANUAL and OFF."""
    topo = config.topology
    policy = config.policy
    topo.check(key)

    if state.group_mode != GroupMode.MANU:
        return _reject(f"toggle_unit({key})", "group mode is AUTO")
    if state.modes[key] == UnitMode.DEFECT:
        return _reject(f"toggle_unit({key})", "unit is in DEFECT")
    sibling = topo.pair_of(key)
    if sibling is not None and state.modes[sibling] == UnitMode.DEFECT:
        return _reject(f"toggle_unit({key})", f"paired unit {sibling} is in DEFECT")

    turning_on = state.modes[key] != UnitMode.MANUAL
    if turning_on and is_blocked(state, config, key):
        return _reject(f"toggle_unit({key})", "defect downstream")

    bank = TimerBank(state.timers, topo)
    group = topo.with_pairs([key])
    new_mode = UnitMode.MANUAL if turning_on else UnitMode.OFF
    for k in group:
        state.modes[k] = new_mode

    cleared = list(group)
    if policy.toggle_clears_upstream_timers:
        for k in group:
            cleared.extend(topo.upstream_of(k))
    bank.clear(cleared)

    if turning_on and policy.energize_downstream_on_toggle:
        below = [
            d for d in topo.downstream_of(key)
            if d not in group
            and state.modes[d] in (UnitMode.OFF, UnitMode.AUTO)
            and not is_blocked(state, config, d)
        ]
        for d in below:
            state.modes[d] = UnitMode.AUTO
        bank.clear(below)

    if not turning_on:
        if policy.stop_upstream_on_toggle_off:
            _force_off(state, config, _feeders_to_stop(config, group))
        _arm_follow_on(state, config, group)

    logger.debug("toggle_unit(%s): %s -> %s", key, group, new_mode.value)
    enforce_invariants(state, config)
    return True


def _feeders_to_stop(config: LineConfig, group: list[str]) -> list[str]:
    """Units above *group*, sparing other final units."""
    topo = config.topology
    leaves = set(topo.leaves)
    return [
        u for u in topo.upstream_of(group[0])
        if u not in group and u not in leaves
    ]


def _force_off(state: LineState, config: LineConfig, keys: list[str]) -> list[str]:
    """Switch every non-DEFECT unit in *keys* OFF and drop its countdown."""
    forced = [k for k in keys if state.modes[k] != UnitMode.DEFECT]
    for k in forced:
        state.modes[k] = UnitMode.OFF
    TimerBank(state.timers, config.topology).clear(forced)
    return forced


def _arm_follow_on(state: LineState, config: LineConfig, stopped: list[str]) -> None:
    """Give AUTO units directly below *stopped* a follow-on countdown."""
    seconds = config.policy.follow_on_seconds
    if seconds is None:
        return
    topo = config.topology
    follow = [
        d for k in stopped for d in topo.immediate_downstream(k)
        if state.modes[d] == UnitMode.AUTO and d not in state.timers
    ]
    if follow:
        TimerBank(state.timers, topo).arm(follow, seconds, overwrite=False)


def toggle_defect(state: LineState, config: LineConfig, key: str) -> bool:
    """Set or clear the DEFECT flag on *key*.

    Setting it forces every non-DEFECT unit upstream (and the paired
    sibling) OFF in the same call.  Clearing it only returns *key* to
    OFF; nothing restarts.
    """
    topo = config.topology
    topo.check(key)

    if state.group_mode != GroupMode.MANU:
        return _reject(f"toggle_defect({key})", "group mode is AUTO")

    if state.modes[key] == UnitMode.DEFECT:
        state.modes[key] = UnitMode.OFF
        logger.info("Defect cleared on %s", key)
        enforce_invariants(state, config)
        return True

    was_on = state.is_on(key)
    state.modes[key] = UnitMode.DEFECT
    state.timers.pop(key, None)

    upstream = topo.upstream_of(key)
    if config.policy.defect_spares_held_sibling_output and key in topo.leaves:
        held = [
            k for k in topo.leaves
            if k != key and state.modes[k] == UnitMode.MANUAL
        ]
        upstream = [u for u in upstream if u not in held]

    sibling = topo.pair_of(key)
    if sibling is not None and sibling not in upstream:
        upstream = [*upstream, sibling]
    forced = _force_off(state, config, upstream)
    # Clearing with pairs may reach the DEFECT key's own sibling group
    state.timers.pop(key, None)

    if was_on:
        _arm_follow_on(state, config, [key])

    logger.info("Defect set on %s; forced off: %s", key, forced)
    enforce_invariants(state, config)
    return True


# ---------------------------------------------------------------------------
# Group commands
# ---------------------------------------------------------------------------

def set_group_mode(state: LineState, config: LineConfig, mode: GroupMode | str) -> bool:
    """Switch between AUTO and MANU group mode.

    Rejected while any countdown is pending, so a cascade can never be
    interrupted by a mode change.
    """
    try:
        mode = GroupMode(mode)
    except ValueError:
        return _reject(f"set_group_mode({mode!r})", "unknown group mode")
    if state.timers:
        return _reject(f"set_group_mode({mode.value})", "timers are active")

    topo = config.topology
    policy = config.policy
    state.group_mode = mode

    if mode == GroupMode.MANU:
        state.startup_run = False
        state.shutdown_run = False
        state.visited.clear()
        TimerBank(state.timers, topo).clear_all()
        logger.info("Group mode set to MANU")
        enforce_invariants(state, config)
        return True

    state.shutdown_run = False
    state.visited.clear()
    kept = set(topo.leaves) if policy.keep_output_belts_manual else set()
    for k in topo.keys:
        if state.modes[k] == UnitMode.MANUAL and k not in kept:
            state.modes[k] = UnitMode.AUTO

    enforce_invariants(state, config)

    if policy.resume_startup_on_auto and state.any_on():
        armed = TimerBank(state.timers, topo).arm(
            ready_units(state, config), config.countdown_seconds,
        )
        state.startup_run = bool(armed)
        if armed:
            logger.info("Startup run resumed on switch to AUTO; armed %s", armed)

    logger.info("Group mode set to AUTO")
    return True


def group_power_on(state: LineState, config: LineConfig) -> bool:
    """Light the final units and start a bottom-up startup run."""
    topo = config.topology
    if state.group_mode != GroupMode.AUTO:
        return _reject("group_power_on", "group mode is MANU")
    if state.timers:
        return _reject("group_power_on", "timers are active")
    if config.policy.power_on_requires_running_unit and not state.any_on():
        return _reject("group_power_on", "no unit is running")

    def _blocked_leaf(k: str) -> bool:
        sibling = topo.pair_of(k)
        return state.modes[k] == UnitMode.DEFECT or (
            sibling is not None and state.modes[sibling] == UnitMode.DEFECT
        )

    lit = [k for k in topo.leaves if not _blocked_leaf(k)]
    if not lit and not ready_units(state, config):
        return _reject("group_power_on", "no qualifying seed")

    for k in lit:
        state.modes[k] = UnitMode.MANUAL

    state.shutdown_run = False
    state.visited.clear()
    enforce_invariants(state, config)

    armed = TimerBank(state.timers, topo).arm(
        ready_units(state, config), config.countdown_seconds,
    )
    state.startup_run = bool(armed)
    logger.info("Group power on: lit %s, armed %s", lit, armed)
    return True


def group_power_off(state: LineState, config: LineConfig) -> bool:
    """Start a top-down shutdown run from the leading edge of each branch."""
    if state.group_mode != GroupMode.AUTO:
        return _reject("group_power_off", "group mode is MANU")
    if state.timers:
        return _reject("group_power_off", "timers are active")

    seeds = topmost_on(state, config)
    if not seeds:
        return _reject("group_power_off", "nothing is running")

    state.startup_run = False
    state.shutdown_run = True
    state.visited.clear()
    armed = TimerBank(state.timers, config.topology).arm(seeds, config.countdown_seconds)
    logger.info("Group power off: shutdown run armed %s", armed)
    enforce_invariants(state, config)
    return True
