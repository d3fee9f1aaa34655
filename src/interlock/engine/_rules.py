"""Interlock predicates and the post-mutation invariant pass.

``enforce_invariants`` runs at the end of every command and at both ends
of every tick.  It is idempotent: running it twice changes nothing the
second time.
"""

from __future__ import annotations

import logging

from interlock.model.config import LineConfig, StartupPromotion
from interlock.model.state import GroupMode, LineState, UnitMode, most_on

from ._timers import TimerBank

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_blocked(state: LineState, config: LineConfig, key: str) -> bool:
    """True if *key* may not energize: it, its pair, or anything below is DEFECT."""
    topo = config.topology
    if state.modes[key] == UnitMode.DEFECT:
        return True
    sibling = topo.pair_of(key)
    if sibling is not None and state.modes[sibling] == UnitMode.DEFECT:
        return True
    return any(state.modes[d] == UnitMode.DEFECT for d in topo.downstream_of(key))


def is_ready(state: LineState, config: LineConfig, key: str) -> bool:
    """True if *key* should be armed for the next startup promotion."""
    if key in state.timers or is_blocked(state, config, key):
        return False

    below = [state.modes[d] for d in config.topology.immediate_downstream(key)]
    all_manual = all(m == UnitMode.MANUAL for m in below)
    mode = state.modes[key]

    if config.policy.startup_promotion == StartupPromotion.GATED:
        if mode == UnitMode.OFF:
            return all(m in (UnitMode.MANUAL, UnitMode.AUTO) for m in below)
        if mode == UnitMode.AUTO:
            return all_manual
        return False

    if mode != UnitMode.OFF:
        return False
    return all(m in (UnitMode.MANUAL, UnitMode.AUTO) for m in below)


def ready_units(state: LineState, config: LineConfig) -> list[str]:
    return [k for k in config.topology.keys if is_ready(state, config, k)]


def topmost_on(state: LineState, config: LineConfig) -> list[str]:
    """On units with no on unit among their feeders: the shutdown leading edge."""
    topo = config.topology
    return [
        k for k in topo.keys
        if state.is_on(k) and not any(state.is_on(a) for a in topo.ancestors(k))
    ]


# ---------------------------------------------------------------------------
# Invariant pass
# ---------------------------------------------------------------------------

def enforce_invariants(state: LineState, config: LineConfig) -> None:
    """Bring *state* back in line with the standing interlock rules.

    1. DEFECT units carry no timer.
    2. Hard pairs share one mode (``MANUAL > AUTO > OFF``) and one timer.
    3. In group mode AUTO, blocked AUTO units drop to OFF.
    4. Outside a run, timers on OFF/DEFECT units are stale and removed.
    """
    topo = config.topology
    modes = state.modes
    timers = state.timers
    bank = TimerBank(timers, topo)

    for k in topo.keys:
        if modes[k] == UnitMode.DEFECT:
            timers.pop(k, None)

    for a, b in topo.pairs:
        if UnitMode.DEFECT in (modes[a], modes[b]):
            continue
        if modes[a] != modes[b]:
            resolved = most_on(modes[a], modes[b])
            logger.debug("Pair %s/%s disagree (%s, %s); resolved to %s",
                         a, b, modes[a].value, modes[b].value, resolved.value)
            modes[a] = modes[b] = resolved
        if (a in timers) != (b in timers):
            timers[a] = timers[b] = timers.get(a, timers.get(b))

    if state.group_mode == GroupMode.AUTO:
        demoted = [
            k for k in topo.keys
            if modes[k] == UnitMode.AUTO and is_blocked(state, config, k)
        ]
        for k in demoted:
            modes[k] = UnitMode.OFF
        if demoted:
            bank.clear(demoted)
            logger.debug("Interlock demoted blocked units: %s", demoted)

    if not state.run_active:
        for k in topo.keys:
            if k in timers and modes[k] in (UnitMode.OFF, UnitMode.DEFECT):
                del timers[k]
