"""Cascade scheduler: one-second tick of the interlock engine.

The ``CascadeScheduler`` advances every countdown by one second and
applies the branch matching the active run:

- shutdown: expired units go OFF and arm the next live layer below
- startup: expired units are promoted and ready feeders are armed
- idle: expired follow-on timers switch their unit OFF, nothing more
"""

from __future__ import annotations

import logging
from collections import deque

from interlock.model.config import LineConfig, StartupPromotion
from interlock.model.state import LineState, UnitMode

from ._rules import enforce_invariants, is_blocked, ready_units, topmost_on
from ._timers import TimerBank

logger = logging.getLogger(__name__)


class CascadeScheduler:
    """Applies a single tick to a ``LineState``.

    Parameters
    ----------
    state : LineState
        The owned state aggregate. Mutated in place.
    config : LineConfig
        Topology, countdown length and policy flags.
    """

    def __init__(self, state: LineState, config: LineConfig) -> None:
        self.state = state
        self.config = config
        self.topology = config.topology
        self.bank = TimerBank(state.timers, config.topology)

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def execute(self) -> list[str]:
        """Run one tick. Returns the keys whose countdown expired."""
        state = self.state
        enforce_invariants(state, self.config)

        if not state.timers:
            self._idle_without_timers()
            enforce_invariants(state, self.config)
            return []

        expired = self.bank.countdown()
        if expired:
            logger.debug("Timers expired: %s", expired)

        if state.shutdown_run:
            self._shutdown_step(expired)
        elif state.startup_run:
            self._startup_step(expired)
        else:
            self._idle_step(expired)

        enforce_invariants(state, self.config)
        return expired

    # -----------------------------------------------------------------------
    # No timers
    # -----------------------------------------------------------------------

    def _idle_without_timers(self) -> None:
        state = self.state
        if state.shutdown_run:
            # Wave died out with units still on: start again at the edge
            if not self._reseed_shutdown():
                self._finish_shutdown()
        elif state.startup_run:
            self._finish_startup()

    # -----------------------------------------------------------------------
    # Shutdown
    # -----------------------------------------------------------------------

    def _shutdown_step(self, expired: list[str]) -> None:
        state = self.state
        topo = self.topology

        for k in expired:
            if state.is_on(k):
                state.modes[k] = UnitMode.OFF
        state.visited.update(expired)

        to_arm: list[str] = []
        queue = deque(d for k in expired for d in topo.immediate_downstream(k))
        seen: set[str] = set()
        while queue:
            d = queue.popleft()
            if d in seen:
                continue
            seen.add(d)
            if d in state.timers or d in to_arm:
                continue
            if state.is_on(d):
                if self._feeders_done(d):
                    to_arm.append(d)
            elif d not in state.visited:
                # Already-off gap: pass through to the next layer
                state.visited.add(d)
                queue.extend(topo.immediate_downstream(d))

        if to_arm:
            self.bank.arm(to_arm, self.config.countdown_seconds, overwrite=False)

        if not state.timers:
            if state.any_on():
                self._reseed_shutdown()
            else:
                self._finish_shutdown()

    def _feeders_done(self, key: str) -> bool:
        """True if every live feeder of *key* has already been shut down."""
        state = self.state
        return all(
            u in state.visited or not state.is_on(u)
            for u in self.topology.immediate_upstream(key)
        )

    def _reseed_shutdown(self) -> bool:
        seeds = topmost_on(self.state, self.config)
        if not seeds:
            return False
        armed = self.bank.arm(seeds, self.config.countdown_seconds)
        logger.debug("Shutdown wave re-seeded at %s", armed)
        return True

    def _finish_shutdown(self) -> None:
        self.state.shutdown_run = False
        self.state.visited.clear()
        logger.info("Shutdown run finished")

    # -----------------------------------------------------------------------
    # Startup
    # -----------------------------------------------------------------------

    def _startup_step(self, expired: list[str]) -> None:
        state = self.state
        gated = self.config.policy.startup_promotion == StartupPromotion.GATED

        # Decide from the pre-promotion state so a pair promotes as one
        blocked = {k for k in expired if is_blocked(state, self.config, k)}
        for k in expired:
            if k in blocked:
                continue
            mode = state.modes[k]
            if not gated:
                if mode == UnitMode.OFF:
                    state.modes[k] = UnitMode.MANUAL
            elif mode == UnitMode.OFF:
                state.modes[k] = UnitMode.AUTO
            elif mode == UnitMode.AUTO and self._downstream_manual(k):
                state.modes[k] = UnitMode.MANUAL

        self.bank.arm(ready_units(state, self.config), self.config.countdown_seconds)

        if not state.timers:
            self._finish_startup()

    def _downstream_manual(self, key: str) -> bool:
        return all(
            self.state.modes[d] == UnitMode.MANUAL
            for d in self.topology.immediate_downstream(key)
        )

    def _finish_startup(self) -> None:
        self.state.startup_run = False
        logger.info("Startup run finished")

    # -----------------------------------------------------------------------
    # Idle
    # -----------------------------------------------------------------------

    def _idle_step(self, expired: list[str]) -> None:
        for k in expired:
            if self.state.is_on(k):
                self.state.modes[k] = UnitMode.OFF
