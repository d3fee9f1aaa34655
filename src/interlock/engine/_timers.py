"""Per-unit countdown timers.

A ``TimerBank`` is a thin view over ``LineState.timers`` (unit key ->
remaining whole seconds) that keeps hard pairs in step: arming or
clearing one member of a pair always does the same to its sibling.
"""

from __future__ import annotations

from collections.abc import Iterable

from interlock.model.topology import Topology


class TimerBank:
    """Paired-aware operations on a timer dict, mutated in place."""

    def __init__(self, timers: dict[str, int], topology: Topology) -> None:
        self.timers = timers
        self.topology = topology

    def __contains__(self, key: str) -> bool:
        return key in self.timers

    def __len__(self) -> int:
        return len(self.timers)

    def arm(self, keys: Iterable[str], seconds: int, *, overwrite: bool = True) -> list[str]:
        """Start a countdown on *keys* and their pair siblings.

        Returns the keys actually armed.  With ``overwrite=False`` a key
        that already counts down keeps its remaining time.
        """
        armed = []
        for k in self.topology.with_pairs(keys):
            if not overwrite and k in self.timers:
                continue
            self.timers[k] = seconds
            armed.append(k)
        return armed

    def clear(self, keys: Iterable[str]) -> None:
        """Drop countdowns on *keys* and their pair siblings."""
        for k in self.topology.with_pairs(keys):
            self.timers.pop(k, None)

    def clear_all(self) -> None:
        self.timers.clear()

    def countdown(self) -> list[str]:
        """Advance every timer by one second.

        Surviving timers stay in the bank; expired ones are removed and
        returned, widened with their pair siblings, in pipeline order.
        """
        expired: list[str] = []
        for k, remaining in list(self.timers.items()):
            remaining -= 1
            if remaining <= 0:
                expired.append(k)
                del self.timers[k]
            else:
                self.timers[k] = remaining
        if not expired:
            return []
        widened = self.topology.with_pairs(expired)
        # A sibling pulled in by widening must not keep counting on its own
        for k in widened:
            self.timers.pop(k, None)
        return widened
