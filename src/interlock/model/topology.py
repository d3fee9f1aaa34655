"""Line topology for the interlock engine.

A line is an ordered list of units, root (intake) to leaves (outputs).
Each unit names its immediate downstream successors; everything else
(upstream sets, closures, pairs) is derived.  Downstream references must
point later in the list, which keeps the graph acyclic by construction.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Any, Self

from pydantic import BaseModel, PrivateAttr, model_validator


class InterlockError(Exception):
    """Base class for interlock engine errors."""


class UnknownUnitError(InterlockError, KeyError):
    """Raised when a unit key is not part of the configured line."""


class UnitDef(BaseModel):
    """One controllable station in the line."""

    key: str
    label: str = ""
    downstream: list[str] = []


class Topology(BaseModel):
    """Ordered unit list plus hard-paired units.

    Pairs are two-key lists whose members always share a mode (twin
    mills, and optionally twin output belts).
    """

    units: list[UnitDef]
    pairs: list[list[str]] = []

    _position: dict[str, int] = PrivateAttr(default_factory=dict)
    _downstream: dict[str, list[str]] = PrivateAttr(default_factory=dict)
    _upstream: dict[str, list[str]] = PrivateAttr(default_factory=dict)
    _siblings: dict[str, str] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _validate_graph(self) -> Self:
        if not self.units:
            raise ValueError("Topology must define at least one unit")

        position: dict[str, int] = {}
        for i, unit in enumerate(self.units):
            if unit.key in position:
                raise ValueError(f"Duplicate unit key {unit.key!r}")
            position[unit.key] = i

        for i, unit in enumerate(self.units):
            if len(unit.downstream) != len(set(unit.downstream)):
                raise ValueError(f"Unit {unit.key!r} lists a downstream twice")
            for d in unit.downstream:
                if d not in position:
                    raise ValueError(
                        f"Unit {unit.key!r} references unknown downstream {d!r}"
                    )
                if position[d] <= i:
                    raise ValueError(
                        f"Downstream {d!r} of {unit.key!r} must come later "
                        f"in the unit order"
                    )

        paired: set[str] = set()
        for pair in self.pairs:
            if len(pair) != 2 or pair[0] == pair[1]:
                raise ValueError(f"A pair needs two distinct keys, got {pair!r}")
            for k in pair:
                if k not in position:
                    raise ValueError(f"Pair references unknown unit {k!r}")
                if k in paired:
                    raise ValueError(f"Unit {k!r} belongs to more than one pair")
                paired.add(k)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._position = {u.key: i for i, u in enumerate(self.units)}
        self._downstream = {u.key: list(u.downstream) for u in self.units}
        self._upstream = {u.key: [] for u in self.units}
        for unit in self.units:
            for d in unit.downstream:
                self._upstream[d].append(unit.key)
        self._siblings = {}
        for a, b in self.pairs:
            self._siblings[a] = b
            self._siblings[b] = a

    # -----------------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------------

    @property
    def keys(self) -> list[str]:
        """Unit keys in pipeline order."""
        return [u.key for u in self.units]

    @property
    def roots(self) -> list[str]:
        return [k for k in self.keys if not self._upstream[k]]

    @property
    def leaves(self) -> list[str]:
        """Final units (no downstream)."""
        return [k for k in self.keys if not self._downstream[k]]

    def check(self, key: str) -> None:
        """Raise UnknownUnitError if *key* is not a unit of this line."""
        if key not in self._position:
            raise UnknownUnitError(f"Unknown unit {key!r}. Available: {self.keys}")

    def __contains__(self, key: object) -> bool:
        return key in self._position

    def index(self, key: str) -> int:
        self.check(key)
        return self._position[key]

    def label(self, key: str) -> str:
        """Display label, falling back to the key."""
        self.check(key)
        return self.units[self._position[key]].label or key

    # -----------------------------------------------------------------------
    # Graph queries
    # -----------------------------------------------------------------------

    def upstream_of(self, key: str) -> list[str]:
        """All units strictly before *key* in pipeline order."""
        self.check(key)
        return self.keys[: self._position[key]]

    def immediate_downstream(self, key: str) -> list[str]:
        self.check(key)
        return list(self._downstream[key])

    def immediate_upstream(self, key: str) -> list[str]:
        self.check(key)
        return list(self._upstream[key])

    def downstream_of(self, key: str) -> list[str]:
        """Transitive closure of successors, breadth-first from *key*."""
        self.check(key)
        return self._walk(key, self._downstream)

    def all_downstream(self, key: str) -> list[str]:
        return self.downstream_of(key)

    def ancestors(self, key: str) -> list[str]:
        """Transitive closure of feeders, breadth-first from *key*."""
        self.check(key)
        return self._walk(key, self._upstream)

    def _walk(self, start: str, edges: dict[str, list[str]]) -> list[str]:
        seen: list[str] = []
        visited: set[str] = set()
        queue = deque(edges[start])
        while queue:
            cur = queue.popleft()
            if cur in visited:
                continue
            visited.add(cur)
            seen.append(cur)
            queue.extend(edges[cur])
        return seen

    # -----------------------------------------------------------------------
    # Pairs
    # -----------------------------------------------------------------------

    def pair_of(self, key: str) -> str | None:
        """Hard-paired sibling of *key*, or None."""
        self.check(key)
        return self._siblings.get(key)

    def with_pairs(self, keys: Iterable[str]) -> list[str]:
        """*keys* plus their pair siblings, deduplicated, in pipeline order."""
        result: set[str] = set()
        for k in keys:
            self.check(k)
            result.add(k)
            sibling = self._siblings.get(k)
            if sibling is not None:
                result.add(sibling)
        return sorted(result, key=self._position.__getitem__)
