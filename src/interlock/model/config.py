"""Static configuration for a line: topology, countdown and policy flags.

The panel variants this engine serves differ only in a handful of
policies.  Each divergence is a named flag on ``LinePolicy``; the
defaults describe the reference line.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .topology import Topology


class StartupPromotion(str, Enum):
    DIRECT = "direct"    # OFF -> MANUAL on expiry
    GATED = "gated"      # OFF -> AUTO, then AUTO -> MANUAL once downstream is MANUAL


class LinePolicy(BaseModel):
    """Variant policy flags."""

    model_config = ConfigDict(extra="forbid")

    startup_promotion: StartupPromotion = StartupPromotion.DIRECT
    pair_output_belts: bool = False
    power_on_requires_running_unit: bool = False
    toggle_clears_upstream_timers: bool = True
    stop_upstream_on_toggle_off: bool = False
    energize_downstream_on_toggle: bool = False
    follow_on_seconds: int | None = Field(default=None, ge=1)
    keep_output_belts_manual: bool = False
    resume_startup_on_auto: bool = False
    # Unconfirmed safety intent; keep off unless reviewed.
    defect_spares_held_sibling_output: bool = False


class LineConfig(BaseModel):
    name: str = "line"
    description: str = ""
    topology: Topology
    countdown_seconds: int = Field(default=2, ge=1)
    policy: LinePolicy = LinePolicy()

    @model_validator(mode="after")
    def _validate_output_pair(self) -> Self:
        if self.policy.pair_output_belts:
            leaves = self.topology.leaves
            if len(leaves) != 2:
                raise ValueError(
                    f"pair_output_belts needs exactly two final units, found {leaves}"
                )
            if not any(set(p) == set(leaves) for p in self.topology.pairs):
                raise ValueError(
                    "pair_output_belts is set but the final units are not paired "
                    "in the topology"
                )
        return self

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> LineConfig:
        return cls.model_validate(data)


def load_line_config(path: str | Path) -> LineConfig:
    """Load a ``LineConfig`` from a JSON file."""
    text = Path(path).read_text(encoding="utf-8")
    return LineConfig.model_validate(json.loads(text))
