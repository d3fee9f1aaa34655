"""Built-in line layouts."""

from __future__ import annotations

from typing import Any

from .config import LineConfig, LinePolicy
from .topology import Topology, UnitDef

INTAKE = "esteiraMain"
MILL_A = "millA"
MILL_B = "millB"
VALVE = "canoUnderMotor"
MID_BELT = "esteiraUnderCano"
SCREEN = "separador"
OUTPUT_LEFT = "esteiraEsquerda"
OUTPUT_RIGHT = "esteiraDireita"


def milling_line(countdown_seconds: int = 2, **policy: Any) -> LineConfig:
    """The eight-unit milling line.

    Intake belt feeds twin hammer mills, which feed a rotary valve, a
    belt, a vibrating screen and finally two output belts.  Keyword
    arguments are ``LinePolicy`` flags.
    """
    line_policy = LinePolicy(**policy)
    pairs = [[MILL_A, MILL_B]]
    if line_policy.pair_output_belts:
        pairs.append([OUTPUT_LEFT, OUTPUT_RIGHT])

    topology = Topology(
        units=[
            UnitDef(key=INTAKE, label="TC01", downstream=[MILL_A, MILL_B]),
            UnitDef(key=MILL_A, label="MM01M1", downstream=[VALVE]),
            UnitDef(key=MILL_B, label="MM01M2", downstream=[VALVE]),
            UnitDef(key=VALVE, label="VR01", downstream=[MID_BELT]),
            UnitDef(key=MID_BELT, label="TC02", downstream=[SCREEN]),
            UnitDef(key=SCREEN, label="CV01", downstream=[OUTPUT_LEFT, OUTPUT_RIGHT]),
            UnitDef(key=OUTPUT_LEFT, label="TC03"),
            UnitDef(key=OUTPUT_RIGHT, label="TC04"),
        ],
        pairs=pairs,
    )
    return LineConfig(
        name="milling_line",
        description="Intake belt, twin mills, rotary valve, belt, screen, two output belts",
        topology=topology,
        countdown_seconds=countdown_seconds,
        policy=line_policy,
    )
