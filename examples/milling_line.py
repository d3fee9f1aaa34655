"""Milling line — one shift driven in real time.

Powers the line up bottom-to-top, lets it run, then powers it down
top-to-bottom.  A mill defect is raised and cleared in between from the
local (MANU) panel.  Pass ``--fast`` to skip the one-second sleeps.
"""

import logging
import sys
import time
from pathlib import Path

from interlock.engine import build_controller
from interlock.model.state import RunState

logging.basicConfig(
    level=logging.INFO,
    format="[LINE] %(asctime)s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("milling_line")

CONFIG = Path(__file__).with_suffix(".json")


def run_ticks(line, seconds, realtime):
    """Tick the line once per second, compensating for tick duration."""
    for _ in range(seconds):
        start = time.monotonic()
        expired = line.tick()
        if expired:
            logger.info("t=%3ds expired %s", line.clock_s, expired)
        if realtime:
            time.sleep(max(0.0, 1.0 - (time.monotonic() - start)))


def settle(line, realtime, limit=120):
    for _ in range(limit):
        if not line.timers and line.run_state == RunState.IDLE:
            return
        run_ticks(line, 1, realtime)
    raise RuntimeError(f"{line!r} did not settle in {limit}s")


def show(line):
    snap = line.snapshot()
    topo = line.config.topology
    for key in topo.keys:
        timer = snap.timers.get(key)
        extra = f"  ({timer}s)" if timer is not None else ""
        print(f"  {topo.label(key):<8s} {key:<18s} {snap.modes[key].value}{extra}")


if __name__ == "__main__":
    realtime = "--fast" not in sys.argv[1:]
    line = build_controller(CONFIG)
    print(repr(line))

    # -- power up ----------------------------------------------------------
    line.group_power_on()
    settle(line, realtime)
    show(line)

    # -- run ---------------------------------------------------------------
    run_ticks(line, 5, realtime)

    # -- power down --------------------------------------------------------
    line.group_power_off()
    settle(line, realtime)
    show(line)

    # -- maintenance on mill A ---------------------------------------------
    line.set_group_mode("manu")
    line.toggle_defect("millA")
    show(line)
    line.toggle_defect("millA")
    line.set_group_mode("auto")

    print(repr(line))
