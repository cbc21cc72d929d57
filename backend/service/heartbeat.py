"""
Liveness heartbeat.

Overwrites a file with the current Unix time in milliseconds, once
immediately and then on every interval. External probes
(tools/check_heartbeat.py) compare its age against a threshold.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from observability.logger import log_event, now_ms


def write_heartbeat(path: str) -> bool:
    """Write the timestamp. Returns False if the write failed; never raises."""
    try:
        Path(path).write_text(str(now_ms()), encoding="utf-8")
    except OSError as e:
        log_event({
            "level": "DEBUG",
            "event_type": "HEARTBEAT_WRITE_FAILED",
            "path": path,
            "error": repr(e),
        })
        return False
    return True


async def run_heartbeat(path: str, interval_s: float) -> None:
    """Heartbeat task body. Runs until cancelled."""
    while True:
        write_heartbeat(path)
        await asyncio.sleep(interval_s)
