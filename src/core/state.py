"""
Global State
=============
Process-wide mutable state for the admin surface.
Centralizing these prevents circular imports and makes state explicit.

Runs are strictly sequential: `run_lock` guarantees at most one run at a
time, and the variable table of a run is never stored here.
"""

import asyncio
from typing import Any, Dict, List, Optional

# ── Run serialisation ──
run_lock = asyncio.Lock()

# ── Recent Runs (last 20 results, newest first) ──
RECENT_RUNS_SIZE = 20
RECENT_RUNS: List[Dict[str, Any]] = []


def record_run(result: Dict[str, Any]) -> None:
    RECENT_RUNS.insert(0, result)
    if len(RECENT_RUNS) > RECENT_RUNS_SIZE:
        RECENT_RUNS.pop()


def latest_run() -> Optional[Dict[str, Any]]:
    return RECENT_RUNS[0] if RECENT_RUNS else None
