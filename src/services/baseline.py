"""
Baseline Lifecycle
==================
Decides when an endpoint's known-good reference is established.

State per endpoint:

    NoBaseline ──probe──▶ Pending(successes, required) ──N most recent all passed──▶ Established
        ▲                                                                                   │
        └───────────────────────────── retire_baseline (explicit) ─────────────────────────┘

Establishment is one-way and automatic: an established baseline is never
re-evaluated or replaced by a run.  The only way back to Pending is the
explicit retire action, after which the usual threshold rule applies again.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from core.models import Baseline, Probe
from services.storage import (
    get_baseline, get_latest_baseline, get_probes_by_endpoint, insert_baseline
)

logger = logging.getLogger("baseline_monitor")


# ── States ──

@dataclass(frozen=True)
class NoBaseline:
    """No probe has been recorded for the endpoint yet."""
    state: str = "no_baseline"


@dataclass(frozen=True)
class Pending:
    """
    Probes exist but the threshold is not met.

    `successes` counts consecutive passes among the most recent probes
    (stops at the first failure), capped at `required`.
    """
    successes: int
    required: int
    state: str = "pending"

    @property
    def ready(self) -> bool:
        return self.successes >= self.required


@dataclass(frozen=True)
class Established:
    baseline_id: Optional[int]
    probe_id: int
    state: str = "established"


BaselineState = Union[NoBaseline, Pending, Established]


def evaluate_state(probes: Sequence[Probe], required: int) -> BaselineState:
    """
    Pure decision over most-recent-first probe history for an endpoint that
    has no active baseline.  Returns Established(None, probe_id) when the
    `required` most recent probes all passed, pinned to the newest of them.
    """
    if not probes:
        return NoBaseline()

    window = list(probes[:required])
    successes = 0
    for probe in window:
        if not probe.passed:
            break
        successes += 1

    if len(window) == required and successes == required:
        return Established(baseline_id=None, probe_id=window[0].id)

    return Pending(successes=successes, required=required)


# ── Operations ──

async def ensure_baseline(
    session: AsyncSession,
    api_id: int,
    endpoint_id: int,
    required_successful_probes: int,
) -> Optional[Baseline]:
    """
    Returns the endpoint's baseline, creating it the first time the
    `required_successful_probes` most recent probes have all passed.

    NOTE: Does NOT commit: the caller is responsible for committing.
    """
    existing = await get_latest_baseline(session, api_id, endpoint_id)
    if existing:
        return existing

    probes = await get_probes_by_endpoint(session, endpoint_id, limit=required_successful_probes)
    state = evaluate_state(probes, required_successful_probes)

    if isinstance(state, NoBaseline):
        logger.info(f"⚠️  No probes found for endpoint (ID: {endpoint_id})")
        return None

    if isinstance(state, Pending):
        if len(probes) < required_successful_probes:
            logger.info(f"⏳ Not enough probes yet for endpoint {endpoint_id}. Have {len(probes)}, need {required_successful_probes}")
        else:
            passed_count = sum(1 for p in probes if p.passed)
            logger.info(f"⏳ Not all recent probes passed for endpoint {endpoint_id}. {passed_count}/{required_successful_probes} passed")
        return None

    baseline = await insert_baseline(session, api_id, endpoint_id, state.probe_id)
    logger.info(
        f"✨ Baseline created for endpoint {endpoint_id} (ID: {baseline.id}, probe {state.probe_id}) "
        f"after {required_successful_probes} successful probes"
    )
    return baseline


async def baseline_state(
    session: AsyncSession,
    api_id: int,
    endpoint_id: int,
    required_successful_probes: int,
) -> BaselineState:
    """Current lifecycle state, without creating anything."""
    existing = await get_latest_baseline(session, api_id, endpoint_id)
    if existing:
        return Established(baseline_id=existing.id, probe_id=existing.probe_id)

    probes: List[Probe] = await get_probes_by_endpoint(session, endpoint_id, limit=required_successful_probes)
    state = evaluate_state(probes, required_successful_probes)
    if isinstance(state, Established):
        # Threshold met but the next run has not pinned it yet
        return Pending(successes=required_successful_probes, required=required_successful_probes)
    return state


async def retire_baseline(session: AsyncSession, baseline_id: int) -> Optional[Baseline]:
    """
    Explicitly retires a baseline so the endpoint can settle on a new steady
    state.  Returns None if the baseline does not exist.  Idempotent.
    """
    baseline = await get_baseline(session, baseline_id)
    if not baseline:
        return None

    if baseline.retired_at is None:
        baseline.retired_at = datetime.datetime.utcnow()
        await session.flush()
        logger.info(f"🗄️  Baseline {baseline_id} retired for endpoint {baseline.endpoint_id}")

    return baseline
