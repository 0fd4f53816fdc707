"""
Baselines Router
=================
Inspect baselines and lifecycle state; retire a baseline so an endpoint can
settle on a new steady state.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException

from core.config import ConfigError, load_settings
from core.database import AsyncSessionLocal
from core.models import Endpoint
from services import storage
from services.baseline import baseline_state, retire_baseline

logger = logging.getLogger("baseline_monitor")

router = APIRouter()


@router.get("/admin/baselines")
async def list_baselines(endpoint_id: Optional[int] = None, include_retired: bool = True):
    async with AsyncSessionLocal() as session:
        baselines = await storage.list_baselines(session, endpoint_id=endpoint_id, include_retired=include_retired)
        return [storage.baseline_to_dict(b) for b in baselines]


@router.get("/admin/endpoints/{endpoint_id}/baseline-state")
async def get_baseline_state(endpoint_id: int, required: Optional[int] = None):
    """
    Lifecycle state of an endpoint: no_baseline, pending or established.
    `required` defaults to settings.baseline.required_successful_probes.
    """
    if required is None:
        try:
            required = load_settings().settings.baseline.required_successful_probes
        except ConfigError as e:
            raise HTTPException(status_code=422, detail={"path": e.path, "problems": e.problems})
    if required <= 0:
        raise HTTPException(status_code=400, detail="required must be positive")

    async with AsyncSessionLocal() as session:
        endpoint = await session.get(Endpoint, endpoint_id)
        if not endpoint:
            raise HTTPException(status_code=404, detail="Endpoint not found")
        current = await baseline_state(session, endpoint.api_id, endpoint_id, required)

    return {"endpoint_id": endpoint_id, **asdict(current)}


@router.post("/admin/baselines/{baseline_id}/retire")
async def retire(baseline_id: int):
    """
    Retire a baseline.  The endpoint returns to pending and the next run
    re-establishes a baseline once the success threshold is met again.
    """
    async with AsyncSessionLocal() as session:
        baseline = await retire_baseline(session, baseline_id)
        if not baseline:
            logger.error(f"❌ Baseline {baseline_id} not found for retirement")
            raise HTTPException(status_code=404, detail="Baseline not found")
        await session.commit()
        return {"status": "retired", **storage.baseline_to_dict(baseline)}
