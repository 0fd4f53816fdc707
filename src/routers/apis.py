"""
APIs Router
============
Read access to monitored APIs, their endpoints and probe history, plus API
removal (cascades to endpoints, probes and baselines).
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from core.database import AsyncSessionLocal
from services import storage

logger = logging.getLogger("baseline_monitor")

router = APIRouter()


@router.get("/admin/apis")
async def list_apis():
    async with AsyncSessionLocal() as session:
        apis = await storage.list_apis(session)
        return [storage.api_to_dict(api) for api in apis]


@router.get("/admin/apis/{api_id}/endpoints")
async def list_api_endpoints(api_id: int):
    async with AsyncSessionLocal() as session:
        api = await storage.get_api(session, api_id)
        if not api:
            raise HTTPException(status_code=404, detail="API not found")
        endpoints = await storage.list_endpoints(session, api_id)
        return [storage.endpoint_to_dict(e) for e in endpoints]


@router.get("/admin/apis/{api_id}/probe-stats")
async def get_api_probe_stats(api_id: int, hours: Optional[int] = Query(default=None, gt=0)):
    """Pass/fail totals for an API, optionally limited to the last `hours`."""
    async with AsyncSessionLocal() as session:
        api = await storage.get_api(session, api_id)
        if not api:
            raise HTTPException(status_code=404, detail="API not found")
        stats = await storage.get_probe_stats(session, api_id=api_id, hours=hours)
        return {"api_id": api_id, "api_name": api.name, **stats}


@router.get("/admin/endpoints/{endpoint_id}/probes")
async def list_endpoint_probes(endpoint_id: int, limit: int = Query(default=50, gt=0, le=500)):
    """Most recent probes first."""
    async with AsyncSessionLocal() as session:
        probes = await storage.get_probes_by_endpoint(session, endpoint_id, limit=limit)
        return [storage.probe_to_dict(p) for p in probes]


@router.delete("/admin/apis/{api_id}")
async def delete_api(api_id: int):
    async with AsyncSessionLocal() as session:
        api = await storage.get_api(session, api_id)
        if not api:
            raise HTTPException(status_code=404, detail="API not found")
        name = api.name
        await storage.delete_api(session, api)
        await session.commit()

    logger.info(f"🗑️  API {name} (ID: {api_id}) deleted with its endpoints, probes and baselines")
    return {"status": "deleted", "id": api_id, "name": name}
