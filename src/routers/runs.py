"""
Runs Router
============
Trigger a monitoring run and inspect recent run results.
"""

import logging

from fastapi import APIRouter, HTTPException

import core.state as state
from core.config import ConfigError, load_resources, load_settings
from services.report import save_results
from services.runner import run_task

logger = logging.getLogger("baseline_monitor")

router = APIRouter()


@router.post("/admin/runs")
async def trigger_run(verbose: bool = False):
    """
    Load settings/resources from disk and execute one full run.
    Only one run may be in progress at a time.
    """
    if state.run_lock.locked():
        raise HTTPException(status_code=409, detail="A run is already in progress")

    try:
        settings = load_settings()
        resources = load_resources()
    except ConfigError as e:
        logger.error(f"❌ Cannot start run: {e}")
        raise HTTPException(status_code=422, detail={"path": e.path, "problems": e.problems})

    async with state.run_lock:
        result = await run_task(settings, resources, verbose=verbose)

    if settings.settings.output.save_results:
        save_results(result, settings)

    payload = result.to_dict()
    state.record_run(payload)
    return payload


@router.get("/admin/runs")
async def list_runs():
    """Recent run summaries, newest first (validations omitted)."""
    return [
        {k: v for k, v in run.items() if k != "validations"}
        for run in state.RECENT_RUNS
    ]


@router.get("/admin/runs/latest")
async def get_latest_run():
    run = state.latest_run()
    if run is None:
        raise HTTPException(status_code=404, detail="No run has completed yet")
    return run
