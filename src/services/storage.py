"""
Storage Service
===============
Record-level access to APIs, endpoints, probes and baselines.

Every function takes an AsyncSession and does NOT commit: the caller owns the
transaction boundary (one per API registration, one per endpoint probe).
"""

import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import EndpointConfig
from core.models import Api, Endpoint, Probe, Baseline

logger = logging.getLogger("baseline_monitor")


# ── APIs ──

async def get_or_create_api(session: AsyncSession, name: str, base_url: str) -> Api:
    result = await session.execute(select(Api).where(Api.name == name))
    api = result.scalars().first()

    if not api:
        api = Api(name=name, base_url=base_url)
        session.add(api)
        await session.flush()  # Get the ID without committing
        logger.info(f"🆕 API registered: {name} (ID: {api.id})")

    return api


async def get_api(session: AsyncSession, api_id: int) -> Optional[Api]:
    return await session.get(Api, api_id)


async def list_apis(session: AsyncSession) -> List[Api]:
    result = await session.execute(select(Api).order_by(Api.name))
    return list(result.scalars().all())


async def delete_api(session: AsyncSession, api: Api) -> None:
    """Removes the API; endpoints, probes and baselines go with it."""
    await session.delete(api)
    await session.flush()


# ── Endpoints ──

async def get_endpoint(session: AsyncSession, api_id: int, path: str, method: str) -> Optional[Endpoint]:
    result = await session.execute(
        select(Endpoint).where(Endpoint.api_id == api_id, Endpoint.path == path, Endpoint.method == method)
    )
    return result.scalars().first()


async def upsert_endpoint(session: AsyncSession, api_id: int, config: EndpointConfig) -> Endpoint:
    """
    Find the (api, path, method) endpoint or create it.  On re-declaration the
    expected status / fields / fixture keys follow the current config.
    """
    endpoint = await get_endpoint(session, api_id, config.path, config.method)
    expected_fields = list(config.expected_fields or [])
    body_params = config.body_fixture_params()

    if not endpoint:
        endpoint = Endpoint(
            api_id=api_id,
            path=config.path,
            method=config.method,
            expected_status=config.expected_status,
            expected_fields=expected_fields,
            body_fixture_params=body_params,
        )
        session.add(endpoint)
        await session.flush()
        logger.info(f"🆕 Endpoint added: {config.method} {config.path} (ID: {endpoint.id})")
    elif (endpoint.expected_status, endpoint.expected_fields, endpoint.body_fixture_params) != \
            (config.expected_status, expected_fields, body_params):
        endpoint.expected_status = config.expected_status
        endpoint.expected_fields = expected_fields
        endpoint.body_fixture_params = body_params
        await session.flush()
        logger.info(f"🔄 Endpoint contract updated: {config.method} {config.path} (ID: {endpoint.id})")

    return endpoint


async def list_endpoints(session: AsyncSession, api_id: int) -> List[Endpoint]:
    result = await session.execute(
        select(Endpoint).where(Endpoint.api_id == api_id).order_by(Endpoint.path, Endpoint.method)
    )
    return list(result.scalars().all())


# ── Probes ──

async def insert_probe(
    session: AsyncSession,
    api_id: int,
    endpoint_id: int,
    passed: bool,
    status_code: int,
    response_type: str,
    latency_bucket: str,
    error_message: Optional[str] = None,
) -> Probe:
    probe = Probe(
        api_id=api_id,
        endpoint_id=endpoint_id,
        passed=passed,
        status_code=status_code,
        response_type=response_type,
        latency_bucket=latency_bucket,
        error_message=error_message,
    )
    session.add(probe)
    await session.flush()
    return probe


async def get_probe(session: AsyncSession, probe_id: int) -> Optional[Probe]:
    return await session.get(Probe, probe_id)


async def get_probes_by_endpoint(session: AsyncSession, endpoint_id: int, limit: Optional[int] = None) -> List[Probe]:
    """Probe history for an endpoint, most recent first."""
    query = (
        select(Probe)
        .where(Probe.endpoint_id == endpoint_id)
        .order_by(Probe.created_at.desc(), Probe.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_probe_stats(session: AsyncSession, api_id: Optional[int] = None, hours: Optional[int] = None) -> Dict[str, Any]:
    query = select(
        func.count(Probe.id),
        func.sum(case((Probe.passed == True, 1), else_=0)),  # noqa: E712
    )
    if api_id is not None:
        query = query.where(Probe.api_id == api_id)
    if hours is not None:
        since = datetime.datetime.utcnow() - datetime.timedelta(hours=hours)
        query = query.where(Probe.created_at > since)

    total, passed = (await session.execute(query)).one()
    total = total or 0
    passed = passed or 0
    return {
        "total": total,
        "passed": passed,
        "failed": total - passed,
        "success_rate": round(passed / total * 100, 2) if total else 0.0,
    }


# ── Baselines ──

async def get_latest_baseline(session: AsyncSession, api_id: int, endpoint_id: int) -> Optional[Baseline]:
    """Most recent non-retired baseline for the endpoint."""
    result = await session.execute(
        select(Baseline)
        .where(
            Baseline.api_id == api_id,
            Baseline.endpoint_id == endpoint_id,
            Baseline.retired_at.is_(None),
        )
        .order_by(Baseline.created_at.desc(), Baseline.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def get_latest_baseline_probe(session: AsyncSession, api_id: int, endpoint_id: int) -> Optional[Probe]:
    """The probe pinned by the latest baseline, or None."""
    baseline = await get_latest_baseline(session, api_id, endpoint_id)
    if not baseline:
        return None
    return await get_probe(session, baseline.probe_id)


async def insert_baseline(session: AsyncSession, api_id: int, endpoint_id: int, probe_id: int) -> Baseline:
    baseline = Baseline(api_id=api_id, endpoint_id=endpoint_id, probe_id=probe_id)
    session.add(baseline)
    await session.flush()
    return baseline


async def get_baseline(session: AsyncSession, baseline_id: int) -> Optional[Baseline]:
    return await session.get(Baseline, baseline_id)


async def list_baselines(session: AsyncSession, endpoint_id: Optional[int] = None, include_retired: bool = True) -> List[Baseline]:
    query = select(Baseline).order_by(Baseline.created_at.desc(), Baseline.id.desc())
    if endpoint_id is not None:
        query = query.where(Baseline.endpoint_id == endpoint_id)
    if not include_retired:
        query = query.where(Baseline.retired_at.is_(None))
    result = await session.execute(query)
    return list(result.scalars().all())


# ── Serialisation ──

def api_to_dict(api: Api) -> Dict[str, Any]:
    return {
        "id": api.id,
        "name": api.name,
        "base_url": api.base_url,
        "created_at": api.created_at.isoformat() if api.created_at else None,
    }


def endpoint_to_dict(endpoint: Endpoint) -> Dict[str, Any]:
    return {
        "id": endpoint.id,
        "api_id": endpoint.api_id,
        "path": endpoint.path,
        "method": endpoint.method,
        "expected_status": endpoint.expected_status,
        "expected_fields": endpoint.expected_fields or [],
        "body_fixture_params": endpoint.body_fixture_params or [],
    }


def probe_to_dict(probe: Probe) -> Dict[str, Any]:
    return {
        "id": probe.id,
        "api_id": probe.api_id,
        "endpoint_id": probe.endpoint_id,
        "passed": probe.passed,
        "status_code": probe.status_code,
        "response_type": probe.response_type,
        "latency_bucket": probe.latency_bucket,
        "error_message": probe.error_message,
        "created_at": probe.created_at.isoformat() if probe.created_at else None,
    }


def baseline_to_dict(baseline: Baseline) -> Dict[str, Any]:
    return {
        "id": baseline.id,
        "api_id": baseline.api_id,
        "endpoint_id": baseline.endpoint_id,
        "probe_id": baseline.probe_id,
        "created_at": baseline.created_at.isoformat() if baseline.created_at else None,
        "retired_at": baseline.retired_at.isoformat() if baseline.retired_at else None,
    }
