from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from core.config import EndpointConfig
from core.models import Baseline, Probe
from services import storage
from services.baseline import (
    Established, NoBaseline, Pending,
    baseline_state, ensure_baseline, evaluate_state, retire_baseline,
)


async def _seed(session):
    api = await storage.get_or_create_api(session, "users", "http://users.test")
    endpoint = await storage.upsert_endpoint(
        session, api.id,
        EndpointConfig(path="/users", method="GET", expected_status=200, expected_fields=["id"]),
    )
    return api, endpoint


async def _probe(session, api, endpoint, passed=True):
    return await storage.insert_probe(
        session, api.id, endpoint.id,
        passed=passed, status_code=200 if passed else 500,
        response_type="application/json", latency_bucket="fast",
    )


def test_evaluate_state_is_pure():
    newest_first = [SimpleNamespace(id=3, passed=True), SimpleNamespace(id=2, passed=True), SimpleNamespace(id=1, passed=False)]

    assert evaluate_state([], 2) == NoBaseline()
    assert evaluate_state(newest_first, 2) == Established(baseline_id=None, probe_id=3)

    pending = evaluate_state(newest_first, 3)
    assert isinstance(pending, Pending)
    assert pending.successes == 2
    assert not pending.ready

    assert evaluate_state(newest_first[:1], 2) == Pending(successes=1, required=2)


@pytest.mark.asyncio
async def test_baseline_established_after_threshold(session):
    api, endpoint = await _seed(session)

    assert await ensure_baseline(session, api.id, endpoint.id, 3) is None

    await _probe(session, api, endpoint)
    await _probe(session, api, endpoint)
    assert await ensure_baseline(session, api.id, endpoint.id, 3) is None

    newest = await _probe(session, api, endpoint)
    baseline = await ensure_baseline(session, api.id, endpoint.id, 3)

    assert baseline is not None
    assert baseline.probe_id == newest.id
    assert await baseline_state(session, api.id, endpoint.id, 3) == Established(baseline.id, newest.id)


@pytest.mark.asyncio
async def test_recent_failure_blocks_baseline(session):
    api, endpoint = await _seed(session)
    await _probe(session, api, endpoint)
    await _probe(session, api, endpoint, passed=False)
    await _probe(session, api, endpoint)

    assert await ensure_baseline(session, api.id, endpoint.id, 3) is None
    state = await baseline_state(session, api.id, endpoint.id, 3)
    assert state == Pending(successes=1, required=3)


@pytest.mark.asyncio
async def test_baseline_is_created_once(session):
    api, endpoint = await _seed(session)
    for _ in range(2):
        await _probe(session, api, endpoint)

    first = await ensure_baseline(session, api.id, endpoint.id, 2)
    await _probe(session, api, endpoint, passed=False)
    second = await ensure_baseline(session, api.id, endpoint.id, 2)

    assert second.id == first.id
    count = (await session.execute(select(func.count(Baseline.id)))).scalar()
    assert count == 1


@pytest.mark.asyncio
async def test_retire_returns_endpoint_to_pending(session):
    api, endpoint = await _seed(session)
    for _ in range(2):
        await _probe(session, api, endpoint)
    original = await ensure_baseline(session, api.id, endpoint.id, 2)

    retired = await retire_baseline(session, original.id)
    retired_at = retired.retired_at

    assert retired_at is not None
    assert await storage.get_latest_baseline(session, api.id, endpoint.id) is None
    assert await storage.get_latest_baseline_probe(session, api.id, endpoint.id) is None
    state = await baseline_state(session, api.id, endpoint.id, 2)
    assert isinstance(state, Pending) and state.ready

    again = await retire_baseline(session, original.id)
    assert again.retired_at == retired_at

    await _probe(session, api, endpoint)
    replacement = await ensure_baseline(session, api.id, endpoint.id, 2)
    assert replacement.id != original.id
    assert len(await storage.list_baselines(session, endpoint_id=endpoint.id)) == 2
    assert len(await storage.list_baselines(session, endpoint_id=endpoint.id, include_retired=False)) == 1


@pytest.mark.asyncio
async def test_retire_unknown_baseline(session):
    assert await retire_baseline(session, 12345) is None


@pytest.mark.asyncio
async def test_deleting_api_cascades(session):
    api, endpoint = await _seed(session)
    for _ in range(2):
        await _probe(session, api, endpoint)
    await ensure_baseline(session, api.id, endpoint.id, 2)
    await session.commit()
    api_id = api.id

    await storage.delete_api(session, api)
    await session.commit()

    for model in (Probe, Baseline):
        count = (await session.execute(select(func.count(model.id)))).scalar()
        assert count == 0
    assert await storage.list_endpoints(session, api_id) == []
    assert await storage.get_api(session, api_id) is None


@pytest.mark.asyncio
async def test_probe_history_and_stats(session):
    api, endpoint = await _seed(session)
    first = await _probe(session, api, endpoint)
    second = await _probe(session, api, endpoint, passed=False)

    history = await storage.get_probes_by_endpoint(session, endpoint.id)
    assert [p.id for p in history] == [second.id, first.id]
    assert [p.id for p in await storage.get_probes_by_endpoint(session, endpoint.id, limit=1)] == [second.id]

    stats = await storage.get_probe_stats(session, api_id=api.id)
    assert stats == {"total": 2, "passed": 1, "failed": 1, "success_rate": 50.0}


@pytest.mark.asyncio
async def test_upsert_endpoint_follows_current_contract(session):
    api, endpoint = await _seed(session)

    updated = await storage.upsert_endpoint(
        session, api.id,
        EndpointConfig(path="/users", method="GET", expected_status=200, expected_fields=["id", "email"]),
    )

    assert updated.id == endpoint.id
    assert updated.expected_fields == ["id", "email"]
    assert len(await storage.list_endpoints(session, api.id)) == 1


@pytest.mark.asyncio
async def test_failure_inside_window_blocks_until_it_ages_out(session):
    api, endpoint = await _seed(session)
    outcomes = [True, True, False, True]
    for passed in outcomes:
        await _probe(session, api, endpoint, passed=passed)
        assert await ensure_baseline(session, api.id, endpoint.id, 3) is None

    await _probe(session, api, endpoint)
    assert await ensure_baseline(session, api.id, endpoint.id, 3) is None

    newest = await _probe(session, api, endpoint)
    baseline = await ensure_baseline(session, api.id, endpoint.id, 3)
    assert baseline.probe_id == newest.id
