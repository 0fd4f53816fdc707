"""
Run Orchestrator
================
Drives one monitoring run over every configured API, in declaration order:

    resolve variables → probe → validate (expectation, then baseline)
      → persist probe → establish baseline → commit → stash variables → aggregate

Probing is strictly sequential: the run-scoped VariableTable lets a later
endpoint use values stashed by any earlier one, so the order of the
resources file is load-bearing.

Failure isolation:
  - an exception inside one endpoint counts as a failure for that endpoint;
    its transaction is rolled back and nothing is stashed from it
  - an exception while registering an API skips that API entirely
"""

import datetime
import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional, Tuple

import httpx

from core.config import ApiConfig, EndpointConfig, ResourcesConfig, SettingsConfig
from core.database import AsyncSessionLocal
from services import storage
from services.baseline import ensure_baseline
from services.probe import ProbeOutcome, build_probe_url, probe_endpoint
from services.validation import ValidationResult, validate_probe
from utils.variables import VariableTable, resolve_endpoint, stash_variables

logger = logging.getLogger("baseline_monitor")


@dataclass
class ApiRegistration:
    api_id: int
    endpoints: Dict[Tuple[str, str], int] = field(default_factory=dict)   # (method, path) → endpoint id


@dataclass
class ApiSummary:
    api_name: str
    total_endpoints: int
    passed: int
    failed: int
    success_rate: float


@dataclass
class RunResult:
    total_apis: int
    total_endpoints: int
    total_passed: int
    total_failed: int
    success_rate: float
    apis: List[ApiSummary] = field(default_factory=list)
    validations: List[ValidationResult] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def success_rate(passed: int, total: int) -> float:
    return (passed / total) * 100 if total > 0 else 0.0


# ── API registration ──

async def register_api(session, api: ApiConfig) -> ApiRegistration:
    """
    Ensure identity rows exist for the API and each endpoint (idempotent).
    NOTE: Does NOT commit: the caller is responsible for committing.
    """
    api_row = await storage.get_or_create_api(session, api.name, api.base_url)
    registration = ApiRegistration(api_id=api_row.id)

    for endpoint in api.endpoints:
        endpoint_row = await storage.upsert_endpoint(session, api_row.id, endpoint)
        registration.endpoints[endpoint.key] = endpoint_row.id

    logger.debug(f"📋 {api.name}: {len(registration.endpoints)} endpoint(s) registered (API ID: {api_row.id})")
    return registration


def _lookup_endpoint_id(registration: ApiRegistration, declared: EndpointConfig, resolved: EndpointConfig) -> int:
    # Rows are keyed by the declared path; fall back to the resolved one
    endpoint_id = registration.endpoints.get(declared.key) or registration.endpoints.get(resolved.key)
    if endpoint_id is None:
        raise LookupError(f"Endpoint not registered: {declared.method} {declared.path}")
    return endpoint_id


# ── Single endpoint ──

async def run_endpoint(
    session,
    api: ApiConfig,
    endpoint: EndpointConfig,
    registration: ApiRegistration,
    variables: VariableTable,
    settings: SettingsConfig,
    client: httpx.AsyncClient,
) -> Tuple[ValidationResult, ProbeOutcome]:
    """
    Probe, validate and record one endpoint inside the caller's transaction.
    Returns the validation and the raw outcome; stashing is left to the caller
    so it only happens once the probe row is committed.
    """
    resolved = resolve_endpoint(endpoint, variables)
    endpoint_id = _lookup_endpoint_id(registration, endpoint, resolved)

    url = build_probe_url(api.base_url, resolved.path, resolved.fixture_query)
    outcome = await probe_endpoint(
        url,
        resolved.method,
        resolved.fixture_body,
        settings.settings.run.timeout_seconds,
        client=client,
    )

    baseline_probe = await storage.get_latest_baseline_probe(session, registration.api_id, endpoint_id)
    validation = validate_probe(outcome, resolved, baseline_probe, api_name=api.name)

    await storage.insert_probe(
        session,
        api_id=registration.api_id,
        endpoint_id=endpoint_id,
        passed=validation.passed,
        status_code=outcome.status_code or 0,
        response_type=outcome.response_type,
        latency_bucket=outcome.latency_bucket,
        error_message=outcome.error,
    )

    await ensure_baseline(
        session,
        registration.api_id,
        endpoint_id,
        settings.settings.baseline.required_successful_probes,
    )
    return validation, outcome


# ── Full run ──

async def run_task(
    settings: SettingsConfig,
    resources: ResourcesConfig,
    session_factory=None,
    client: Optional[httpx.AsyncClient] = None,
    verbose: bool = False,
) -> RunResult:
    """
    Probe every enabled API/endpoint once and return the aggregated result.

    `session_factory` defaults to the application's AsyncSessionLocal; `client`
    defaults to one AsyncClient shared by the whole run.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=settings.settings.run.timeout_seconds) as own_client:
            return await run_task(settings, resources, session_factory, own_client, verbose)

    session_factory = session_factory or AsyncSessionLocal
    detail = logger.info if verbose else logger.debug

    started_at = datetime.datetime.utcnow()
    logger.info(f"🚀 Starting run over {len(resources.apis)} API(s)")

    validations: List[ValidationResult] = []
    summaries: List[ApiSummary] = []
    total_passed = 0
    total_failed = 0

    # One table for the whole run, shared across APIs in declaration order
    variables = VariableTable()

    for api in resources.apis:
        if api.disabled:
            logger.info(f"⏭️  Skipping disabled API: {api.name}")
            continue

        try:
            async with session_factory() as session:
                registration = await register_api(session, api)
                await session.commit()
        except Exception as e:
            logger.exception(f"❌ Failed to register API {api.name}: {e}")
            continue

        detail(f"🔎 Probing API: {api.name} ({api.base_url})")
        api_passed = 0
        api_failed = 0

        for endpoint in api.endpoints:
            endpoint_key = f"{endpoint.method} {endpoint.path}"
            try:
                async with session_factory() as session:
                    validation, outcome = await run_endpoint(
                        session, api, endpoint, registration, variables, settings, client
                    )
                    await session.commit()
            except Exception as e:
                logger.exception(f"💥 Error processing {api.name} {endpoint_key}: {e}")
                api_failed += 1
                continue

            if validation.passed and endpoint.stash and outcome.data is not None:
                stash_variables(variables, outcome.data, endpoint.stash)

            validations.append(validation)
            if validation.passed:
                api_passed += 1
                detail(f"  ✅ [OK]  {endpoint_key}")
            else:
                api_failed += 1
                detail(f"  ❌ [ERR] {endpoint_key}" + (f" - {validation.error_message}" if validation.error_message else ""))

        total_endpoints = api_passed + api_failed
        summaries.append(ApiSummary(
            api_name=api.name,
            total_endpoints=total_endpoints,
            passed=api_passed,
            failed=api_failed,
            success_rate=success_rate(api_passed, total_endpoints),
        ))
        total_passed += api_passed
        total_failed += api_failed

    total = total_passed + total_failed
    result = RunResult(
        total_apis=len(resources.apis),
        total_endpoints=total,
        total_passed=total_passed,
        total_failed=total_failed,
        success_rate=success_rate(total_passed, total),
        apis=summaries,
        validations=validations,
        started_at=started_at.isoformat(),
        finished_at=datetime.datetime.utcnow().isoformat(),
    )
    logger.info(f"🏁 Run complete: {total_passed}/{total} endpoint(s) passed ({result.success_rate:.1f}%)")
    return result
