"""
Probe Executor
==============
Issues one HTTP request against an endpoint and classifies what happened.

Outcomes are returned, not raised:
  • ProbeResponse        : a response arrived (any status code)
  • ProbeTimeout         : no response before the deadline
  • ProbeConnectionError : the target refused / could not be reached

Anything else (protocol errors, undecodable JSON, ...) is raised as
ProbeInternalError so the caller never mistakes it for API behaviour.
A probe is always a single attempt.
"""

import json
import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import httpx

from utils.fields import extract_field_set
from utils.variables import stringify_value

logger = logging.getLogger("baseline_monitor")

SLOW_THRESHOLD_MS = 200

TIMEOUT_MESSAGE = "Request timeout"
CONNECTION_REFUSED_MESSAGE = "Connection refused - API unavailable"


class ProbeInternalError(Exception):
    """Unexpected failure while executing a probe (not an API-observed condition)."""


@dataclass(frozen=True)
class ProbeResponse:
    status_code: int
    response_type: str
    latency_ms: int
    latency_bucket: str
    fields: List[str] = field(default_factory=list)
    data: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ProbeTimeout:
    latency_ms: int
    status_code: int = 0
    response_type: str = "error"
    latency_bucket: str = "timeout"
    fields: List[str] = field(default_factory=list)
    data: Any = None
    error: str = TIMEOUT_MESSAGE


@dataclass(frozen=True)
class ProbeConnectionError:
    latency_ms: int
    target: str = ""
    status_code: int = 0
    response_type: str = "error"
    latency_bucket: str = "error"
    fields: List[str] = field(default_factory=list)
    data: Any = None
    error: str = CONNECTION_REFUSED_MESSAGE


ProbeOutcome = Union[ProbeResponse, ProbeTimeout, ProbeConnectionError]


def bucket_latency(latency_ms: float) -> str:
    return "fast" if latency_ms < SLOW_THRESHOLD_MS else "slow"


def build_probe_url(base_url: str, path: str, query: Optional[Dict[str, Any]] = None) -> str:
    """base_url + path, with every query fixture entry appended as a parameter."""
    url = httpx.URL(f"{base_url.rstrip('/')}{path}")
    if query:
        url = url.copy_merge_params({key: stringify_value(value) for key, value in query.items()})
    return str(url)


async def probe_endpoint(
    url: str,
    method: str,
    body: Optional[Dict[str, Any]] = None,
    timeout_seconds: float = 5.0,
    client: Optional[httpx.AsyncClient] = None,
) -> ProbeOutcome:
    """
    Execute a single probe with a hard deadline of `timeout_seconds`.

    The httpx timeout is set to the same deadline, overriding the client default.
    When `client` is None a short-lived AsyncClient is created for this call.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout_seconds) as own_client:
            return await probe_endpoint(url, method, body, timeout_seconds, own_client)

    request_kwargs: Dict[str, Any] = {"headers": {"content-type": "application/json"}}
    if body is not None:
        request_kwargs["content"] = json.dumps(body)

    start_time = time.time()
    try:
        response = await asyncio.wait_for(
            client.request(method, url, follow_redirects=False, timeout=timeout_seconds, **request_kwargs),
            timeout=timeout_seconds,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        latency_ms = _elapsed_ms(start_time)
        logger.warning(f"⏱️  Probe timeout after {latency_ms}ms: {method} {url}")
        return ProbeTimeout(latency_ms=latency_ms)
    except httpx.ConnectError as e:
        latency_ms = _elapsed_ms(start_time)
        logger.warning(f"🔌 Connection refused: {method} {url} ({e})")
        return ProbeConnectionError(latency_ms=latency_ms, target=url)
    except httpx.HTTPError as e:
        raise ProbeInternalError(f"{method} {url}: {e}") from e

    latency_ms = _elapsed_ms(start_time)
    response_type = response.headers.get("content-type") or "no content-type"

    fields: List[str] = []
    data = None
    if "application/json" in response_type and response.content:
        try:
            data = response.json()
        except ValueError as e:
            raise ProbeInternalError(f"{method} {url}: response declared JSON but could not be decoded") from e
        fields = extract_field_set(data)
    elif not response.content:
        logger.debug(f"ℹ️ Empty body for {method} {url}, skipping field extraction.")
    else:
        logger.debug(f"ℹ️ Response for {method} {url} is {response_type}, skipping field extraction.")

    return ProbeResponse(
        status_code=response.status_code,
        response_type=response_type,
        latency_ms=latency_ms,
        latency_bucket=bucket_latency(latency_ms),
        fields=fields,
        data=data,
    )


def _elapsed_ms(start_time: float) -> int:
    return round((time.time() - start_time) * 1000)
