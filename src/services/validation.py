"""
Validation Engine
=================
Decides whether a probe passed, against two independent references:

  1. The declared expectation:  status code + expected field set
  2. The latest baseline probe: status code + response type
                                (latency bucket recorded, informational only)

Precedence: once a baseline exists and the expectation check passes, the
baseline verdict is final.  Otherwise the expectation verdict is final.
A connection error short-circuits to a failure without any checks.

Pure: the caller loads the baseline probe from storage.
"""

import json
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional

from core.config import EndpointConfig
from core.models import Probe
from services.probe import ProbeConnectionError, ProbeOutcome
from utils.fields import diff_fields


@dataclass
class ExpectationCheck:
    status_code: int
    expected_status: int
    expected_fields: List[str] = field(default_factory=list)
    new_fields: List[str] = field(default_factory=list)
    removed_fields: List[str] = field(default_factory=list)
    passed: bool = False


@dataclass
class BaselineComparison:
    exists: bool
    status_code_match: bool
    response_type_match: bool
    latency_bucket_match: bool
    passed: bool


@dataclass
class ValidationResult:
    api_name: str
    endpoint: str
    method: str
    expectation: ExpectationCheck
    baseline: Optional[BaselineComparison] = None
    passed: bool = False
    is_connection_error: bool = False
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def check_expectation(outcome: ProbeOutcome, endpoint: EndpointConfig) -> ExpectationCheck:
    expected_fields = list(endpoint.expected_fields or [])
    new_fields, removed_fields = diff_fields(outcome.fields or [], expected_fields)
    status_ok = outcome.status_code == endpoint.expected_status

    return ExpectationCheck(
        status_code=outcome.status_code,
        expected_status=endpoint.expected_status,
        expected_fields=expected_fields,
        new_fields=new_fields,
        removed_fields=removed_fields,
        passed=status_ok and not new_fields and not removed_fields,
    )


def compare_with_baseline(outcome: ProbeOutcome, baseline_probe: Probe) -> BaselineComparison:
    status_match = baseline_probe.status_code == outcome.status_code
    type_match = baseline_probe.response_type == outcome.response_type
    return BaselineComparison(
        exists=True,
        status_code_match=status_match,
        response_type_match=type_match,
        latency_bucket_match=baseline_probe.latency_bucket == outcome.latency_bucket,
        passed=status_match and type_match,
    )


def extract_error_message(data: Any) -> Optional[str]:
    """Human-readable cause from a JSON error body (`message`, then `error`)."""
    if not isinstance(data, dict):
        return None
    for key in ("message", "error"):
        value = data.get(key)
        if value:
            return value if isinstance(value, str) else json.dumps(value)
    return None


def validate_probe(
    outcome: ProbeOutcome,
    endpoint: EndpointConfig,
    baseline_probe: Optional[Probe] = None,
    api_name: str = "",
) -> ValidationResult:
    if isinstance(outcome, ProbeConnectionError):
        return ValidationResult(
            api_name=api_name,
            endpoint=endpoint.path,
            method=endpoint.method,
            expectation=ExpectationCheck(
                status_code=0,
                expected_status=endpoint.expected_status,
                expected_fields=list(endpoint.expected_fields or []),
            ),
            passed=False,
            is_connection_error=True,
            error_message=outcome.error,
        )

    expectation = check_expectation(outcome, endpoint)
    baseline = None
    passed = expectation.passed

    if expectation.passed and baseline_probe is not None:
        baseline = compare_with_baseline(outcome, baseline_probe)
        passed = baseline.passed

    error_message = outcome.error
    if not error_message and not passed:
        error_message = extract_error_message(outcome.data)

    return ValidationResult(
        api_name=api_name,
        endpoint=endpoint.path,
        method=endpoint.method,
        expectation=expectation,
        baseline=baseline,
        passed=passed,
        error_message=error_message,
    )
