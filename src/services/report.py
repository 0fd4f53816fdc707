"""
Run Reporter
============
Renders a RunResult for humans (console) or machines (json) and optionally
saves it to a timestamped file under `output.results_path`.
"""

import os
import sys
import json
import datetime
import logging
from typing import Any, Dict, List, Optional, TextIO

from core.config import SettingsConfig
from services.runner import RunResult
from services.validation import ValidationResult

logger = logging.getLogger("baseline_monitor")

RULE = "=" * 70


def build_payload(result: RunResult, settings: SettingsConfig) -> Dict[str, Any]:
    return {
        "timestamp": datetime.datetime.utcnow().isoformat() + "Z",
        "application": settings.name,
        "version": settings.version,
        "results": result.to_dict(),
    }


def failure_reasons(validation: ValidationResult) -> List[str]:
    """Plain-English lines explaining why a validation failed."""
    if validation.is_connection_error:
        return [f"Connection error: {validation.error_message or 'API unavailable'}"]

    reasons: List[str] = []
    exp = validation.expectation
    if exp.status_code != exp.expected_status:
        reasons.append(f"Status code: expected {exp.expected_status}, got {exp.status_code}")
    if exp.new_fields:
        reasons.append(f"New fields: {', '.join(exp.new_fields)}")
    if exp.removed_fields:
        reasons.append(f"Missing fields: {', '.join(exp.removed_fields)}")

    baseline = validation.baseline
    if baseline and not baseline.passed:
        if not baseline.status_code_match:
            reasons.append("Baseline status code mismatch")
        if not baseline.response_type_match:
            reasons.append("Baseline response type mismatch")

    if validation.error_message:
        reasons.append(f"Error: {validation.error_message}")
    return reasons


def render_console(result: RunResult) -> str:
    lines: List[str] = [""]

    passes = [v for v in result.validations if v.passed]
    failures = [v for v in result.validations if not v.passed]

    for v in passes:
        lines.append(f"PASSED  {v.api_name} :: {v.method} {v.endpoint}")

    if failures:
        lines.append("")
        lines.append(" FAILURES ".center(70, "="))
        for v in failures:
            lines.append(f"FAILED  {v.api_name} :: {v.method} {v.endpoint}")
            for reason in failure_reasons(v):
                lines.append(f"  {reason}")
            lines.append("")

    if result.apis:
        lines.append(" APIS ".center(70, "-"))
        for api in result.apis:
            lines.append(
                f"{api.api_name}: {api.passed}/{api.total_endpoints} passed ({api.success_rate:.2f}%)"
            )

    lines.append(RULE)
    if result.total_failed == 0:
        lines.append(f"{result.total_passed} passed in {result.total_endpoints} endpoints")
    else:
        lines.append(
            f"{result.total_failed} failed, {result.total_passed} passed in {result.total_endpoints} endpoints"
        )
    lines.append(f"Success Rate: {result.success_rate:.2f}%")
    lines.append(RULE)
    return "\n".join(lines)


def save_results(result: RunResult, settings: SettingsConfig) -> Optional[str]:
    results_path = settings.settings.output.results_path
    timestamp = datetime.datetime.utcnow().strftime("%Y-%m-%dT%H-%M-%S-%f")
    filepath = os.path.join(results_path, f"baseline-results-{timestamp}.json")
    try:
        os.makedirs(results_path, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(build_payload(result, settings), f, indent=2)
    except OSError as e:
        logger.error(f"⚠️  Failed to save results to {filepath}: {e}")
        return None

    logger.info(f"💾 Results saved to: {filepath}")
    return filepath


def output_results(result: RunResult, settings: SettingsConfig, stream: Optional[TextIO] = None) -> Optional[str]:
    """
    Write the report in the configured format to `stream` (stdout by default).
    Returns the saved file path when `output.save_results` is enabled.
    """
    stream = stream or sys.stdout
    output = settings.settings.output

    if output.format == "json":
        print(json.dumps(build_payload(result, settings), indent=2), file=stream)
    else:
        print(render_console(result), file=stream)

    if output.save_results:
        return save_results(result, settings)
    return None
