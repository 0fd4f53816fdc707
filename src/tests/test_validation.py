from core.config import EndpointConfig
from core.models import Probe
from services.probe import ProbeConnectionError, ProbeResponse, ProbeTimeout
from services.validation import extract_error_message, validate_probe

JSON = "application/json"


def _endpoint(**overrides):
    data = {"path": "/users/1", "method": "GET", "expected_status": 200, "expected_fields": ["id", "name"]}
    data.update(overrides)
    return EndpointConfig.model_validate(data)


def _response(status=200, fields=("id", "name"), response_type=JSON, bucket="fast", data=None):
    return ProbeResponse(
        status_code=status,
        response_type=response_type,
        latency_ms=10 if bucket == "fast" else 900,
        latency_bucket=bucket,
        fields=list(fields),
        data=data,
    )


def _baseline_probe(status=200, response_type=JSON, bucket="fast"):
    return Probe(status_code=status, response_type=response_type, latency_bucket=bucket, passed=True)


def test_matching_expectation_without_baseline_passes():
    result = validate_probe(_response(), _endpoint(), api_name="users")

    assert result.passed
    assert result.expectation.passed
    assert result.baseline is None
    assert result.api_name == "users"
    assert result.endpoint == "/users/1"


def test_status_mismatch_fails_before_baseline_is_consulted():
    result = validate_probe(
        _response(status=500, fields=(), data={"message": "boom"}),
        _endpoint(),
        baseline_probe=_baseline_probe(),
    )

    assert not result.passed
    assert result.baseline is None
    assert result.expectation.removed_fields == ["id", "name"]
    assert result.error_message == "boom"


def test_field_drift_is_reported_both_ways():
    result = validate_probe(_response(fields=("id", "avatar")), _endpoint())

    assert not result.passed
    assert result.expectation.new_fields == ["avatar"]
    assert result.expectation.removed_fields == ["name"]


def test_baseline_verdict_overrides_passing_expectation():
    result = validate_probe(
        _response(response_type="text/html"),
        _endpoint(),
        baseline_probe=_baseline_probe(),
    )

    assert result.expectation.passed
    assert not result.passed
    assert result.baseline.exists
    assert result.baseline.status_code_match
    assert not result.baseline.response_type_match


def test_latency_drift_alone_does_not_fail():
    result = validate_probe(
        _response(bucket="slow"),
        _endpoint(),
        baseline_probe=_baseline_probe(bucket="fast"),
    )

    assert result.passed
    assert not result.baseline.latency_bucket_match


def test_connection_error_short_circuits():
    outcome = ProbeConnectionError(latency_ms=3, target="http://down.test/users/1")

    result = validate_probe(outcome, _endpoint(), baseline_probe=_baseline_probe())

    assert not result.passed
    assert result.is_connection_error
    assert result.baseline is None
    assert result.error_message == outcome.error


def test_timeout_fails_on_status_and_carries_message():
    result = validate_probe(ProbeTimeout(latency_ms=1000), _endpoint())

    assert not result.passed
    assert not result.is_connection_error
    assert result.expectation.status_code == 0
    assert result.error_message == "Request timeout"


def test_error_message_derivation():
    assert extract_error_message({"message": "not found", "error": "ignored"}) == "not found"
    assert extract_error_message({"error": "bad token"}) == "bad token"
    assert extract_error_message({"error": {"code": 42}}) == '{"code": 42}'
    assert extract_error_message({"detail": "x"}) is None
    assert extract_error_message(["message"]) is None


def test_passing_probe_has_no_error_message():
    result = validate_probe(_response(data={"id": 1, "name": "a", "message": "hello"}), _endpoint())
    assert result.passed
    assert result.error_message is None


def test_extra_email_field_is_new():
    result = validate_probe(_response(fields=("id", "name", "email")), _endpoint())

    assert not result.expectation.passed
    assert result.expectation.new_fields == ["email"]
    assert result.expectation.removed_fields == []
