"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from wikiquiz.core.exceptions import _error_payload, _sanitize_validation_errors


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "callBudget"), "msg": "Value error, bad budget.", "input": {"callBudget": "ten"}, "ctx": {"error": ValueError("bad budget."), "input": {"callBudget": "ten"}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["loc"] == ["body", "callBudget"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad budget."
  assert "input" not in sanitized[0]["ctx"]


def test_error_payload_includes_request_id_when_known() -> None:
  assert _error_payload("Job not found.", request_id="req-1") == {"detail": "Job not found.", "requestId": "req-1"}
  assert _error_payload("Job not found.") == {"detail": "Job not found."}
