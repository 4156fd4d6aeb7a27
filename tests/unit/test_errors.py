import json

from persona_gateway.core.errors import (
    ConfigurationError,
    ErrorEnvelope,
    MissingPromptError,
    UpstreamError,
    error_response,
)


def test_error_envelope_shape() -> None:
    assert ErrorEnvelope(message="Authentication failed").as_dict() == {
        "error": "Authentication failed"
    }


def test_error_response_carries_request_id() -> None:
    response = error_response(403, "You do not have access to this persona", "req-1")
    assert response.status_code == 403
    assert response.headers["x-request-id"] == "req-1"
    assert json.loads(response.body) == {"error": "You do not have access to this persona"}


def test_upstream_rate_limit_passes_through() -> None:
    assert UpstreamError("gemini", 429, "Gemini error: quota").status_code == 429


def test_other_upstream_statuses_map_to_500() -> None:
    for vendor_status in (400, 401, 502, 503, 504):
        assert UpstreamError("openai", vendor_status, "OpenAI error").status_code == 500


def test_missing_prompt_is_a_configuration_error_reported_as_404() -> None:
    exc = MissingPromptError("No system prompt configured for persona p-1")
    assert isinstance(exc, ConfigurationError)
    assert exc.status_code == 404
    assert exc.code == "prompt_missing"
