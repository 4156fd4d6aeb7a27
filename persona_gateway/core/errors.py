from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse


@dataclass
class ErrorEnvelope:
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class GatewayError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class AuthError(GatewayError):
    status_code = 401
    code = "auth_failed"


class ForbiddenError(GatewayError):
    status_code = 403
    code = "persona_forbidden"


class NotFoundError(GatewayError):
    status_code = 404
    code = "not_found"


class BadRequestError(GatewayError):
    status_code = 400
    code = "bad_request"


class ConfigurationError(GatewayError):
    status_code = 500
    code = "configuration_error"


class MissingPromptError(ConfigurationError):
    """The persona exists but has no hidden system instruction."""

    status_code = 404
    code = "prompt_missing"


class UpstreamError(GatewayError):
    code = "upstream_error"

    def __init__(self, vendor: str, vendor_status: int, message: str):
        super().__init__(message)
        self.vendor = vendor
        self.vendor_status = vendor_status
        # Rate limiting is the only vendor status the client can act on.
        self.status_code = 429 if vendor_status == 429 else 500


def request_id_from_request(request: Request) -> str:
    state_id = getattr(request.state, "request_id", None)
    header_id = request.headers.get("x-request-id")
    return state_id or header_id or str(uuid4())


def error_response(
    status_code: int,
    message: str,
    request_id: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    envelope = ErrorEnvelope(message=message)
    response = JSONResponse(status_code=status_code, content=envelope.as_dict())
    response.headers["x-request-id"] = request_id
    for key, value in (headers or {}).items():
        response.headers[key] = value
    return response
