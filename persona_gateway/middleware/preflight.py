from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

ALLOWED_METHODS = "POST, GET, OPTIONS"


class PreflightMiddleware(BaseHTTPMiddleware):
    """Answers every ``OPTIONS`` request as a preflight and tags all responses.

    Preflights are answered with an empty 204 before routing, so no handler
    or authentication runs for them.
    """

    def __init__(self, app: ASGIApp, allow_origins: list[str], allow_headers: str):
        super().__init__(app)
        self._allow_origins = allow_origins or ["*"]
        self._allow_headers = allow_headers

    def cors_headers(self, request: Request) -> dict[str, str]:
        origin = request.headers.get("origin")
        if "*" in self._allow_origins:
            allowed = "*"
        elif origin and origin in self._allow_origins:
            allowed = origin
        else:
            allowed = self._allow_origins[0]
        headers = {
            "Access-Control-Allow-Origin": allowed,
            "Access-Control-Allow-Headers": self._allow_headers,
        }
        if allowed != "*":
            headers["Vary"] = "Origin"
        return headers

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        headers = self.cors_headers(request)
        if request.method == "OPTIONS":
            headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        for key, value in headers.items():
            response.headers.setdefault(key, value)
        return response
