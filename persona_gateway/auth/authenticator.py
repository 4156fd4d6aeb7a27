import logging
import re
from dataclasses import dataclass

import jwt

from persona_gateway.core.errors import AuthError
from persona_gateway.store.base import IdentityProvider

logger = logging.getLogger("pgw.auth")

_BEARER_RE = re.compile(r"^Bearer\s+(?P<token>\S+)\s*$", re.IGNORECASE)

# Every auth failure looks the same to the caller.
AUTH_FAILED_MESSAGE = "Authentication failed"


@dataclass(frozen=True)
class Principal:
    user_id: str


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    match = _BEARER_RE.match(authorization.strip())
    if match is None:
        return None
    return match.group("token")


class RequestAuthenticator:
    """Turns a raw ``Authorization`` header into a verified principal.

    Claims are checked locally first so that tokens minted for another
    project never reach the identity service. When a signing secret is
    configured the signature, expiry and audience are verified as well;
    otherwise the identity service is the authority on those.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        expected_issuer: str | None,
        project_ref: str | None = None,
        jwt_secret: str | None = None,
        audience: str = "authenticated",
    ):
        self._identity = identity
        self._expected_issuer = expected_issuer.rstrip("/") if expected_issuer else None
        self._project_ref = project_ref
        self._jwt_secret = jwt_secret
        self._audience = audience

    async def authenticate(self, authorization: str | None) -> Principal:
        token = extract_bearer_token(authorization)
        if token is None:
            logger.info("auth_missing_token")
            raise AuthError(AUTH_FAILED_MESSAGE, code="auth_missing")

        self._check_claims(token)

        user_id = await self._identity.get_user_id(token)
        if not user_id:
            logger.info("auth_no_principal")
            raise AuthError(AUTH_FAILED_MESSAGE, code="auth_invalid")
        return Principal(user_id=user_id)

    def _check_claims(self, token: str) -> None:
        try:
            if self._jwt_secret:
                claims = jwt.decode(
                    token,
                    self._jwt_secret,
                    algorithms=["HS256"],
                    audience=self._audience,
                    options={"require": ["exp", "sub"]},
                )
            else:
                claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            logger.info("auth_malformed_token", extra={"error_code": type(exc).__name__})
            raise AuthError(AUTH_FAILED_MESSAGE, code="auth_invalid") from exc

        if self._expected_issuer is not None:
            issuer = str(claims.get("iss", "")).rstrip("/")
            if issuer != self._expected_issuer:
                logger.warning("auth_issuer_mismatch")
                raise AuthError(AUTH_FAILED_MESSAGE, code="auth_invalid")

        # A token without a project ref is not trusted once one is configured.
        if self._project_ref is not None and claims.get("ref") != self._project_ref:
            logger.warning("auth_project_mismatch")
            raise AuthError(AUTH_FAILED_MESSAGE, code="auth_invalid")
