import asyncio
import time

import pytest

from persona_gateway.auth.authenticator import RequestAuthenticator, extract_bearer_token
from persona_gateway.core.errors import AuthError
from tests.helpers import ISSUER, PROJECT_REF, SIGNING_SECRET, FakeIdentity, make_token


def _authenticator(identity: FakeIdentity, **kwargs) -> RequestAuthenticator:
    return RequestAuthenticator(
        identity=identity,
        expected_issuer=ISSUER,
        project_ref=PROJECT_REF,
        **kwargs,
    )


def test_extract_bearer_token() -> None:
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
    assert extract_bearer_token("bearer   abc ") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer") is None
    assert extract_bearer_token(None) is None


def test_valid_token_yields_principal(identity: FakeIdentity) -> None:
    token = make_token()
    principal = asyncio.run(_authenticator(identity).authenticate(f"Bearer {token}"))
    assert principal.user_id == "user-1"
    assert identity.calls == [token]


def test_missing_header_is_rejected(identity: FakeIdentity) -> None:
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(_authenticator(identity).authenticate(None))
    assert exc_info.value.code == "auth_missing"
    assert exc_info.value.status_code == 401


def test_garbage_token_is_rejected_without_identity_call(identity: FakeIdentity) -> None:
    with pytest.raises(AuthError, match="Authentication failed"):
        asyncio.run(_authenticator(identity).authenticate("Bearer not-a-jwt"))
    assert identity.calls == []


def test_foreign_issuer_never_reaches_identity_service(identity: FakeIdentity) -> None:
    token = make_token(issuer="https://other-project.supabase.co/auth/v1")
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(_authenticator(identity).authenticate(f"Bearer {token}"))
    assert exc_info.value.message == "Authentication failed"
    assert identity.calls == []


def test_foreign_project_ref_is_rejected(identity: FakeIdentity) -> None:
    token = make_token(ref="someone-else")
    with pytest.raises(AuthError):
        asyncio.run(_authenticator(identity).authenticate(f"Bearer {token}"))
    assert identity.calls == []


def test_issuer_trailing_slash_is_tolerated(identity: FakeIdentity) -> None:
    token = make_token(issuer=f"{ISSUER}/")
    principal = asyncio.run(_authenticator(identity).authenticate(f"Bearer {token}"))
    assert principal.user_id == "user-1"


def test_identity_service_rejection(identity: FakeIdentity) -> None:
    identity.user_id = None
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(_authenticator(identity).authenticate(f"Bearer {make_token()}"))
    assert exc_info.value.code == "auth_invalid"


def test_signature_checked_when_secret_configured(identity: FakeIdentity) -> None:
    authenticator = _authenticator(identity, jwt_secret="a-different-secret-0123456789abcdef")
    with pytest.raises(AuthError):
        asyncio.run(authenticator.authenticate(f"Bearer {make_token()}"))
    assert identity.calls == []


def test_expired_token_rejected_when_secret_configured(identity: FakeIdentity) -> None:
    authenticator = _authenticator(identity, jwt_secret=SIGNING_SECRET)
    token = make_token(exp=int(time.time()) - 60)
    with pytest.raises(AuthError):
        asyncio.run(authenticator.authenticate(f"Bearer {token}"))

    principal = asyncio.run(authenticator.authenticate(f"Bearer {make_token()}"))
    assert principal.user_id == "user-1"


def test_token_without_project_ref_is_rejected(identity: FakeIdentity) -> None:
    token = make_token(ref=None)
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(_authenticator(identity).authenticate(f"Bearer {token}"))
    assert exc_info.value.code == "auth_invalid"
    assert identity.calls == []


def test_project_ref_not_required_when_unconfigured(identity: FakeIdentity) -> None:
    authenticator = RequestAuthenticator(identity=identity, expected_issuer=ISSUER)
    principal = asyncio.run(authenticator.authenticate(f"Bearer {make_token(ref=None)}"))
    assert principal.user_id == "user-1"
