from collections.abc import Callable

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from persona_gateway.config.settings import Settings, clear_settings_cache
from persona_gateway.main import create_app
from persona_gateway.store.base import Persona
from tests.helpers import ISSUER, PROJECT_REF, FakeIdentity, FakePersonaStore, VendorStub, make_token


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def store() -> FakePersonaStore:
    fake = FakePersonaStore()
    for persona in (
        Persona(
            id="p-gemini",
            name="Sunny",
            subtitle="a cheerful guide",
            vendor="gemini",
            model="gemini-2.0-flash",
            free_tier=True,
        ),
        Persona(id="p-openai", name="Owl", vendor="openai", model="gpt-4o-mini", free_tier=True),
        Persona(id="p-search", name="Scout", vendor="perplexity", model="sonar", free_tier=True),
        Persona(id="p-paid", name="Sage", vendor="gemini", model="gemini-2.0-flash", free_tier=False),
        Persona(id="p-mistral", name="Breeze", vendor="mistral", model="mistral-large", free_tier=True),
        Persona(
            id="p-retired",
            name="Old",
            vendor="gemini",
            model="gemini-1.5-flash",
            free_tier=True,
            active=False,
        ),
    ):
        fake.add_persona(persona)
    fake.add_persona(
        Persona(id="p-noprompt", name="Blank", vendor="gemini", model="gemini-2.0-flash", free_tier=True),
        prompt=None,
    )
    return fake


@pytest.fixture
def vendor() -> VendorStub:
    return VendorStub()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        env="test",
        jwt_expected_issuer=ISSUER,
        jwt_project_ref=PROJECT_REF,
        gemini_api_key="gemini-key",
        openai_api_key="openai-key",
        perplexity_api_key="perplexity-key",
    )


@pytest.fixture
def make_app(
    settings: Settings,
    store: FakePersonaStore,
    identity: FakeIdentity,
    vendor: VendorStub,
) -> Callable[..., FastAPI]:
    def _make(**overrides: object) -> FastAPI:
        clear_settings_cache()
        effective = settings.model_copy(update=overrides) if overrides else settings
        return create_app(
            settings=effective,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(vendor)),
            store=store,
            identity=identity,
        )

    return _make


@pytest.fixture
def client(make_app: Callable[..., FastAPI]) -> TestClient:
    return TestClient(make_app())


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
