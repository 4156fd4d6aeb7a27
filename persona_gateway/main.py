from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from persona_gateway.api.routes import router
from persona_gateway.auth.authenticator import RequestAuthenticator
from persona_gateway.config.settings import Settings, get_settings
from persona_gateway.core.errors import (
    ConfigurationError,
    GatewayError,
    error_response,
    request_id_from_request,
)
from persona_gateway.core.logging import configure_logging
from persona_gateway.entitlement.checker import EntitlementChecker
from persona_gateway.metrics import GatewayMetrics
from persona_gateway.middleware.preflight import PreflightMiddleware
from persona_gateway.middleware.request_id import RequestIDMiddleware
from persona_gateway.prompts.assembler import PromptAssembler
from persona_gateway.providers.gemini import GeminiHandler
from persona_gateway.providers.openai import OpenAIHandler
from persona_gateway.providers.perplexity import PerplexityHandler
from persona_gateway.providers.registry import GenerationTiers, ProviderRouter
from persona_gateway.services.chat_pipeline import ChatPipeline
from persona_gateway.store.base import IdentityProvider, Persona, PersonaStore, Subscription
from persona_gateway.store.supabase import SupabaseIdentityClient, SupabasePersonaStore


class UnconfiguredStore:
    """Stands in for the store and identity clients when Supabase is not configured."""

    async def get_user_id(self, token: str) -> str | None:
        raise ConfigurationError("Server configuration error")

    async def get_persona(self, persona_id: str) -> Persona | None:
        raise ConfigurationError("Server configuration error")

    async def get_hidden_prompt(self, persona_id: str) -> str | None:
        raise ConfigurationError("Server configuration error")

    async def get_skill_prompt(self, persona_id: str, skill_id: str) -> str | None:
        raise ConfigurationError("Server configuration error")

    async def has_ownership(self, user_id: str, persona_id: str) -> bool:
        raise ConfigurationError("Server configuration error")

    async def get_subscription(self, user_id: str) -> Subscription | None:
        raise ConfigurationError("Server configuration error")


def _build_provider_router(settings: Settings, client: httpx.AsyncClient) -> ProviderRouter:
    provider_router = ProviderRouter(
        GenerationTiers(
            default_max_tokens=settings.default_max_tokens,
            default_temperature=settings.default_temperature,
            deep_max_tokens=settings.deep_max_tokens,
            deep_temperature=settings.deep_temperature,
            deep_models=settings.deep_model_map,
        )
    )
    provider_router.register(
        GeminiHandler(
            client=client,
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout_s=settings.vendor_timeout_s,
        )
    )
    provider_router.register(
        OpenAIHandler(
            client=client,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout_s=settings.vendor_timeout_s,
        )
    )
    provider_router.register(
        PerplexityHandler(
            client=client,
            api_key=settings.perplexity_api_key,
            base_url=settings.perplexity_base_url,
            timeout_s=settings.vendor_timeout_s,
        )
    )
    return provider_router


def create_app(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    store: PersonaStore | None = None,
    identity: IdentityProvider | None = None,
) -> FastAPI:
    """Compose the gateway.

    Collaborators are built once here and shared by every request. Tests
    pass their own ``http_client`` (usually over ``httpx.MockTransport``),
    ``store`` and ``identity`` to replace the network-facing pieces.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(title="Persona Chat Gateway", version="0.1.0", lifespan=lifespan)

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        PreflightMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_headers=settings.cors_allow_headers,
    )

    store_ready = settings.store_configured
    unconfigured = UnconfiguredStore()
    if store is None:
        store = (
            SupabasePersonaStore(
                client=client,
                base_url=settings.supabase_url or "",
                service_role_key=settings.supabase_service_role_key or "",
                timeout_s=settings.store_timeout_s,
            )
            if store_ready
            else unconfigured
        )
    else:
        store_ready = True
    if identity is None:
        identity = (
            SupabaseIdentityClient(
                client=client,
                base_url=settings.supabase_url or "",
                anon_key=settings.supabase_anon_key or "",
                timeout_s=settings.store_timeout_s,
            )
            if store_ready and settings.supabase_url
            else unconfigured
        )

    metrics = GatewayMetrics()
    provider_router = _build_provider_router(settings, client)
    chat_pipeline = ChatPipeline(
        authenticator=RequestAuthenticator(
            identity=identity,
            expected_issuer=settings.expected_issuer,
            project_ref=settings.jwt_project_ref,
            jwt_secret=settings.jwt_secret,
            audience=settings.jwt_audience,
        ),
        store=store,
        entitlement=EntitlementChecker(store),
        assembler=PromptAssembler(store),
        router=provider_router,
        metrics=metrics if settings.metrics_enabled else None,
    )

    app.state.settings = settings
    app.state.store_ready = store_ready
    app.state.metrics = metrics
    app.state.provider_router = provider_router
    app.state.chat_pipeline = chat_pipeline

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        request_id = request_id_from_request(request)
        return error_response(exc.status_code, exc.message, request_id)

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, _: Exception) -> JSONResponse:
        request_id = request_id_from_request(request)
        return error_response(500, "Internal server error", request_id)

    app.include_router(router)
    return app


app = create_app()
