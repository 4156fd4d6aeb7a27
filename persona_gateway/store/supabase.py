"""Supabase-backed identity and persona store clients.

Identity lookups go through the GoTrue ``/auth/v1/user`` endpoint with the
public anon key plus the caller's own token. Every persona, prompt and
entitlement read goes through PostgREST with the service-role key, which
the caller never holds.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from persona_gateway.core.errors import GatewayError
from persona_gateway.store.base import Persona, Subscription

logger = logging.getLogger("pgw.store")


class StoreUnavailableError(GatewayError):
    code = "store_unavailable"


class SupabaseIdentityClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        anon_key: str,
        timeout_s: float = 10.0,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout_s

    async def get_user_id(self, token: str) -> str | None:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token}",
        }
        try:
            resp = await self._client.get(
                f"{self._base_url}/auth/v1/user", headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(
                "Identity service unavailable", code="identity_unavailable"
            ) from exc

        if resp.status_code >= 500:
            raise StoreUnavailableError(
                "Identity service unavailable", code="identity_unavailable"
            )
        if resp.status_code != 200:
            logger.info("identity_rejected_token", extra={"status_code": resp.status_code})
            return None

        payload = resp.json()
        user_id = payload.get("id") if isinstance(payload, dict) else None
        return str(user_id) if user_id else None


class SupabasePersonaStore:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        service_role_key: str,
        timeout_s: float = 10.0,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._service_role_key = service_role_key
        self._timeout = timeout_s

    async def get_persona(self, persona_id: str) -> Persona | None:
        row = await self._select_one(
            "mascots",
            select="id,name,subtitle,ai_provider,ai_model,is_free,is_active",
            filters={"id": persona_id},
        )
        if row is None:
            return None
        return Persona(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            subtitle=row.get("subtitle"),
            vendor=str(row.get("ai_provider") or ""),
            model=str(row.get("ai_model") or ""),
            free_tier=bool(row.get("is_free")),
            active=row.get("is_active") is not False,
        )

    async def get_hidden_prompt(self, persona_id: str) -> str | None:
        row = await self._select_one(
            "mascot_personality",
            select="personality",
            filters={"mascot_id": persona_id},
        )
        if row and row.get("personality"):
            return str(row["personality"])

        legacy = await self._select_one(
            "mascot_instructions",
            select="instructions",
            filters={"mascot_id": persona_id},
        )
        if legacy and legacy.get("instructions"):
            return str(legacy["instructions"])
        return None

    async def get_skill_prompt(self, persona_id: str, skill_id: str) -> str | None:
        row = await self._select_one(
            "mascot_skills",
            select="skill_prompt",
            filters={"id": skill_id, "mascot_id": persona_id},
        )
        if row and row.get("skill_prompt"):
            return str(row["skill_prompt"])
        return None

    async def has_ownership(self, user_id: str, persona_id: str) -> bool:
        row = await self._select_one(
            "user_mascots",
            select="mascot_id",
            filters={"user_id": user_id, "mascot_id": persona_id},
        )
        return row is not None

    async def get_subscription(self, user_id: str) -> Subscription | None:
        row = await self._select_one(
            "profiles",
            select="is_subscribed,subscription_expires_at",
            filters={"id": user_id},
        )
        if row is None:
            return None
        try:
            expires_at = _parse_timestamp(row.get("subscription_expires_at"))
        except ValueError:
            logger.warning("subscription_expiry_unparseable", extra={"user_id": user_id})
            return Subscription(is_subscribed=False)
        return Subscription(
            is_subscribed=row.get("is_subscribed") is True,
            expires_at=expires_at,
        )

    async def _select_one(
        self, table: str, select: str, filters: dict[str, str]
    ) -> dict[str, object] | None:
        params = {"select": select, "limit": "1"}
        for column, value in filters.items():
            params[column] = f"eq.{value}"
        headers = {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
            "Accept": "application/json",
        }

        try:
            resp = await self._client.get(
                f"{self._base_url}/rest/v1/{table}",
                params=params,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("store_request_failed", extra={"error_code": type(exc).__name__})
            raise StoreUnavailableError("Persona store unavailable") from exc

        if resp.status_code >= 400:
            logger.error(
                "store_request_rejected",
                extra={"status_code": resp.status_code, "error_code": table},
            )
            raise StoreUnavailableError("Persona store unavailable")

        rows = resp.json()
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        return None


def _parse_timestamp(raw: object) -> datetime | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValueError(f"Unsupported timestamp value: {raw!r}")
    if not raw.strip():
        return None
    parsed = datetime.fromisoformat(raw.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
