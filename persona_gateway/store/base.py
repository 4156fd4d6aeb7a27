from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol


@dataclass(frozen=True)
class Persona:
    """Read-only persona record as stored by the admin surface."""

    id: str
    name: str
    vendor: str
    model: str
    free_tier: bool
    subtitle: str | None = None
    active: bool = True


@dataclass(frozen=True)
class Subscription:
    is_subscribed: bool
    expires_at: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        if not self.is_subscribed:
            return False
        if self.expires_at is None:
            return True
        current = now or datetime.now(tz=UTC)
        return self.expires_at > current


class IdentityProvider(Protocol):
    async def get_user_id(self, token: str) -> str | None:
        """Return the principal id for a valid access token, or None."""


class PersonaStore(Protocol):
    async def get_persona(self, persona_id: str) -> Persona | None:
        """Return the persona record, or None when it does not exist."""

    async def get_hidden_prompt(self, persona_id: str) -> str | None:
        """Return the persona's hidden system instruction."""

    async def get_skill_prompt(self, persona_id: str, skill_id: str) -> str | None:
        """Return the prompt of a skill that belongs to the persona."""

    async def has_ownership(self, user_id: str, persona_id: str) -> bool:
        """Return True when the user has unlocked the persona."""

    async def get_subscription(self, user_id: str) -> Subscription | None:
        """Return the user's subscription flags."""
