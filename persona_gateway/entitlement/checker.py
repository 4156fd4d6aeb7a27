import logging
from collections.abc import Callable
from datetime import UTC, datetime

from persona_gateway.core.errors import ForbiddenError
from persona_gateway.store.base import Persona, PersonaStore

logger = logging.getLogger("pgw.entitlement")


class EntitlementChecker:
    def __init__(
        self,
        store: PersonaStore,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def is_allowed(self, user_id: str, persona: Persona) -> bool:
        if persona.free_tier:
            return True
        if await self._store.has_ownership(user_id, persona.id):
            return True
        subscription = await self._store.get_subscription(user_id)
        return subscription is not None and subscription.is_active(self._clock())

    async def ensure_allowed(self, user_id: str, persona: Persona) -> None:
        if await self.is_allowed(user_id, persona):
            return
        logger.info(
            "entitlement_denied",
            extra={"user_id": user_id, "persona_id": persona.id},
        )
        raise ForbiddenError("You do not have access to this persona")
