"""Provider routing: persona vendor id -> vendor handler + generation tier."""

import logging
from dataclasses import dataclass, field

from persona_gateway.core.errors import BadRequestError
from persona_gateway.providers.base import GenerationParams, VendorHandler
from persona_gateway.store.base import Persona

logger = logging.getLogger("pgw.providers")


@dataclass(frozen=True)
class GenerationTiers:
    """Ordinary and deep generation settings.

    Deep mode swaps in a higher-cost model per vendor and uses a larger
    output cap with a lower temperature.
    """

    default_max_tokens: int = 2048
    default_temperature: float = 0.7
    deep_max_tokens: int = 4096
    deep_temperature: float = 0.5
    deep_models: dict[str, str] = field(default_factory=dict)

    def params_for(self, vendor: str, persona_model: str, deep: bool) -> GenerationParams:
        if deep:
            return GenerationParams(
                model=self.deep_models.get(vendor, persona_model),
                max_tokens=self.deep_max_tokens,
                temperature=self.deep_temperature,
                deep=True,
            )
        return GenerationParams(
            model=persona_model,
            max_tokens=self.default_max_tokens,
            temperature=self.default_temperature,
        )


@dataclass(frozen=True)
class ProviderRoute:
    handler: VendorHandler
    params: GenerationParams


class ProviderRouter:
    """Closed registry of vendor handlers keyed by vendor identifier."""

    def __init__(self, tiers: GenerationTiers | None = None) -> None:
        self._handlers: dict[str, VendorHandler] = {}
        self._tiers = tiers or GenerationTiers()

    def register(self, handler: VendorHandler) -> None:
        self._handlers[handler.name] = handler
        logger.info(
            "provider_registered",
            extra={"provider": handler.name},
        )

    def get(self, vendor: str) -> VendorHandler | None:
        return self._handlers.get(vendor.strip().lower())

    def list_providers(self) -> list[VendorHandler]:
        return sorted(self._handlers.values(), key=lambda h: h.name)

    def route(self, persona: Persona, deep: bool = False) -> ProviderRoute:
        handler = self.get(persona.vendor)
        if handler is None:
            raise BadRequestError(
                f"Unsupported AI provider: {persona.vendor}", code="unsupported_provider"
            )
        return ProviderRoute(
            handler=handler,
            params=self._tiers.params_for(handler.name, persona.model, deep),
        )
