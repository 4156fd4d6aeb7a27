import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from persona_gateway.core.errors import ConfigurationError, UpstreamError
from persona_gateway.transcoders.base import Transcoder

logger = logging.getLogger("pgw.providers")

ERROR_BODY_LIMIT = 2000


@dataclass(frozen=True)
class GenerationParams:
    model: str
    max_tokens: int
    temperature: float
    deep: bool = False


@dataclass(frozen=True)
class VendorCall:
    """Outbound request shape for one vendor call."""

    url: str
    headers: dict[str, str]
    body: dict[str, object]


class VendorHandler(ABC):
    """One supported vendor: its call shape and its transcoder."""

    name: str = ""
    display_name: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str,
        timeout_s: float = 60.0,
    ):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @abstractmethod
    def build_call(
        self, api_key: str, messages: list[dict[str, str]], params: GenerationParams
    ) -> VendorCall:
        """Return the vendor request for an assembled conversation."""

    @abstractmethod
    def new_transcoder(self, model: str) -> Transcoder:
        """Return a fresh transcoder for one response stream."""

    async def open_stream(
        self, messages: list[dict[str, str]], params: GenerationParams
    ) -> httpx.Response:
        """Issue the vendor call and return the response with its body unread.

        Fails before any byte of the body is consumed, so every error raised
        here is still a pre-stream error. The caller owns the returned
        response and must close it.
        """
        if not self._api_key:
            raise ConfigurationError(f"{self.display_name} API key not configured")

        call = self.build_call(self._api_key, messages, params)
        request = self._client.build_request(
            "POST", call.url, headers=call.headers, json=call.body, timeout=self._timeout
        )
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise UpstreamError(
                self.name, 504, f"{self.display_name} request timed out: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                self.name, 502, f"Cannot connect to {self.display_name}: {exc}"
            ) from exc

        if resp.status_code >= 400:
            try:
                raw = await resp.aread()
            finally:
                await resp.aclose()
            detail = raw.decode("utf-8", errors="replace")[:ERROR_BODY_LIMIT]
            logger.warning(
                "vendor_call_rejected",
                extra={"provider": self.name, "vendor_status": resp.status_code},
            )
            raise UpstreamError(
                self.name, resp.status_code, f"{self.display_name} error: {detail}"
            )
        return resp


def split_system(messages: list[dict[str, str]]) -> tuple[str, list[dict[str, str]]]:
    system_parts: list[str] = []
    conversation: list[dict[str, str]] = []
    for message in messages:
        if message["role"] == "system":
            system_parts.append(message["content"])
        else:
            conversation.append(message)
    return "\n\n".join(system_parts), conversation
