"""Perplexity adapter (search-grounded vendor)."""

from persona_gateway.providers.base import (
    GenerationParams,
    VendorCall,
    VendorHandler,
    split_system,
)
from persona_gateway.transcoders.base import Transcoder
from persona_gateway.transcoders.perplexity import GroundedSearchTranscoder


class PerplexityHandler(VendorHandler):
    name = "perplexity"
    display_name = "Perplexity"

    def build_call(
        self, api_key: str, messages: list[dict[str, str]], params: GenerationParams
    ) -> VendorCall:
        system_text, conversation = split_system(messages)
        # The first turn after the system message must come from the user.
        start = 0
        while start < len(conversation) and conversation[start]["role"] == "assistant":
            start += 1
        outbound: list[dict[str, str]] = []
        if system_text:
            outbound.append({"role": "system", "content": system_text})
        outbound.extend(conversation[start:])

        return VendorCall(
            url=f"{self._base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": params.model,
                "messages": outbound,
                "stream": True,
                "max_tokens": params.max_tokens,
                "temperature": params.temperature,
            },
        )

    def new_transcoder(self, model: str) -> Transcoder:
        return GroundedSearchTranscoder(model)
