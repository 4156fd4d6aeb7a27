"""OpenAI chat completions adapter (alternate vendor)."""

from persona_gateway.providers.base import GenerationParams, VendorCall, VendorHandler
from persona_gateway.transcoders.base import Transcoder
from persona_gateway.transcoders.openai import ChatCompletionsTranscoder


class OpenAIHandler(VendorHandler):
    name = "openai"
    display_name = "OpenAI"

    def build_call(
        self, api_key: str, messages: list[dict[str, str]], params: GenerationParams
    ) -> VendorCall:
        return VendorCall(
            url=f"{self._base_url}/v1/chat/completions",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": params.model,
                "messages": messages,
                "stream": True,
                "max_completion_tokens": params.max_tokens,
                "temperature": params.temperature,
            },
        )

    def new_transcoder(self, model: str) -> Transcoder:
        return ChatCompletionsTranscoder(model)
