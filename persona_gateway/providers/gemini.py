"""Gemini adapter (default vendor)."""

from urllib.parse import quote

from persona_gateway.providers.base import (
    GenerationParams,
    VendorCall,
    VendorHandler,
    split_system,
)
from persona_gateway.transcoders.base import Transcoder
from persona_gateway.transcoders.gemini import GeminiTranscoder

GREETING_USER = "Hello"
GREETING_MODEL = "Hello! How can I help you today?"


class GeminiHandler(VendorHandler):
    name = "gemini"
    display_name = "Gemini"

    def build_call(
        self, api_key: str, messages: list[dict[str, str]], params: GenerationParams
    ) -> VendorCall:
        system_text, conversation = split_system(messages)
        contents = [
            {
                "role": "model" if message["role"] == "assistant" else "user",
                "parts": [{"text": message["content"]}],
            }
            for message in conversation
        ]
        # The history has to open with a user turn.
        if contents and contents[0]["role"] != "user":
            contents = [
                {"role": "user", "parts": [{"text": GREETING_USER}]},
                {"role": "model", "parts": [{"text": GREETING_MODEL}]},
                *contents,
            ]

        body: dict[str, object] = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": params.max_tokens,
                "temperature": params.temperature,
            },
        }
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}

        model_path = quote(params.model, safe="-._")
        return VendorCall(
            url=f"{self._base_url}/v1beta/models/{model_path}:streamGenerateContent?alt=sse",
            headers={
                "x-goog-api-key": api_key,
                "Content-Type": "application/json",
            },
            body=body,
        )

    def new_transcoder(self, model: str) -> Transcoder:
        return GeminiTranscoder(model)
