"""Default-vendor transcoder.

Gemini streams discrete ``GenerateContentResponse`` chunks and simply stops
when the answer is complete; there is no terminator record.
"""

from persona_gateway.core.events import ContentEvent, DoneEvent, ErrorEvent, NormalizedEvent
from persona_gateway.transcoders.base import Transcoder
from persona_gateway.transcoders.chunks import parse_gemini, sse_data


class GeminiTranscoder(Transcoder):
    provider = "gemini"

    def _consume(self, line: str) -> list[NormalizedEvent]:
        data = sse_data(line)
        if not data:
            return []
        chunk = parse_gemini(data)
        if chunk is None:
            self.skipped_lines += 1
            return []
        if chunk.error is not None:
            return [ErrorEvent(message=chunk.error, code="vendor_error")]
        if chunk.block_reason is not None:
            return [
                ErrorEvent(
                    message=f"Prompt blocked by provider: {chunk.block_reason}",
                    code="vendor_blocked",
                )
            ]
        if not chunk.text:
            return []
        return [ContentEvent(text=chunk.text)]

    def _on_end(self) -> NormalizedEvent:
        return DoneEvent(model=self.model, provider=self.provider)
