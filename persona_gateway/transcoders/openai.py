"""Alternate-vendor transcoder for chat-completions ``data:`` records."""

from persona_gateway.core.events import ContentEvent, DoneEvent, ErrorEvent, NormalizedEvent
from persona_gateway.transcoders.base import Transcoder
from persona_gateway.transcoders.chunks import StreamTerminator, parse_completion, sse_data


class ChatCompletionsTranscoder(Transcoder):
    provider = "openai"

    def _consume(self, line: str) -> list[NormalizedEvent]:
        data = sse_data(line)
        if not data:
            return []
        chunk = parse_completion(data)
        if chunk is None:
            self.skipped_lines += 1
            return []
        if isinstance(chunk, StreamTerminator):
            return [DoneEvent(model=self.model, provider=self.provider)]
        if chunk.error is not None:
            return [ErrorEvent(message=chunk.error, code="vendor_error")]
        if not chunk.text:
            return []
        return [ContentEvent(text=chunk.text)]
