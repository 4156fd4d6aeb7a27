"""Search-grounded transcoder.

Same record framing as chat completions, but records may also carry a
``citations`` array. Citations are collected as they arrive and released
once, on the closing ``done`` event.
"""

from persona_gateway.core.events import ContentEvent, DoneEvent, ErrorEvent, NormalizedEvent
from persona_gateway.transcoders.base import Transcoder
from persona_gateway.transcoders.chunks import StreamTerminator, parse_grounded, sse_data


class GroundedSearchTranscoder(Transcoder):
    provider = "perplexity"

    def __init__(self, model: str):
        super().__init__(model)
        self._citations: dict[str, None] = {}

    @property
    def citations(self) -> tuple[str, ...]:
        return tuple(self._citations)

    def _consume(self, line: str) -> list[NormalizedEvent]:
        data = sse_data(line)
        if not data:
            return []
        chunk = parse_grounded(data)
        if chunk is None:
            self.skipped_lines += 1
            return []
        if isinstance(chunk, StreamTerminator):
            return [DoneEvent(model=self.model, provider=self.provider, citations=self.citations)]
        if chunk.error is not None:
            return [ErrorEvent(message=chunk.error, code="vendor_error")]
        for citation in chunk.citations:
            self._citations.setdefault(citation, None)
        if not chunk.text:
            return []
        return [ContentEvent(text=chunk.text)]
