from abc import ABC, abstractmethod

from persona_gateway.core.events import ErrorEvent, NormalizedEvent, is_terminal

UNEXPECTED_END_MESSAGE = "Upstream stream ended before completion"


class Transcoder(ABC):
    """Converts one vendor's line stream into normalized events.

    ``feed`` is called once per raw line in arrival order and returns the
    events that line produces. Once a terminal event has been returned the
    transcoder is closed and every further call is a no-op, so a stream can
    never carry more than one ``done`` or ``error``.
    """

    provider: str = ""

    def __init__(self, model: str):
        self.model = model
        self.closed = False
        self.skipped_lines = 0

    def feed(self, line: str) -> list[NormalizedEvent]:
        if self.closed:
            return []
        events = self._consume(line)
        for index, event in enumerate(events):
            if is_terminal(event):
                self.closed = True
                return events[: index + 1]
        return events

    def finish(self) -> NormalizedEvent | None:
        """Called when the vendor stream ends; returns the closing event, if any."""
        if self.closed:
            return None
        self.closed = True
        return self._on_end()

    def fail(self, message: str, code: str = "stream_error") -> ErrorEvent | None:
        if self.closed:
            return None
        self.closed = True
        return ErrorEvent(message=message, code=code)

    @abstractmethod
    def _consume(self, line: str) -> list[NormalizedEvent]:
        raise NotImplementedError

    def _on_end(self) -> NormalizedEvent:
        return ErrorEvent(message=UNEXPECTED_END_MESSAGE, code="stream_truncated")
