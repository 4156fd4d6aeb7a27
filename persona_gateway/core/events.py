"""Normalized stream events.

The client only ever observes three event shapes, each framed as one
server-sent ``data:`` line:

* ``{"content": "..."}``: an incremental piece of assistant text
* ``{"done": true, "model": "...", "provider": "...", "citations": [...]}``
* ``{"error": "..."}``

A stream carries zero or more content events followed by exactly one
``done`` or ``error`` event.
"""

import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ContentEvent:
    text: str

    def as_dict(self) -> dict[str, object]:
        return {"content": self.text}


@dataclass(frozen=True)
class DoneEvent:
    model: str
    provider: str | None = None
    citations: tuple[str, ...] | None = None

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"done": True, "model": self.model}
        if self.provider:
            payload["provider"] = self.provider
        if self.citations is not None:
            payload["citations"] = list(self.citations)
        return payload


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    code: str = field(default="stream_error", compare=False)

    def as_dict(self) -> dict[str, object]:
        return {"error": self.message}


NormalizedEvent = ContentEvent | DoneEvent | ErrorEvent


def is_terminal(event: NormalizedEvent) -> bool:
    return isinstance(event, DoneEvent | ErrorEvent)


def sse_frame(event: NormalizedEvent) -> str:
    return f"data: {json.dumps(event.as_dict(), ensure_ascii=False)}\n\n"
