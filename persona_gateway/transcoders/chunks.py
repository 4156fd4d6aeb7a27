"""Vendor raw chunk variants.

Each vendor's wire record is parsed into exactly one of these shapes and
only the matching transcoder ever sees it. Parsing never raises: a line
that cannot be decoded comes back as ``None`` so the caller can skip it.
"""

import json
from dataclasses import dataclass

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class GeminiChunk:
    text: str
    error: str | None = None
    block_reason: str | None = None


@dataclass(frozen=True)
class CompletionDelta:
    text: str
    error: str | None = None


@dataclass(frozen=True)
class GroundedDelta:
    text: str
    citations: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class StreamTerminator:
    pass


VendorRawChunk = GeminiChunk | CompletionDelta | GroundedDelta | StreamTerminator


def sse_data(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for any other line."""
    if not line.startswith("data:"):
        return None
    return line.removeprefix("data:").strip()


def _load_object(data: str) -> dict[str, object] | None:
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _error_message(payload: dict[str, object]) -> str | None:
    error = payload.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
        return json.dumps(error, ensure_ascii=False)
    return str(error)


def parse_gemini(data: str) -> GeminiChunk | None:
    payload = _load_object(data)
    if payload is None:
        return None

    error = _error_message(payload)
    if error is not None:
        return GeminiChunk(text="", error=error)

    feedback = payload.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        return GeminiChunk(text="", block_reason=str(feedback["blockReason"]))

    parts_text: list[str] = []
    candidates = payload.get("candidates")
    if isinstance(candidates, list) and candidates:
        first = candidates[0]
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if isinstance(parts, list):
            for part in parts:
                if not isinstance(part, dict) or part.get("thought"):
                    continue
                text = part.get("text")
                if isinstance(text, str):
                    parts_text.append(text)
    return GeminiChunk(text="".join(parts_text))


def _delta_text(payload: dict[str, object]) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


def parse_completion(data: str) -> CompletionDelta | StreamTerminator | None:
    if data == DONE_SENTINEL:
        return StreamTerminator()
    payload = _load_object(data)
    if payload is None:
        return None
    return CompletionDelta(text=_delta_text(payload), error=_error_message(payload))


def parse_grounded(data: str) -> GroundedDelta | StreamTerminator | None:
    if data == DONE_SENTINEL:
        return StreamTerminator()
    payload = _load_object(data)
    if payload is None:
        return None
    raw_citations = payload.get("citations")
    citations: tuple[str, ...] = ()
    if isinstance(raw_citations, list):
        citations = tuple(str(item) for item in raw_citations if item)
    return GroundedDelta(
        text=_delta_text(payload),
        citations=citations,
        error=_error_message(payload),
    )
