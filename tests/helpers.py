import json
import time
from collections.abc import Callable

import httpx
import jwt

from persona_gateway.store.base import Persona, Subscription

ISSUER = "https://abcd1234.supabase.co/auth/v1"
PROJECT_REF = "abcd1234"
SIGNING_SECRET = "test-signing-secret-0123456789abcdef"

GEMINI_HOST = "generativelanguage.googleapis.com"
OPENAI_HOST = "api.openai.com"
PERPLEXITY_HOST = "api.perplexity.ai"


def make_token(sub: str = "user-1", issuer: str = ISSUER, **claims: object) -> str:
    payload: dict[str, object] = {
        "iss": issuer,
        "sub": sub,
        "ref": PROJECT_REF,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
    }
    payload.update(claims)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, SIGNING_SECRET, algorithm="HS256")


def sse_body(*records: object) -> bytes:
    lines = []
    for record in records:
        data = record if isinstance(record, str) else json.dumps(record)
        lines.append(f"data: {data}\r\n\r\n")
    return "".join(lines).encode()


def gemini_chunk(text: str) -> dict[str, object]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def completion_chunk(text: str, **extra: object) -> dict[str, object]:
    return {"choices": [{"index": 0, "delta": {"content": text}}], **extra}


def parse_frames(response: httpx.Response) -> list[dict[str, object]]:
    return [
        json.loads(line.removeprefix("data: "))
        for line in response.iter_lines()
        if line.startswith("data: ")
    ]


class FakeIdentity:
    def __init__(self) -> None:
        self.user_id: str | None = "user-1"
        self.calls: list[str] = []

    async def get_user_id(self, token: str) -> str | None:
        self.calls.append(token)
        return self.user_id


class FakePersonaStore:
    def __init__(self) -> None:
        self.personas: dict[str, Persona] = {}
        self.prompts: dict[str, str] = {}
        self.skills: dict[tuple[str, str], str] = {}
        self.ownership: set[tuple[str, str]] = set()
        self.subscriptions: dict[str, Subscription] = {}
        self.prompt_reads: list[str] = []

    def add_persona(self, persona: Persona, prompt: str | None = "Be kind.") -> Persona:
        self.personas[persona.id] = persona
        if prompt is not None:
            self.prompts[persona.id] = prompt
        return persona

    async def get_persona(self, persona_id: str) -> Persona | None:
        return self.personas.get(persona_id)

    async def get_hidden_prompt(self, persona_id: str) -> str | None:
        self.prompt_reads.append(persona_id)
        return self.prompts.get(persona_id)

    async def get_skill_prompt(self, persona_id: str, skill_id: str) -> str | None:
        return self.skills.get((persona_id, skill_id))

    async def has_ownership(self, user_id: str, persona_id: str) -> bool:
        return (user_id, persona_id) in self.ownership

    async def get_subscription(self, user_id: str) -> Subscription | None:
        return self.subscriptions.get(user_id)


class VendorStub:
    """MockTransport handler that records every outbound call."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, host: str, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[host] = respond

    def reply(self, host: str, status_code: int = 200, content: bytes = b"") -> None:
        self.route(host, lambda _: httpx.Response(status_code, content=content))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        respond = self._routes.get(request.url.host)
        if respond is None:
            return httpx.Response(404, text="no route")
        return respond(request)

    def body(self, index: int = -1) -> dict[str, object]:
        return json.loads(self.requests[index].content)


class DroppingStream(httpx.AsyncByteStream):
    """Yields the given chunks, then fails like a reset connection."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self._chunks = chunks
        self._error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def aclose(self) -> None:
        self.closed = True
