"""End-to-end chat request lifecycle.

    Init -> Authenticated -> Authorized -> PromptAssembled
         -> VendorCallIssued -> Streaming -> Closed

Every stage before ``Streaming`` either hands a value to the next stage or
raises a ``GatewayError``; nothing is written to the client until the vendor
has accepted the call. ``open_stream`` returns only once that has happened,
so whatever it raises is still a pre-stream error. From then on failures are
emitted as one inline error event and the stream ends.
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from time import perf_counter

import anyio
import httpx

from persona_gateway.auth.authenticator import RequestAuthenticator
from persona_gateway.core.errors import GatewayError, NotFoundError
from persona_gateway.core.events import ContentEvent, DoneEvent, NormalizedEvent, sse_frame
from persona_gateway.entitlement.checker import EntitlementChecker
from persona_gateway.metrics import GatewayMetrics
from persona_gateway.models.chat import parse_chat_request
from persona_gateway.prompts.assembler import PromptAssembler
from persona_gateway.providers.registry import ProviderRouter
from persona_gateway.store.base import Persona, PersonaStore
from persona_gateway.transcoders.base import Transcoder

logger = logging.getLogger("pgw.chat")

DisconnectProbe = Callable[[], Awaitable[bool]]


class Stage(StrEnum):
    INIT = "init"
    AUTHENTICATED = "authenticated"
    AUTHORIZED = "authorized"
    PROMPT_ASSEMBLED = "prompt_assembled"
    VENDOR_CALL_ISSUED = "vendor_call_issued"
    STREAMING = "streaming"
    CLOSED = "closed"


@dataclass
class RequestContext:
    request_id: str
    persona_id: str | None = None
    deep_mode: bool = False
    stage: Stage = Stage.INIT
    user_id: str | None = None
    provider: str | None = None
    model: str | None = None
    started: float = field(default_factory=perf_counter)

    def log_fields(self) -> dict[str, object]:
        return {
            "request_id": self.request_id,
            "user_id": self.user_id,
            "persona_id": self.persona_id,
            "provider": self.provider,
            "model": self.model,
            "deep_mode": self.deep_mode,
        }

    def elapsed_ms(self) -> int:
        return int((perf_counter() - self.started) * 1000)


class ChatStream:
    """Async iterator of SSE frames that owns the open vendor response.

    ``aclose`` releases the vendor response even when no frame was ever
    pulled; an async generator that never started skips its ``finally``.
    """

    def __init__(
        self,
        frames: AsyncGenerator[str, None],
        response: httpx.Response,
        on_unstarted_close: Callable[[], None],
    ):
        self._frames = frames
        self._response = response
        self._on_unstarted_close = on_unstarted_close
        self._started = False
        self._closed = False

    def __aiter__(self) -> "ChatStream":
        return self

    async def __anext__(self) -> str:
        self._started = True
        return await self._frames.__anext__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._frames.aclose()
        finally:
            with anyio.CancelScope(shield=True):
                await self._response.aclose()
            if not self._started:
                self._on_unstarted_close()


class ChatPipeline:
    """Holds the process-lifetime collaborators; keeps no per-request state."""

    def __init__(
        self,
        authenticator: RequestAuthenticator,
        store: PersonaStore,
        entitlement: EntitlementChecker,
        assembler: PromptAssembler,
        router: ProviderRouter,
        metrics: GatewayMetrics | None = None,
    ):
        self._authenticator = authenticator
        self._store = store
        self._entitlement = entitlement
        self._assembler = assembler
        self._router = router
        self._metrics = metrics

    async def open_stream(
        self,
        authorization: str | None,
        body: bytes,
        request_id: str,
        is_disconnected: DisconnectProbe | None = None,
    ) -> ChatStream:
        ctx = RequestContext(request_id=request_id)
        try:
            principal = await self._authenticator.authenticate(authorization)
            ctx.user_id = principal.user_id
            ctx.stage = Stage.AUTHENTICATED

            payload = parse_chat_request(body)
            ctx.persona_id = payload.persona_id
            ctx.deep_mode = payload.deep_thinking

            persona = await self._load_persona(payload.persona_id)
            await self._entitlement.ensure_allowed(principal.user_id, persona)
            ctx.stage = Stage.AUTHORIZED

            messages = await self._assembler.assemble(
                persona, payload.as_message_dicts(), skill_id=payload.skill_id
            )
            ctx.stage = Stage.PROMPT_ASSEMBLED

            route = self._router.route(persona, deep=payload.deep_thinking)
            ctx.provider = route.handler.name
            ctx.model = route.params.model

            response = await route.handler.open_stream(messages, route.params)
            ctx.stage = Stage.VENDOR_CALL_ISSUED
        except GatewayError as exc:
            self._reject(ctx, exc)
            raise
        except Exception as exc:
            logger.exception("chat_pipeline_crashed", extra=ctx.log_fields())
            error = GatewayError("Internal server error")
            self._reject(ctx, error)
            raise error from exc

        transcoder = route.handler.new_transcoder(route.params.model)
        return ChatStream(
            self._emit(ctx, response, transcoder, is_disconnected),
            response,
            on_unstarted_close=lambda: self._record_close(ctx, "cancelled", 0, transcoder),
        )

    def _reject(self, ctx: RequestContext, exc: GatewayError) -> None:
        logger.info(
            "chat_rejected",
            extra={
                **ctx.log_fields(),
                "status_code": exc.status_code,
                "error_code": exc.code,
                "latency_ms": ctx.elapsed_ms(),
            },
        )
        if self._metrics is not None:
            self._metrics.record_rejection(exc.status_code, exc.code)

    async def _load_persona(self, persona_id: str) -> Persona:
        persona = await self._store.get_persona(persona_id)
        if persona is None or not persona.active:
            raise NotFoundError("Persona not found", code="persona_not_found")
        return persona

    async def _emit(
        self,
        ctx: RequestContext,
        response: httpx.Response,
        transcoder: Transcoder,
        is_disconnected: DisconnectProbe | None,
    ) -> AsyncGenerator[str, None]:
        ctx.stage = Stage.STREAMING
        content_events = 0
        terminal: NormalizedEvent | None = None
        cancelled = False

        try:
            closing: NormalizedEvent | None
            try:
                async for line in response.aiter_lines():
                    if is_disconnected is not None and await is_disconnected():
                        cancelled = True
                        break
                    for event in transcoder.feed(line):
                        if isinstance(event, ContentEvent):
                            content_events += 1
                        else:
                            terminal = event
                        yield sse_frame(event)
                    if transcoder.closed:
                        break
                closing = None if cancelled else transcoder.finish()
            except httpx.HTTPError as exc:
                logger.warning(
                    "vendor_stream_failed",
                    extra={**ctx.log_fields(), "error_code": type(exc).__name__},
                )
                closing = transcoder.fail(
                    f"Connection to {ctx.provider} lost mid-stream", code="upstream_dropped"
                )
            except Exception:
                logger.exception("chat_stream_crashed", extra=ctx.log_fields())
                closing = transcoder.fail("Internal server error", code="internal_error")

            if closing is not None:
                terminal = closing
                yield sse_frame(closing)
        except BaseException:
            # Client went away (task cancelled or generator closed).
            cancelled = True
            raise
        finally:
            with anyio.CancelScope(shield=True):
                await response.aclose()
            self._record_close(ctx, _outcome(terminal, cancelled), content_events, transcoder)

    def _record_close(
        self,
        ctx: RequestContext,
        outcome: str,
        content_events: int,
        transcoder: Transcoder,
    ) -> None:
        ctx.stage = Stage.CLOSED
        logger.info(
            "chat_stream_closed",
            extra={
                **ctx.log_fields(),
                "status_code": 200,
                "error_code": None if outcome == "done" else outcome,
                "event_count": content_events,
                "latency_ms": ctx.elapsed_ms(),
            },
        )
        if transcoder.skipped_lines:
            logger.info(
                "vendor_lines_skipped",
                extra={**ctx.log_fields(), "event_count": transcoder.skipped_lines},
            )
        if self._metrics is not None:
            self._metrics.record_stream(
                provider=ctx.provider or "unknown",
                model=ctx.model or "unknown",
                outcome=outcome,
                latency_s=ctx.elapsed_ms() / 1000.0,
                content_events=content_events,
            )


def _outcome(terminal: NormalizedEvent | None, cancelled: bool) -> str:
    if isinstance(terminal, DoneEvent):
        return "done"
    if terminal is not None:
        return "error"
    return "cancelled" if cancelled else "error"
