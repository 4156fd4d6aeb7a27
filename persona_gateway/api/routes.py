from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from persona_gateway.config.settings import Settings
from persona_gateway.core.errors import request_id_from_request
from persona_gateway.metrics import metrics_router
from persona_gateway.providers.registry import ProviderRouter
from persona_gateway.services.chat_pipeline import ChatPipeline

router = APIRouter()
router.include_router(metrics_router)


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
def readyz(request: Request) -> dict[str, object]:
    settings: Settings = request.app.state.settings
    provider_router: ProviderRouter = request.app.state.provider_router
    dependencies: dict[str, str] = {
        "store": "ok" if request.app.state.store_ready else "unconfigured",
    }
    for handler in provider_router.list_providers():
        dependencies[handler.name] = "ok" if handler.configured else "unconfigured"
    status = "ready" if dependencies["store"] == "ok" and any(
        value == "ok" for key, value in dependencies.items() if key != "store"
    ) else "degraded"
    return {"status": status, "env": settings.env, "dependencies": dependencies}


@router.post("/v1/chat")
async def chat(request: Request) -> StreamingResponse:
    pipeline: ChatPipeline = request.app.state.chat_pipeline
    frames = await pipeline.open_stream(
        authorization=request.headers.get("authorization"),
        body=await request.body(),
        request_id=request_id_from_request(request),
        is_disconnected=request.is_disconnected,
    )
    return StreamingResponse(
        frames,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        # Releases the vendor response when streaming stopped before the end.
        background=BackgroundTask(frames.aclose),
    )
