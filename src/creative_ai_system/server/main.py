"""FastAPI application factory and server entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
import uvicorn
from fastapi import Body, FastAPI, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse

from creative_ai_system import __version__
from creative_ai_system.config import Settings, get_settings
from creative_ai_system.models import CallerIdentity, GenerationResponse, Modality
from creative_ai_system.services import CreativeGenerationService, build_service
from creative_ai_system.telemetry import setup_logging

from .middleware import RequestIDMiddleware, register_exception_handlers

logger = structlog.get_logger(__name__)


def _identity(user_id: Optional[str], organization_id: Optional[str]) -> CallerIdentity:
    return CallerIdentity(user_id=user_id or None, organization_id=organization_id or None)


def create_app(
    service: Optional[CreativeGenerationService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting Creative AI System", version=__version__)
        store = app.state.service.ledger.store
        create_tables = getattr(store, "create_tables", None)
        if create_tables is not None:
            try:
                await create_tables()
                logger.info("Usage database initialized")
            except Exception as e:
                logger.warning("Usage database initialization skipped", error=str(e))

        yield

        logger.info("Shutting down Creative AI System")
        close = getattr(store, "close", None)
        if close is not None:
            await close()

    app = FastAPI(
        title=settings.app_name,
        description="Generation orchestration for marketing creatives",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.settings = settings

    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)

    prefix = settings.api_prefix.rstrip("/")

    async def generate(
        modality: Modality,
        request: Request,
        payload: Any,
        user_id: Optional[str],
        organization_id: Optional[str],
    ) -> GenerationResponse:
        # non-object bodies are rejected by the service so the failure is recorded
        body = {**payload, "modality": modality.value} if isinstance(payload, dict) else payload
        return await request.app.state.service.handle(
            body, _identity(user_id, organization_id), endpoint=f"{prefix}/{modality.value}"
        )

    @app.post(f"{prefix}/text", response_model=GenerationResponse, response_model_exclude_none=True)
    async def generate_text(
        request: Request,
        payload: Any = Body(...),
        x_user_id: Optional[str] = Header(default=None),
        x_organization_id: Optional[str] = Header(default=None),
    ):
        return await generate(Modality.TEXT, request, payload, x_user_id, x_organization_id)

    @app.post(f"{prefix}/image", response_model=GenerationResponse, response_model_exclude_none=True)
    async def generate_image(
        request: Request,
        payload: Any = Body(...),
        x_user_id: Optional[str] = Header(default=None),
        x_organization_id: Optional[str] = Header(default=None),
    ):
        return await generate(Modality.IMAGE, request, payload, x_user_id, x_organization_id)

    @app.post(f"{prefix}/video", response_model=GenerationResponse, response_model_exclude_none=True)
    async def generate_video(
        request: Request,
        payload: Any = Body(...),
        x_user_id: Optional[str] = Header(default=None),
        x_organization_id: Optional[str] = Header(default=None),
    ):
        return await generate(Modality.VIDEO, request, payload, x_user_id, x_organization_id)

    @app.post(f"{prefix}/speech", response_model=GenerationResponse, response_model_exclude_none=True)
    async def generate_speech(
        request: Request,
        payload: Any = Body(...),
        x_user_id: Optional[str] = Header(default=None),
        x_organization_id: Optional[str] = Header(default=None),
    ):
        return await generate(Modality.SPEECH, request, payload, x_user_id, x_organization_id)

    @app.post(f"{prefix}/text/stream")
    async def stream_text(
        request: Request,
        payload: Any = Body(...),
        x_user_id: Optional[str] = Header(default=None),
        x_organization_id: Optional[str] = Header(default=None),
    ):
        """Newline-delimited JSON chunks; the last one has ``is_final: true``."""
        chunks = request.app.state.service.stream_text(
            payload, _identity(x_user_id, x_organization_id), endpoint=f"{prefix}/text/stream"
        )
        # pull the first chunk so request errors still map to a JSON error response
        first = await chunks.__anext__()

        async def body() -> AsyncIterator[str]:
            try:
                yield first.model_dump_json() + "\n"
                async for chunk in chunks:
                    yield chunk.model_dump_json() + "\n"
            finally:
                await chunks.aclose()

        return StreamingResponse(body(), media_type="application/x-ndjson")

    @app.get("/health")
    async def health(request: Request):
        current = request.app.state.settings
        return JSONResponse(
            status_code=200,
            content={
                "status": "healthy",
                "version": __version__,
                "service": "creative-ai-system",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "environment": current.environment,
                "providers_configured": {
                    "google": current.has_gemini_key,
                    "fal": current.has_fal_key,
                },
            },
        )

    return app


def start_server(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False):
    """Start the server programmatically."""
    settings = get_settings()
    setup_logging()
    uvicorn.run(
        "creative_ai_system.server.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
        reload=reload,
    )
