"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from emoji_fusion.core.config import get_settings
from emoji_fusion.core.logging import setup_logging

# Setup logging
logger = setup_logging("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize services at startup, clean up at shutdown."""
    settings = get_settings()
    try:
        from emoji_fusion.services.fusion import FusionService
        from emoji_fusion.services.fusion_client import FusionClient
        from emoji_fusion.services.usage import UsageGate, build_usage_store

        fusion_client = FusionClient(
            project_id=settings.gcp_project_id,
            location=settings.vertex_ai_location,
            model=settings.fusion_model,
            timeout_ms=settings.request_timeout_ms,
        )
        usage_gate = UsageGate(
            store=build_usage_store(settings.usage_store, settings.usage_collection),
            daily_limit=settings.daily_fusion_limit,
        )
        app.state.fusion_service = FusionService(
            fusion_client=fusion_client,
            usage_gate=usage_gate,
            max_image_bytes=settings.max_image_bytes,
        )
        logger.info("Services initialized successfully (usage_store=%s)", settings.usage_store)
    except Exception as exc:
        logger.error(
            "Service initialization failed, running in degraded mode",
            exc_info=True,
            extra={"component": "main", "error_type": type(exc).__name__},
        )
        # Continue without services; endpoints return 503 until fixed

    yield


# Create FastAPI app
app = FastAPI(
    title="Emoji Fusion",
    description="Fuse two emojis into a new one with Gemini image generation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[f"http://localhost:{settings.frontend_port}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
from emoji_fusion.api.fusion import router as fusion_router  # noqa: E402

app.include_router(fusion_router)


@app.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Always returns HTTP 200; check `services.fusion` for actual status.
    """
    svc = getattr(request.app.state, "fusion_service", None)

    logger.info("Health check requested")
    return {
        "status": "ok",
        "version": app.version,
        "services": {
            "fusion": "ok" if svc is not None else "unavailable",
        },
    }
