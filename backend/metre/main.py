"""Métré Backend Application.

This is the main entry point for the Métré backend service. It accepts a
voice recording of a construction site visit, transcribes it, and returns
a structured list of tasks with quantities matched against a caller-supplied
catalog.

Modules:
    - transcribe: POST /api/transcribe and GET /api/health
    - ai_provider: OpenAI speech-to-text and analysis, task normalisation
    - uploads: transient storage of uploaded recordings
    - config: YAML + environment settings
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from metre.ai_provider import AIProvider, OpenAIProvider
from metre.config import AppSettings, get_config
from metre.transcribe.router import router as transcribe_router
from metre.transcribe.service import TranscriptionService
from metre.uploads import UploadStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# httpx/httpcore log every connection the OpenAI SDK opens.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
    "openai",
    "openai._base_client",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_service(settings: AppSettings, provider: Optional[AIProvider] = None) -> TranscriptionService:
    """Wire the upload store and provider into a TranscriptionService."""
    if provider is None:
        provider = OpenAIProvider(
            api_key=settings.openai.api_key,
            transcription_model=settings.openai.transcription_model,
            analysis_model=settings.openai.analysis_model,
        )
    uploads = UploadStore(settings.uploads.upload_dir, field_name=settings.uploads.field_name)
    return TranscriptionService(
        provider,
        uploads,
        transcription_timeout=settings.openai.transcription_timeout_seconds,
        analysis_timeout=settings.openai.analysis_timeout_seconds,
    )


def _log_banner(settings: AppSettings) -> None:
    base = f"http://localhost:{settings.server.port}"
    logger.info("===================================")
    logger.info("Server running on %s", base)
    logger.info("Transcribe endpoint: POST %s/api/transcribe", base)
    logger.info("Health check: GET %s/api/health", base)
    logger.info("===================================")


def create_app(
    settings: Optional[AppSettings] = None,
    provider: Optional[AIProvider] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to use; loaded from YAML/environment when omitted.
        provider: AIProvider to use; an OpenAIProvider is built from the
            settings when omitted.
    """
    settings = settings or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        configured_level = getattr(logging, settings.logging.level.upper(), None)
        if configured_level is not None:
            logging.getLogger().setLevel(configured_level)
            logger.info("Root logger level set to %s", settings.logging.level.upper())

        app.state.transcription_service = build_service(settings, provider)
        _log_banner(settings)

        yield  # Application runs here

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Métré API",
        description="Voice site-visit transcription and construction task extraction",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        logger.info("%s %s", request.method, request.url.path)
        response = await call_next(request)
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response

    app.include_router(transcribe_router)
    return app


app = create_app()
