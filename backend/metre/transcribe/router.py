"""FastAPI router for the transcription endpoint.

All endpoints live under /api (registered in main.py).
"""
from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile

from metre.ai_provider import parse_catalog
from metre.config import AppSettings
from metre.errors import ClientDisconnectedError, MetreError, MissingAudioError

from .service import TranscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transcribe"])

# Service and settings are created in the lifespan handler and stored in
# app.state; tests override these getters via app.dependency_overrides.


def get_transcription_service(request: Request) -> TranscriptionService:
    return request.app.state.transcription_service


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


async def _audio_upload(request: Request, field_name: str) -> Optional[UploadFile]:
    """Return the uploaded audio file, or None when the part is absent or
    was sent as a plain form value instead of a file."""
    form = await request.form()
    value = form.get(field_name)
    if isinstance(value, UploadFile):
        return value
    if value is not None:
        logger.info("Ignoring non-file '%s' form field", field_name)
    return None


@router.post("/transcribe")
async def transcribe(
    request: Request,
    tasks: Optional[str] = Form(None),
    svc: TranscriptionService = Depends(get_transcription_service),
    settings: AppSettings = Depends(get_settings),
) -> Response:
    """Transcribe an audio recording and extract the construction tasks.

    Multipart fields:
    - audio: the recording (any audio format the speech service accepts)
    - tasks: optional JSON catalog of known task IDs

    Returns:
        200 with transcription, processingTime and tasks
        400 when no audio file is sent or the catalog is invalid
        500 when an upstream step fails, 504 when one times out
    """
    started_at = time.perf_counter()

    try:
        audio = await _audio_upload(request, settings.uploads.field_name)
        if audio is None:
            raise MissingAudioError()
        catalog = parse_catalog(tasks, max_chars=settings.catalog.max_chars)
        result = await svc.handle_upload(
            audio,
            catalog,
            is_disconnected=request.is_disconnected,
            started_at=started_at,
        )
    except MissingAudioError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except ClientDisconnectedError as e:
        # Nobody is listening; the status only shows up in access logs.
        return Response(status_code=e.status_code)
    except MetreError as e:
        logger.exception("Error occurred: %s", e.message)
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": e.message},
        )
    except Exception as e:
        logger.exception("Unexpected error occurred: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return JSONResponse(content=result.to_dict())


@router.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    logger.debug("Health check passed")
    return {"status": "ok"}
