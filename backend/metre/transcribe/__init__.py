"""Voice site-visit transcription and task extraction.

POST /api/transcribe stores the uploaded recording, transcribes it, asks
the analysis model for a structured task list and returns both.
"""
from .service import (
    ProcessingTime,
    RequestState,
    TranscriptionResult,
    TranscriptionService,
    format_duration,
    run_until_disconnected,
)

__all__ = [
    "TranscriptionService",
    "TranscriptionResult",
    "ProcessingTime",
    "RequestState",
    "format_duration",
    "run_until_disconnected",
]
