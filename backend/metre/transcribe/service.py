"""TranscriptionService: per-request orchestration.

One request walks through:

    RECEIVED -> FILE_STORED -> TRANSCRIBED -> EXTRACTED -> RESPONDED

with a single failure exit (FAILED) from any state after FILE_STORED. The
stored upload is removed (CLEANED_UP) on every path out of the pipeline.

Each outbound call runs under its own timeout, and the pipeline is
cancelled when the caller disconnects. Nothing is retried.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from fastapi import UploadFile

from metre.ai_provider import AIProvider, Catalog, TaskRecord
from metre.errors import (
    ClientDisconnectedError,
    MetreError,
    MissingAudioError,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from metre.uploads import StoredUpload, UploadStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DisconnectCheck = Callable[[], Awaitable[bool]]

DEFAULT_TRANSCRIPTION_TIMEOUT = 120.0
DEFAULT_ANALYSIS_TIMEOUT = 180.0
DISCONNECT_POLL_SECONDS = 0.5


class RequestState(str, Enum):
    """Lifecycle of a single transcription request."""
    RECEIVED = "received"
    FILE_STORED = "file_stored"
    TRANSCRIBED = "transcribed"
    EXTRACTED = "extracted"
    RESPONDED = "responded"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as ``"<seconds>s"`` with two decimals."""
    return f"{seconds:.2f}s"


@dataclass
class ProcessingTime:
    transcription: float
    analysis: float
    total: float

    def to_dict(self) -> dict:
        return {
            "transcription": format_duration(self.transcription),
            "analysis": format_duration(self.analysis),
            "total": format_duration(self.total),
        }


@dataclass
class TranscriptionResult:
    """Combined outcome of one successful request."""
    transcription: str
    tasks: List[TaskRecord]
    processing_time: ProcessingTime
    states: List[RequestState] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "transcription": self.transcription,
            "processingTime": self.processing_time.to_dict(),
            "tasks": [task.to_dict() for task in self.tasks],
        }


async def run_until_disconnected(
    awaitable: Awaitable[T],
    is_disconnected: Optional[DisconnectCheck],
    poll_interval: float = DISCONNECT_POLL_SECONDS,
) -> T:
    """Await ``awaitable`` and cancel it if the caller disconnects.

    Raises:
        ClientDisconnectedError: If ``is_disconnected`` reported True before
            the work finished. The work has been cancelled by then.
    """
    if is_disconnected is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await is_disconnected():
                task.cancel()
                await asyncio.wait({task})
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            task.cancel()


class TranscriptionService:
    """Stores the upload, runs both upstream steps and cleans up.

    Args:
        provider: Speech-to-text and analysis backend.
        uploads: Where uploads are stored for the duration of a request.
        transcription_timeout: Seconds allowed for the speech-to-text call.
        analysis_timeout: Seconds allowed for the analysis call.
    """

    def __init__(
        self,
        provider: AIProvider,
        uploads: UploadStore,
        transcription_timeout: float = DEFAULT_TRANSCRIPTION_TIMEOUT,
        analysis_timeout: float = DEFAULT_ANALYSIS_TIMEOUT,
    ) -> None:
        self._provider = provider
        self._uploads = uploads
        self._transcription_timeout = transcription_timeout
        self._analysis_timeout = analysis_timeout

    @property
    def uploads(self) -> UploadStore:
        return self._uploads

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def handle_upload(
        self,
        upload: Optional[UploadFile],
        catalog: Catalog,
        is_disconnected: Optional[DisconnectCheck] = None,
        started_at: Optional[float] = None,
    ) -> TranscriptionResult:
        """Run the full pipeline for one uploaded audio file.

        Args:
            upload: The multipart file, or None when the field was absent.
            catalog: Parsed task catalog.
            is_disconnected: Coroutine reporting whether the caller left.
            started_at: ``time.perf_counter()`` value when the request
                arrived; defaults to now.

        Raises:
            MissingAudioError: No file was sent. No upstream call is made.
            UpstreamFailureError: A step failed or timed out.
            ClientDisconnectedError: The caller went away mid-pipeline.
        """
        started_at = time.perf_counter() if started_at is None else started_at
        states = [RequestState.RECEIVED]

        if upload is None:
            logger.info("No audio file provided")
            raise MissingAudioError()

        stored = await self._uploads.save(upload)
        states.append(RequestState.FILE_STORED)
        try:
            result = await run_until_disconnected(
                self._process(stored, catalog, started_at, states),
                is_disconnected,
            )
        except ClientDisconnectedError:
            states.append(RequestState.FAILED)
            logger.warning("Client disconnected, aborted processing of %s", stored.stored_filename)
            raise
        except MetreError:
            states.append(RequestState.FAILED)
            raise
        finally:
            self._uploads.remove(stored)
            states.append(RequestState.CLEANED_UP)
            logger.debug("Request states: %s", " -> ".join(s.value for s in states))

        result.processing_time.total = time.perf_counter() - started_at
        states.append(RequestState.RESPONDED)
        result.states = states
        logger.info("Total processing time: %s", format_duration(result.processing_time.total))
        return result

    # -----------------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------------

    async def _process(
        self,
        stored: StoredUpload,
        catalog: Catalog,
        started_at: float,
        states: List[RequestState],
    ) -> TranscriptionResult:
        logger.info("Starting transcription of %s", stored.stored_filename)
        transcribe_start = time.perf_counter()
        transcript = await self._run_step(
            "transcription",
            self._provider.transcribe(stored.path),
            self._transcription_timeout,
        )
        transcribe_time = time.perf_counter() - transcribe_start
        states.append(RequestState.TRANSCRIBED)
        logger.info("Transcription completed in %s", format_duration(transcribe_time))
        logger.info("Transcription preview: %s...", transcript[:100])

        logger.info("Starting analysis (catalog entries: %d)", len(catalog))
        analysis_start = time.perf_counter()
        tasks = await self._run_step(
            "analysis",
            self._provider.extract_tasks(transcript, catalog),
            self._analysis_timeout,
        )
        analysis_time = time.perf_counter() - analysis_start
        states.append(RequestState.EXTRACTED)
        logger.info("Analysis completed in %s", format_duration(analysis_time))
        logger.info("Extracted %d tasks", len(tasks))

        return TranscriptionResult(
            transcription=transcript,
            tasks=tasks,
            processing_time=ProcessingTime(
                transcription=transcribe_time,
                analysis=analysis_time,
                total=time.perf_counter() - started_at,
            ),
        )

    async def _run_step(self, step: str, awaitable: Awaitable[T], timeout: float) -> T:
        """Await one upstream call, mapping failures onto the error taxonomy."""
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("%s step timed out after %ss", step, timeout)
            raise UpstreamTimeoutError(step, timeout)
        except MetreError:
            raise
        except Exception as e:
            logger.error("Provider error during %s: %s", step, e)
            raise UpstreamFailureError(str(e), step=step) from e
