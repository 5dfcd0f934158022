"""OpenAI API provider implementation.

This module provides an AIProvider implementation backed by OpenAI's
audio transcription and chat completion endpoints, using the official
async SDK.

Usage:
    provider = OpenAIProvider(api_key="sk-...")
    transcript = await provider.transcribe(Path("uploads/audio-1.wav"))
    tasks = await provider.extract_tasks(transcript, catalog)
"""
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from jsonschema import ValidationError as JsonSchemaValidationError
from jsonschema import validate

from metre.errors import MalformedResponseError

from .base import AIProvider, TaskRecord
from .catalog import Catalog
from .prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    TASKS_SCHEMA,
    build_user_message,
    get_response_format,
)

logger = logging.getLogger(__name__)

# Most deterministic sampling the completion endpoint accepts.
DETERMINISTIC_SAMPLING = {
    "temperature": 0,
    "top_p": 1,
    "presence_penalty": 0,
    "frequency_penalty": 0,
}


class OpenAIProvider(AIProvider):
    """AIProvider implementation using OpenAI's API.

    Attributes:
        api_key: OpenAI API key for authentication.
        transcription_model: Speech-to-text model (default: whisper-1).
        analysis_model: Chat completion model used for task extraction.
    """

    DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
    DEFAULT_ANALYSIS_MODEL = "gpt-5.2"

    def __init__(
        self,
        api_key: Optional[str],
        transcription_model: Optional[str] = None,
        analysis_model: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key for authentication.
            transcription_model: Speech-to-text model name.
            analysis_model: Chat completion model name.
            client: Pre-built ``AsyncOpenAI``-compatible client. Created
                lazily from ``api_key`` when omitted.
        """
        self.api_key = api_key
        self.transcription_model = transcription_model or self.DEFAULT_TRANSCRIPTION_MODEL
        self.analysis_model = analysis_model or self.DEFAULT_ANALYSIS_MODEL
        self._client = client

    def _get_client(self) -> Any:
        """Get or create the async OpenAI client.

        The SDK's built-in retries are disabled; a failed call fails the
        request.
        """
        if self._client is None:
            import openai
            self._client = openai.AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    async def transcribe(self, audio_path: Path) -> str:
        """Transcribe an audio file with the speech-to-text endpoint.

        Args:
            audio_path: Location of the stored upload.

        Returns:
            str: Plain-text transcript.

        Raises:
            Exception: If the API call fails.
        """
        client = self._get_client()

        with Path(audio_path).open("rb") as audio_file:
            transcription = await client.audio.transcriptions.create(
                file=audio_file,
                model=self.transcription_model,
                response_format="text",
            )

        # response_format="text" yields a str; older SDKs wrap it.
        if isinstance(transcription, str):
            return transcription
        return getattr(transcription, "text", str(transcription))

    async def extract_tasks(self, transcript: str, catalog: Catalog) -> List[TaskRecord]:
        """Extract construction tasks from a transcript.

        Args:
            transcript: Plain-text transcript of the site visit.
            catalog: Caller-supplied catalog of task identifiers.

        Returns:
            List[TaskRecord]: Normalised task records.

        Raises:
            MalformedResponseError: If the response is not valid JSON or
                does not match the tasks schema.
            Exception: If the API call fails.
        """
        client = self._get_client()

        response = await client.chat.completions.create(
            model=self.analysis_model,
            messages=[
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": build_user_message(transcript, catalog)},
            ],
            response_format=get_response_format(),
            **DETERMINISTIC_SAMPLING,
        )

        content = response.choices[0].message.content
        return parse_tasks_response(content, catalog)


def parse_tasks_response(content: Optional[str], catalog: Catalog) -> List[TaskRecord]:
    """Decode and validate the completion text into task records.

    Raises:
        MalformedResponseError: If ``content`` is empty, not JSON, or does
            not match TASKS_SCHEMA.
    """
    if not content or not content.strip():
        raise MalformedResponseError("empty completion")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON response: %s", content[:500])
        raise MalformedResponseError(f"invalid JSON: {e}")

    try:
        validate(instance=data, schema=TASKS_SCHEMA)
    except JsonSchemaValidationError as e:
        logger.error("Analysis response does not match tasks schema: %s", e.message)
        raise MalformedResponseError(f"schema mismatch: {e.message}")

    return [TaskRecord.from_raw(item, catalog.ids) for item in data["tasks"]]
