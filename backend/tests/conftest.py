"""Shared test fixtures and configuration for backend tests."""
import asyncio
from pathlib import Path
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from metre.ai_provider import AIProvider, Catalog, TaskRecord, parse_tasks_response
from metre.config import AppSettings, OpenAISettings, UploadSettings
from metre.main import create_app


class FakeProvider(AIProvider):
    """In-memory AIProvider recording every call it receives.

    ``analysis_content`` is run through the real response parser, so tests
    exercise normalisation and schema validation exactly as production does.
    """

    def __init__(
        self,
        transcript: str = "Dans le salon, peindre les murs, trois mètres sur quatre.",
        analysis_content: Optional[str] = '{"tasks": []}',
        transcribe_error: Optional[Exception] = None,
        analysis_error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.transcript = transcript
        self.analysis_content = analysis_content
        self.transcribe_error = transcribe_error
        self.analysis_error = analysis_error
        self.delay = delay
        self.transcribe_calls: List[Path] = []
        self.seen_existing_file: List[bool] = []
        self.extract_calls: List[tuple] = []

    async def transcribe(self, audio_path: Path) -> str:
        self.transcribe_calls.append(Path(audio_path))
        self.seen_existing_file.append(Path(audio_path).exists())
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.transcribe_error:
            raise self.transcribe_error
        return self.transcript

    async def extract_tasks(self, transcript: str, catalog: Catalog) -> List[TaskRecord]:
        self.extract_calls.append((transcript, catalog))
        if self.analysis_error:
            raise self.analysis_error
        return parse_tasks_response(self.analysis_content, catalog)

    @property
    def called(self) -> bool:
        return bool(self.transcribe_calls or self.extract_calls)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def settings(upload_dir):
    return AppSettings(
        openai=OpenAISettings(
            api_key="test-key",
            transcription_timeout_seconds=5,
            analysis_timeout_seconds=5,
        ),
        uploads=UploadSettings(upload_dir=str(upload_dir)),
    )


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_client(settings):
    """Build a TestClient (lifespan running) around a given provider."""
    clients = []

    def _make(provider: AIProvider, app_settings: Optional[AppSettings] = None) -> TestClient:
        client = TestClient(create_app(app_settings or settings, provider=provider))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(make_client, fake_provider):
    """Provide a TestClient for the app wired to ``fake_provider``."""
    return make_client(fake_provider)
