"""Tests for POST /api/transcribe and GET /api/health."""
import json

import pytest
from jsonschema import validate

from conftest import FakeProvider

WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 32

CATALOG = [{"id": "PEINT-STD", "name": "Peinture standard"}]

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "success": {"const": True},
        "transcription": {"type": "string"},
        "processingTime": {
            "type": "object",
            "properties": {
                "transcription": {"type": "string", "pattern": r"^\d+\.\d{2}s$"},
                "analysis": {"type": "string", "pattern": r"^\d+\.\d{2}s$"},
                "total": {"type": "string", "pattern": r"^\d+\.\d{2}s$"},
            },
            "required": ["transcription", "analysis", "total"],
        },
        "tasks": {"type": "array"},
    },
    "required": ["success", "transcription", "processingTime", "tasks"],
}


def _post(client, catalog=CATALOG, filename="visite.wav", content=WAV_BYTES):
    files = {"audio": (filename, content, "audio/wav")}
    data = {"tasks": json.dumps(catalog)} if catalog is not None else {}
    return client.post("/api/transcribe", files=files, data=data)


def _seconds(value: str) -> float:
    return float(value.rstrip("s"))


class TestHealthEndpoint:
    def test_health_ok(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_ok_after_failed_request(self, make_client):
        client = make_client(FakeProvider(transcribe_error=RuntimeError("quota exceeded")))
        assert _post(client).status_code == 500
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestMissingAudio:
    def test_missing_audio_returns_400(self, api_client, fake_provider):
        response = api_client.post("/api/transcribe", data={"tasks": json.dumps(CATALOG)})
        assert response.status_code == 400
        assert response.json() == {"error": "No audio file provided"}
        assert not fake_provider.called

    def test_missing_audio_with_other_file_field(self, api_client, fake_provider):
        files = {"recording": ("visite.wav", WAV_BYTES, "audio/wav")}
        response = api_client.post("/api/transcribe", files=files)
        assert response.status_code == 400
        assert response.json()["error"] == "No audio file provided"
        assert not fake_provider.called

    def test_missing_audio_wins_over_invalid_catalog(self, api_client, fake_provider):
        response = api_client.post("/api/transcribe", data={"tasks": "{not json"})
        assert response.status_code == 400
        assert response.json() == {"error": "No audio file provided"}
        assert not fake_provider.called

    def test_audio_sent_as_text_field_returns_400(self, api_client, fake_provider):
        response = api_client.post("/api/transcribe", data={"audio": "hello"})
        assert response.status_code == 400
        assert response.json() == {"error": "No audio file provided"}
        assert not fake_provider.called

    def test_audio_text_field_alongside_catalog(self, api_client, fake_provider):
        data = {"audio": "hello", "tasks": json.dumps(CATALOG)}
        response = api_client.post("/api/transcribe", data=data)
        assert response.status_code == 400
        assert response.json() == {"error": "No audio file provided"}
        assert not fake_provider.called


class TestSuccessfulTranscription:
    ANALYSIS = json.dumps({
        "tasks": [
            {
                "room_name": "Salon",
                "task_name": "Peindre les murs",
                "id": "PEINT-STD",
                "quantity": 35,
                "unit": "m²",
                "hypotheses": "HSP 2,50m non confirmée",
            }
        ]
    })

    def test_success_response_shape(self, make_client):
        provider = FakeProvider(
            transcript="Dans le salon, peindre les murs, trois mètres sur quatre, hauteur non précisée",
            analysis_content=self.ANALYSIS,
        )
        client = make_client(provider)

        response = _post(client)

        assert response.status_code == 200
        data = response.json()
        validate(instance=data, schema=RESPONSE_SCHEMA)
        assert "salon" in data["transcription"]
        assert "peindre" in data["transcription"]
        assert data["tasks"] == [
            {
                "room_name": "Salon",
                "task_name": "Peindre les murs",
                "id": "PEINT-STD",
                "quantity": 35,
                "unit": "m²",
                "hypotheses": "HSP 2,50m non confirmée",
            }
        ]

    def test_temp_file_removed_after_success(self, make_client, upload_dir):
        provider = FakeProvider(analysis_content=self.ANALYSIS)
        client = make_client(provider)

        response = _post(client)

        assert response.status_code == 200
        assert provider.seen_existing_file == [True]
        assert not provider.transcribe_calls[0].exists()
        assert list(upload_dir.iterdir()) == []

    def test_stored_file_keeps_extension(self, make_client):
        provider = FakeProvider()
        client = make_client(provider)

        _post(client, filename="note vocale.m4a")

        stored = provider.transcribe_calls[0]
        assert stored.suffix == ".m4a"
        assert stored.name.startswith("audio-")

    def test_total_time_covers_both_steps(self, make_client):
        client = make_client(FakeProvider(analysis_content=self.ANALYSIS, delay=0.05))

        timing = _post(client).json()["processingTime"]

        parts = _seconds(timing["transcription"]) + _seconds(timing["analysis"])
        assert _seconds(timing["total"]) >= parts - 0.02

    def test_catalog_forwarded_to_analysis(self, make_client):
        provider = FakeProvider()
        client = make_client(provider)

        _post(client)

        transcript, catalog = provider.extract_calls[0]
        assert transcript == provider.transcript
        assert catalog.data == CATALOG
        assert catalog.ids == frozenset({"PEINT-STD"})

    def test_no_catalog_is_accepted(self, make_client):
        provider = FakeProvider()
        client = make_client(provider)

        response = _post(client, catalog=None)

        assert response.status_code == 200
        assert provider.extract_calls[0][1].data is None

    def test_any_content_type_is_accepted(self, make_client):
        provider = FakeProvider()
        client = make_client(provider)
        files = {"audio": ("blob.bin", b"\x00\x01", "application/octet-stream")}

        response = client.post("/api/transcribe", files=files)

        assert response.status_code == 200


class TestSentinelsInResponse:
    def test_unmatched_id_becomes_missing(self, make_client):
        analysis = json.dumps({"tasks": [
            {"room_name": "Cuisine", "task_name": "Poser du carrelage", "id": "CARREL-99",
             "quantity": 12, "unit": "m²"},
            {"room_name": "Cuisine", "task_name": "Changer l'évier", "quantity": 1,
             "unit": "unités"},
        ]})
        client = make_client(FakeProvider(analysis_content=analysis))

        tasks = _post(client).json()["tasks"]

        assert [t["id"] for t in tasks] == ["Missing", "Missing"]

    def test_missing_quantity_carries_question(self, make_client):
        analysis = json.dumps({"tasks": [
            {"room_name": "Chambre", "task_name": "Peindre le mur du fond",
             "id": "PEINT-STD", "quantity": "QUANTITÉ MANQUANTE", "unit": "m²",
             "hypotheses": "Quelle est la longueur du mur ?"},
            {"room_name": "", "task_name": "Refaire le sol", "id": None,
             "quantity": "inconnue", "unit": "m²"},
        ]})
        client = make_client(FakeProvider(analysis_content=analysis))

        tasks = _post(client).json()["tasks"]

        for task in tasks:
            assert task["quantity"] == "QUANTITÉ MANQUANTE"
            assert task["hypotheses"]
        assert tasks[1]["room_name"] == "LIEU MANQUANT"
        assert tasks[1]["id"] == "Missing"


class TestFailures:
    def test_malformed_analysis_returns_500_and_cleans_up(self, make_client, upload_dir):
        provider = FakeProvider(analysis_content="Voici les tâches : salon, peinture")
        client = make_client(provider)

        response = _post(client)

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "Malformed analysis response" in data["error"]
        assert list(upload_dir.iterdir()) == []

    def test_schema_mismatch_returns_500(self, make_client):
        client = make_client(FakeProvider(analysis_content='{"items": []}'))

        response = _post(client)

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_transcription_failure_returns_500_and_cleans_up(self, make_client, upload_dir):
        provider = FakeProvider(transcribe_error=RuntimeError("Invalid file format"))
        client = make_client(provider)

        response = _post(client)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Invalid file format"}
        assert provider.extract_calls == []
        assert list(upload_dir.iterdir()) == []

    def test_analysis_failure_returns_500(self, make_client, upload_dir):
        provider = FakeProvider(analysis_error=ConnectionError("connection reset"))
        client = make_client(provider)

        response = _post(client)

        assert response.status_code == 500
        assert response.json()["error"] == "connection reset"
        assert list(upload_dir.iterdir()) == []

    def test_timeout_returns_504(self, make_client, settings, upload_dir):
        settings.openai.transcription_timeout_seconds = 0.05
        client = make_client(FakeProvider(delay=1.0), settings)

        response = _post(client)

        assert response.status_code == 504
        data = response.json()
        assert data["success"] is False
        assert "timed out" in data["error"]
        assert list(upload_dir.iterdir()) == []

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2"])
    def test_invalid_catalog_returns_400(self, make_client, raw, upload_dir):
        provider = FakeProvider()
        client = make_client(provider)
        files = {"audio": ("visite.wav", WAV_BYTES, "audio/wav")}

        response = client.post("/api/transcribe", files=files, data={"tasks": raw})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert not provider.called
        assert not upload_dir.exists() or list(upload_dir.iterdir()) == []
