"""Tests for AssemblyAIProvider REST client."""

import json

import httpx
import pytest

from call_processor.asr.assemblyai import AssemblyAIProvider
from call_processor.asr.interface import TranscriptionProvider
from call_processor.utils.errors import (
    ConfigurationError,
    ProviderUnavailableError,
    TranscriptionError,
    UploadError,
)

BASE_URL = "https://api.assemblyai.com/v2"

COMPLETED_TRANSCRIPT = {
    "id": "tr-1",
    "status": "completed",
    "text": "Hello, how can I help? I want to cancel.",
    "audio_duration": 42.5,
    "summary": "Customer asked to cancel.",
    "utterances": [
        {
            "speaker": "A",
            "text": "Hello, how can I help?",
            "start": 0,
            "end": 1500,
            "confidence": 0.93,
            "words": [{"text": "Hello,", "start": 0, "end": 400, "confidence": 0.9, "speaker": "A"}],
        },
        {
            "speaker": "B",
            "text": "I want to cancel.",
            "start": 1600,
            "end": 2800,
            "confidence": 0.91,
            "words": [],
        },
    ],
    "words": [],
    "sentiment_analysis_results": [
        {"text": "I want to cancel.", "sentiment": "NEGATIVE", "confidence": 0.8, "start": 1600, "end": 2800, "speaker": "B"}
    ],
    "entities": [{"entity_type": "event", "text": "cancel", "start": 2000, "end": 2500}],
    "error": None,
}


def _build_mock_client(handler) -> httpx.AsyncClient:
    """Create an AsyncClient backed by a MockTransport handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _provider(handler) -> AssemblyAIProvider:
    return AssemblyAIProvider(api_key="test-key", http_client=_build_mock_client(handler))


class TestAssemblyAIProviderConstruction:
    """Tests for AssemblyAIProvider initialization."""

    def test_requires_api_key(self, monkeypatch) -> None:
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="ASSEMBLYAI_API_KEY"):
            AssemblyAIProvider()

    def test_reads_key_and_base_url_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("ASSEMBLYAI_API_KEY", "env-key")
        monkeypatch.setenv("ASSEMBLYAI_BASE_URL", "https://eu.example.com/v2/")
        provider = AssemblyAIProvider()
        assert provider._api_key == "env-key"
        assert provider._base_url == "https://eu.example.com/v2"

    def test_isinstance_transcription_provider(self) -> None:
        assert isinstance(AssemblyAIProvider(api_key="k"), TranscriptionProvider)


class TestUpload:
    """Tests for raw audio upload."""

    async def test_upload_posts_octet_stream(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"upload_url": "https://cdn/upload/1"})

        url = await _provider(handler).upload(b"RIFFdata")

        assert url == "https://cdn/upload/1"
        request = seen[0]
        assert str(request.url) == f"{BASE_URL}/upload"
        assert request.headers["Authorization"] == "test-key"
        assert request.headers["Content-Type"] == "application/octet-stream"
        assert request.content == b"RIFFdata"

    async def test_upload_non_2xx_raises_upload_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="bad key")

        with pytest.raises(UploadError) as exc_info:
            await _provider(handler).upload(b"x")

        assert exc_info.value.status_code == 401
        assert exc_info.value.provider == "assemblyai"

    async def test_upload_transport_error_propagates_for_retry(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("reset")

        with pytest.raises(httpx.ConnectError):
            await _provider(handler).upload(b"x")


class TestSubmit:
    """Tests for job submission."""

    async def test_submit_sends_enrichment_options(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "tr-1", "status": "queued"})

        job_id = await _provider(handler).submit("https://cdn/upload/1", 2)

        assert job_id == "tr-1"
        body = bodies[0]
        assert body["audio_url"] == "https://cdn/upload/1"
        assert body["speaker_labels"] is True
        assert body["speakers_expected"] == 2
        assert body["summarization"] is True
        assert body["summary_model"] == "conversational"
        assert body["summary_type"] == "paragraph"
        assert body["entity_detection"] is True
        assert body["sentiment_analysis"] is True
        assert body["auto_highlights"] is True
        assert body["punctuate"] is True
        assert body["format_text"] is True

    async def test_submit_options_override_defaults(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "tr-2"})

        await _provider(handler).submit("u", 3, {"auto_highlights": False, "language_code": "en_uk"})

        assert bodies[0]["auto_highlights"] is False
        assert bodies[0]["language_code"] == "en_uk"
        assert bodies[0]["speakers_expected"] == 3

    async def test_submit_non_2xx_raises_upload_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "audio_url invalid"})

        with pytest.raises(UploadError) as exc_info:
            await _provider(handler).submit("u", 2)

        assert exc_info.value.status_code == 400

    async def test_submit_without_id_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        with pytest.raises(UploadError, match="No job id"):
            await _provider(handler).submit("u", 2)


class TestGetStatus:
    """Tests for status lookup and payload normalization."""

    async def test_completed_payload_is_normalized(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == f"{BASE_URL}/transcript/tr-1"
            return httpx.Response(200, json=COMPLETED_TRANSCRIPT)

        status = await _provider(handler).get_status("tr-1")

        assert status["status"] == "completed"
        assert status["text"].startswith("Hello")
        assert len(status["utterances"]) == 2
        assert status["sentiment"][0]["sentiment"] == "NEGATIVE"
        assert status["entities"][0]["entity_type"] == "event"
        assert status["audio_duration"] == 42.5
        assert status["summary"] == "Customer asked to cancel."

    async def test_queued_payload_has_empty_lists(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "tr-1", "status": "queued", "utterances": None})

        status = await _provider(handler).get_status("tr-1")

        assert status["status"] == "queued"
        assert status["utterances"] == []
        assert status["sentiment"] == []

    @pytest.mark.parametrize("code", [429, 503])
    async def test_transient_codes_raise_provider_unavailable(self, code) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(code)

        with pytest.raises(ProviderUnavailableError):
            await _provider(handler).get_status("tr-1")

    async def test_other_error_raises_transcription_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="transcript not found")

        with pytest.raises(TranscriptionError) as exc_info:
            await _provider(handler).get_status("tr-1")

        assert not isinstance(exc_info.value, ProviderUnavailableError)
        assert exc_info.value.job_id == "tr-1"
        assert "transcript not found" in exc_info.value.detail

    async def test_transport_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow")

        with pytest.raises(ProviderUnavailableError):
            await _provider(handler).get_status("tr-1")
