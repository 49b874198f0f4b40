"""AssemblyAI transcription client implementation.

Implements the TranscriptionProvider interface against the AssemblyAI v2
REST API: raw audio upload, job submission with speaker labels and audio
intelligence features, and job status lookup.
"""

import logging
import os
from typing import Any

import httpx

from call_processor.asr.interface import TranscriptionProvider
from call_processor.utils.errors import (
    ConfigurationError,
    ProviderUnavailableError,
    TranscriptionError,
    UploadError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.assemblyai.com/v2"
TRANSIENT_STATUS_CODES = {429, 503}
PROVIDER_NAME = "assemblyai"

DEFAULT_TRANSCRIPT_OPTIONS: dict[str, Any] = {
    "speech_model": "best",
    "speaker_labels": True,
    "summarization": True,
    "summary_model": "conversational",
    "summary_type": "paragraph",
    "entity_detection": True,
    "sentiment_analysis": True,
    "auto_highlights": True,
    "punctuate": True,
    "format_text": True,
}


class AssemblyAIProvider(TranscriptionProvider):
    """AssemblyAI REST client with speaker diarization and enrichment.

    Args:
        api_key: AssemblyAI API key (falls back to ASSEMBLYAI_API_KEY).
        base_url: API base URL (falls back to ASSEMBLYAI_BASE_URL, then the
            production endpoint).
        timeout: Per-request HTTP timeout in seconds.
        http_client: Optional pre-built client, mainly for tests.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or os.environ.get("ASSEMBLYAI_API_KEY", "")
        if not self._api_key:
            raise ConfigurationError(
                "ASSEMBLYAI_API_KEY is required", setting="ASSEMBLYAI_API_KEY"
            )
        self._base_url = (
            base_url or os.environ.get("ASSEMBLYAI_BASE_URL") or DEFAULT_BASE_URL
        ).rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self._api_key}

    async def close(self) -> None:
        await self._client.aclose()

    async def upload(self, audio: bytes) -> str:
        """Upload raw audio bytes.

        Transport errors propagate as httpx.TransportError so the caller
        can retry them.

        Returns:
            The provider-hosted upload URL.

        Raises:
            UploadError: On a non-2xx response or a response with no URL.
        """
        response = await self._client.post(
            f"{self._base_url}/upload",
            headers={
                **self._headers(),
                "Content-Type": "application/octet-stream",
            },
            content=audio,
        )
        if not response.is_success:
            raise UploadError(
                f"Audio upload failed with status {response.status_code}: "
                f"{response.text}",
                provider=PROVIDER_NAME,
                status_code=response.status_code,
            )

        upload_url = response.json().get("upload_url")
        if not upload_url:
            raise UploadError(
                "No upload_url in upload response",
                provider=PROVIDER_NAME,
                status_code=response.status_code,
            )
        logger.info("Uploaded %d bytes of audio to AssemblyAI", len(audio))
        return upload_url

    async def submit(
        self,
        audio_url: str,
        speakers_expected: int,
        options: dict[str, Any] | None = None,
    ) -> str:
        """Submit a transcription job for previously uploaded audio.

        Returns:
            The AssemblyAI transcript id.

        Raises:
            UploadError: On a non-2xx response or a response with no id.
        """
        payload: dict[str, Any] = {
            "audio_url": audio_url,
            **DEFAULT_TRANSCRIPT_OPTIONS,
            "speakers_expected": speakers_expected,
        }
        if options:
            payload.update(options)

        try:
            response = await self._client.post(
                f"{self._base_url}/transcript",
                headers=self._headers(),
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise UploadError(
                f"Failed to submit transcription job: {exc}",
                provider=PROVIDER_NAME,
            ) from exc

        if not response.is_success:
            raise UploadError(
                f"Job submission failed with status {response.status_code}: "
                f"{response.text}",
                provider=PROVIDER_NAME,
                status_code=response.status_code,
            )

        job_id = response.json().get("id")
        if not job_id:
            raise UploadError(
                "No job id in submission response",
                provider=PROVIDER_NAME,
                status_code=response.status_code,
            )

        logger.info("Submitted AssemblyAI job %s", job_id)
        return job_id

    async def get_status(self, job_id: str) -> dict[str, Any]:
        """Fetch the job and normalize its payload.

        Raises:
            ProviderUnavailableError: On transport errors, 429 or 503.
            TranscriptionError: On any other non-2xx response.
        """
        try:
            response = await self._client.get(
                f"{self._base_url}/transcript/{job_id}",
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(
                f"Failed to poll job status: {exc}",
                provider=PROVIDER_NAME,
                job_id=job_id,
            ) from exc

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise ProviderUnavailableError(
                f"Provider unavailable (HTTP {response.status_code})",
                provider=PROVIDER_NAME,
                job_id=job_id,
            )
        if not response.is_success:
            raise TranscriptionError(
                f"Status request failed with status {response.status_code}: "
                f"{response.text}",
                provider=PROVIDER_NAME,
                job_id=job_id,
                detail=response.text,
            )

        return self._normalize(response.json())

    @staticmethod
    def _normalize(body: dict[str, Any]) -> dict[str, Any]:
        return {
            "status": body.get("status"),
            "text": body.get("text"),
            "utterances": body.get("utterances") or [],
            "words": body.get("words") or [],
            "summary": body.get("summary"),
            "sentiment": body.get("sentiment_analysis_results") or [],
            "entities": body.get("entities") or [],
            "audio_duration": body.get("audio_duration"),
            "error": body.get("error"),
        }
