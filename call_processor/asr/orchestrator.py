"""Transcription job orchestration: upload, submit, poll to completion.

Polling sleeps a fixed interval before every status request and gives up
after a bounded number of attempts. Transient provider responses consume
an attempt like any other poll.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from call_processor.asr.interface import (
    TranscriptionJob,
    TranscriptionProvider,
    TranscriptionStatus,
)
from call_processor.asr.roles import SpeakerRoleMap
from call_processor.utils.errors import (
    ProviderUnavailableError,
    TranscriptionError,
    TranscriptionTimeoutError,
    UploadError,
)
from call_processor.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5.0
MAX_POLL_ATTEMPTS = 120
UPLOAD_MAX_RETRIES = 3


class TranscriptionOrchestrator:
    """Drive one provider job from raw audio to a completed transcript.

    Args:
        provider: Speech-to-text provider client.
        poll_interval: Seconds to sleep before each status request.
        max_attempts: Status requests allowed before timing out.
        role_map: Speaker tag to role mapping (default: "A" is the agent).
        speakers_expected: Speaker count hint sent with the job.
        options: Extra provider job options merged over the defaults.
    """

    def __init__(
        self,
        provider: TranscriptionProvider,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        role_map: SpeakerRoleMap | None = None,
        speakers_expected: int = 2,
        options: dict[str, Any] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.role_map = role_map or SpeakerRoleMap()
        self.speakers_expected = speakers_expected
        self.options = options

    @retry_with_backoff(
        max_retries=UPLOAD_MAX_RETRIES,
        retryable_exceptions=(httpx.TransportError,),
        operation="provider_upload",
    )
    async def _upload(self, audio: bytes, contact_id: str | None = None) -> str:
        return await self.provider.upload(audio)

    async def submit(self, audio: bytes, contact_id: str | None = None) -> str:
        """Upload audio and start a transcription job.

        Returns:
            The provider job id.

        Raises:
            UploadError: On a non-2xx provider response or when upload
                transport errors persist through every retry.
        """
        try:
            audio_url = await self._upload(audio, contact_id=contact_id)
        except httpx.TransportError as exc:
            raise UploadError(
                f"Audio upload failed after retries: {exc}",
                contact_id=contact_id,
                provider=self.provider.name,
            ) from exc
        except UploadError as exc:
            exc.contact_id = exc.contact_id or contact_id
            raise

        try:
            return await self.provider.submit(
                audio_url, self.speakers_expected, self.options
            )
        except UploadError as exc:
            exc.contact_id = exc.contact_id or contact_id
            raise

    async def await_completion(
        self, job_id: str, contact_id: str | None = None
    ) -> TranscriptionJob:
        """Poll a job until it reaches a terminal status.

        Raises:
            TranscriptionError: The provider reported the job as failed, or
                answered a status request with a non-transient error.
            TranscriptionTimeoutError: max_attempts polls saw no terminal
                status.
        """
        job = TranscriptionJob(job_id=job_id)

        while job.attempts < self.max_attempts:
            await asyncio.sleep(self.poll_interval)
            job.attempts += 1

            try:
                payload = await self.provider.get_status(job_id)
            except ProviderUnavailableError as exc:
                logger.warning(
                    "Transient status failure for job %s (attempt %d/%d): %s",
                    job_id,
                    job.attempts,
                    self.max_attempts,
                    exc,
                    extra={"contact_id": contact_id, "stage": "transcribe"},
                )
                continue
            except TranscriptionError as exc:
                exc.contact_id = exc.contact_id or contact_id
                raise

            job.apply_status(payload)

            if job.status is TranscriptionStatus.COMPLETED:
                self.role_map.apply(job.utterances, job.words)
                logger.info(
                    "Transcription job %s completed after %d polls",
                    job_id,
                    job.attempts,
                    extra={"contact_id": contact_id, "stage": "transcribe"},
                )
                return job

            if job.status is TranscriptionStatus.ERROR:
                detail = job.error or "unknown provider error"
                raise TranscriptionError(
                    f"Transcription job {job_id} failed: {detail}",
                    contact_id=contact_id,
                    provider=self.provider.name,
                    job_id=job_id,
                    detail=detail,
                )

        raise TranscriptionTimeoutError(
            f"Transcription job {job_id} not complete after "
            f"{self.max_attempts} polls",
            contact_id=contact_id,
            job_id=job_id,
            attempts=job.attempts,
        )

    async def transcribe(
        self, audio: bytes, contact_id: str | None = None
    ) -> TranscriptionJob:
        """Submit audio and wait for the completed transcript."""
        job_id = await self.submit(audio, contact_id=contact_id)
        return await self.await_completion(job_id, contact_id=contact_id)

    async def close(self) -> None:
        await self.provider.close()
