"""HTTP categorization client.

Posts the speaker-attributed transcript to a classification endpoint and
parses {primary_category, topic_categories, confidence}. Every failure
mode maps to None; nothing escapes to the caller.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from call_processor.asr.interface import TranscriptionJob
from call_processor.categorization.interface import (
    CategorizationResult,
    Categorizer,
)
from call_processor.utils.errors import CategorizationError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0


def _request_body(job: TranscriptionJob) -> dict[str, Any]:
    return {
        "transcript": {
            "text": job.text,
            "utterances": [
                {
                    "speaker": u.speaker,
                    "speakerRole": u.speaker_role,
                    "text": u.text,
                }
                for u in job.utterances
            ],
        }
    }


def _parse_result(body: Any) -> CategorizationResult | None:
    """Parse a classification response.

    Returns None when the category list is empty.

    Raises:
        CategorizationError: If the body is not the expected shape.
    """
    if not isinstance(body, dict):
        raise CategorizationError("Response body is not an object")

    categories = body.get("topic_categories")
    if categories is None:
        categories = []
    if not isinstance(categories, list) or not all(
        isinstance(c, str) for c in categories
    ):
        raise CategorizationError(
            "topic_categories is not a list of strings", detail=repr(categories)
        )
    if not categories:
        return None

    primary = body.get("primary_category") or categories[0]
    if not isinstance(primary, str):
        raise CategorizationError(
            "primary_category is not a string", detail=repr(primary)
        )

    raw_confidence = body.get("confidence")
    if raw_confidence is None:
        confidence = 1.0
    else:
        try:
            confidence = float(raw_confidence)
        except (TypeError, ValueError) as exc:
            raise CategorizationError(
                "confidence is not numeric", detail=repr(raw_confidence)
            ) from exc
    confidence = min(max(confidence, 0.0), 1.0)

    return CategorizationResult(
        primary_category=primary,
        topic_categories=categories,
        confidence=confidence,
    )


class HttpCategorizer(Categorizer):
    """Categorizer backed by an HTTP classification endpoint.

    Args:
        url: Endpoint URL (falls back to CATEGORIZATION_URL).
        timeout: Request timeout in seconds (default 20).
        http_client: Optional pre-built client, mainly for tests.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url or os.environ.get("CATEGORIZATION_URL", "")
        if not self.url:
            raise ConfigurationError(
                "CATEGORIZATION_URL is required", setting="CATEGORIZATION_URL"
            )
        self.timeout = timeout
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def categorize(self, job: TranscriptionJob) -> CategorizationResult | None:
        try:
            response = await self._client.post(
                self.url, json=_request_body(job), timeout=self.timeout
            )
            if not response.is_success:
                logger.warning(
                    "Categorization failed for job %s: HTTP %d",
                    job.job_id,
                    response.status_code,
                )
                return None
            result = _parse_result(response.json())
        except httpx.HTTPError as exc:
            logger.warning(
                "Categorization request failed for job %s: %s", job.job_id, exc
            )
            return None
        except (ValueError, CategorizationError) as exc:
            logger.warning(
                "Malformed categorization response for job %s: %s",
                job.job_id,
                exc,
            )
            return None

        if result is None:
            logger.info("Categorization returned no categories for job %s", job.job_id)
        return result
