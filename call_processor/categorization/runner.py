"""Best-effort categorization runner.

Failures are logged and return None rather than raising, so the pipeline
persists the record as uncategorised instead of failing it.
"""

from __future__ import annotations

import logging

from call_processor.asr.interface import TranscriptionJob
from call_processor.categorization.interface import (
    CategorizationResult,
    Categorizer,
)

logger = logging.getLogger(__name__)


async def run_categorization(
    job: TranscriptionJob,
    categorizer: Categorizer | None,
    contact_id: str | None = None,
) -> CategorizationResult | None:
    """Categorize a completed transcript (best-effort).

    Args:
        job: The completed transcription job.
        categorizer: Configured categorizer, or None to skip.
        contact_id: Record identifier for log context.

    Returns:
        CategorizationResult on success, None if skipped or on failure.
    """
    if categorizer is None:
        return None

    if not job.utterances:
        logger.info(
            "Skipping categorization of job %s: no utterances",
            job.job_id,
            extra={"contact_id": contact_id, "stage": "categorize"},
        )
        return None

    try:
        return await categorizer.categorize(job)
    except Exception:
        logger.error(
            "Categorization failed for job %s",
            job.job_id,
            exc_info=True,
            extra={"contact_id": contact_id, "stage": "categorize"},
        )
        return None
