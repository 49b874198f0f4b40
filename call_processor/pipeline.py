"""Batch orchestrator for the call transcription pipeline.

Contains the batch request/result models and CallProcessor, the single
entry point for both "process whatever is missing in this window" and
"process these specific contact ids" requests.

Per record: existence re-check -> locate -> fetch -> transcribe ->
categorize -> persist. Records are processed one at a time in call log
order; a failing record is recorded and the batch moves on.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from call_processor.asr.orchestrator import TranscriptionOrchestrator
from call_processor.asr.registry import get_transcription_provider
from call_processor.calllog.postgres import CallLogSource, PostgresCallLogSource
from call_processor.categorization.http_client import HttpCategorizer
from call_processor.categorization.interface import Categorizer
from call_processor.categorization.runner import run_categorization
from call_processor.models import CallRecord
from call_processor.observability.metrics import (
    RecordMetrics,
    log_batch_summary,
    log_record_metrics,
)
from call_processor.remote.fetcher import ResilientFetcher
from call_processor.remote.locator import RecordingLocator
from call_processor.remote.sftp import SftpConnector
from call_processor.storage.cache import RecordCaches
from call_processor.storage.models import PersistedTranscription
from call_processor.storage.repository import TranscriptionRepository
from call_processor.storage.supabase_client import SupabaseStore
from call_processor.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_RECORD_ATTEMPTS = 3

RECORD_STAGES = (
    "existence_check",
    "locate",
    "fetch",
    "transcribe",
    "categorize",
    "persist",
)


@dataclass
class BatchRequest:
    """Parameters of one batch run.

    Attributes:
        start: Inclusive lower bound on call initiation time.
        end: Inclusive upper bound on call initiation time.
        contact_ids: When set, only these contact ids are considered.
        exclude_contact_ids: Contact ids never processed in this batch.
        max_process_count: Upper bound on records processed.
        process_transcriptions: False reports status without processing.
    """

    start: datetime | None = None
    end: datetime | None = None
    contact_ids: list[str] | None = None
    exclude_contact_ids: list[str] = field(default_factory=list)
    max_process_count: int | None = None
    process_transcriptions: bool = True

    def validate(self) -> None:
        """Raise ValueError for malformed filters."""
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must not be after end")
        if self.max_process_count is not None and self.max_process_count < 0:
            raise ValueError("max_process_count must not be negative")


class AttemptTracker:
    """In-process bookkeeping of in-flight and repeatedly failing records.

    A contact id that has failed max_attempts times is skipped by later
    batches in this process until it succeeds. Nothing is persisted.
    """

    def __init__(self, max_attempts: int = MAX_RECORD_ATTEMPTS) -> None:
        self.max_attempts = max_attempts
        self.in_flight: set[str] = set()
        self.failures: dict[str, int] = {}

    def is_exhausted(self, contact_id: str) -> bool:
        return self.failures.get(contact_id, 0) >= self.max_attempts

    def is_in_flight(self, contact_id: str) -> bool:
        return contact_id in self.in_flight

    def start(self, contact_id: str) -> None:
        self.in_flight.add(contact_id)

    def succeed(self, contact_id: str) -> None:
        self.in_flight.discard(contact_id)
        self.failures.pop(contact_id, None)

    def fail(self, contact_id: str) -> int:
        self.in_flight.discard(contact_id)
        self.failures[contact_id] = self.failures.get(contact_id, 0) + 1
        return self.failures[contact_id]


@dataclass
class RecordFailure:
    """One entry of a batch's error list."""

    identifier: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"identifier": self.identifier, "message": self.message}


@dataclass
class RecordResult:
    """Outcome of processing one call record."""

    contact_id: str
    status: Literal["processed", "skipped", "failed"]
    error_stage: str | None = None
    error: str | None = None
    transcription_job_id: str | None = None
    primary_category: str | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "contactId": self.contact_id,
            "status": self.status,
            "errorStage": self.error_stage,
            "error": self.error,
            "transcriptionJobId": self.transcription_job_id,
            "primaryCategory": self.primary_category,
            "stageTimings": self.stage_timings,
        }


@dataclass
class BatchResult:
    """Summary of one batch run, stable in shape for every caller."""

    total_records: int = 0
    existing_count: int = 0
    missing_count: int = 0
    errors: list[RecordFailure] = field(default_factory=list)
    per_record_results: list[RecordResult] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return sum(1 for r in self.per_record_results if r.status == "processed")

    def summary(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "existingCount": self.existing_count,
            "missingCount": self.missing_count,
            "processedCount": self.processed_count,
            "errorCount": len(self.errors),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "existingCount": self.existing_count,
            "missingCount": self.missing_count,
            "processedCount": self.processed_count,
            "errors": [e.to_dict() for e in self.errors],
            "perRecordResults": [r.to_dict() for r in self.per_record_results],
        }


class _StageTimer:
    """Context manager for recording stage timings."""

    def __init__(self, stage_name: str, timings: dict[str, float]) -> None:
        self._stage_name = stage_name
        self._timings = timings
        self._start: float = 0.0

    def __enter__(self) -> _StageTimer:
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        elapsed = time.monotonic() - self._start
        # Failed stages are keyed "_<stage>_failed"
        if exc_type is not None:
            self._timings[f"_{self._stage_name}_failed"] = elapsed
        else:
            self._timings[self._stage_name] = elapsed


def _determine_error_stage(exc: Exception, stage_timings: dict[str, float]) -> str:
    """Return the stage a record failed in.

    The stage carrying a failure sentinel wins; otherwise the first stage
    with no timing, falling back to the exception's own stage hint.
    """
    for stage in RECORD_STAGES:
        if f"_{stage}_failed" in stage_timings:
            return stage

    for stage in RECORD_STAGES:
        if stage not in stage_timings:
            return stage

    return getattr(exc, "stage", None) or "unknown"


class CallProcessor:
    """Finds call records without transcriptions and processes them.

    Args:
        call_log_source: Upstream contact log.
        repository: Transcription persistence with its caches.
        locator: Recording candidate path builder.
        fetcher: Remote recording fetcher.
        transcriber: Transcription orchestrator. May be None when the
            provider is not configured; any request with work to do then
            fails with ConfigurationError before a record is attempted.
        categorizer: Optional categorizer; records are stored as
            uncategorised without one.
        attempt_tracker: Shared in-process attempt bookkeeping.
    """

    def __init__(
        self,
        call_log_source: CallLogSource,
        repository: TranscriptionRepository,
        locator: RecordingLocator,
        fetcher: ResilientFetcher,
        transcriber: TranscriptionOrchestrator | None,
        categorizer: Categorizer | None = None,
        attempt_tracker: AttemptTracker | None = None,
    ) -> None:
        self.call_log_source = call_log_source
        self.repository = repository
        self.locator = locator
        self.fetcher = fetcher
        self.transcriber = transcriber
        self.categorizer = categorizer
        self.attempt_tracker = attempt_tracker or AttemptTracker()

    @classmethod
    def from_env(cls, caches: RecordCaches | None = None) -> CallProcessor:
        """Wire the default components from environment variables.

        The transcription provider and the categorizer are optional at
        startup; the SFTP, Supabase and database settings are required.
        """
        store = SupabaseStore()
        repository = TranscriptionRepository(store, caches or RecordCaches())

        transcriber: TranscriptionOrchestrator | None
        try:
            provider = get_transcription_provider(
                os.environ.get("TRANSCRIPTION_PROVIDER", "assemblyai")
            )
            transcriber = TranscriptionOrchestrator(provider)
        except ConfigurationError as exc:
            logger.warning("Transcription disabled: %s", exc)
            transcriber = None

        categorizer: Categorizer | None
        try:
            categorizer = HttpCategorizer()
        except ConfigurationError as exc:
            logger.warning("Categorization disabled: %s", exc)
            categorizer = None

        return cls(
            call_log_source=PostgresCallLogSource(),
            repository=repository,
            locator=RecordingLocator(),
            fetcher=ResilientFetcher(SftpConnector()),
            transcriber=transcriber,
            categorizer=categorizer,
        )

    async def close(self) -> None:
        """Release HTTP clients held by the components."""
        if self.transcriber is not None:
            await self.transcriber.close()
        if self.categorizer is not None:
            await self.categorizer.close()
        close_store = getattr(self.repository.store, "close", None)
        if close_store is not None:
            await close_store()

    async def process_calls(self, request: BatchRequest) -> BatchResult:
        """Run one batch.

        Raises:
            ValueError: If the request filters are malformed.
            ConfigurationError: If there is work to do but no transcriber.
            CallLogError: If the call log cannot be read.
        """
        request.validate()

        records = await self.call_log_source.fetch_call_logs(request.start, request.end)
        if request.contact_ids is not None:
            wanted = set(request.contact_ids)
            records = [r for r in records if r.contact_id in wanted]

        contact_ids = [r.contact_id for r in records]
        existing = await self.repository.existing_ids(contact_ids)
        for record in records:
            record.already_persisted = record.contact_id in existing

        missing = [
            r for r in records if not r.already_persisted and r.has_valid_recording
        ]
        result = BatchResult(
            total_records=len(records),
            existing_count=sum(1 for r in records if r.already_persisted),
            missing_count=len(missing),
        )
        logger.info(
            "Batch found %d records: %d persisted, %d missing",
            result.total_records,
            result.existing_count,
            result.missing_count,
        )

        if request.process_transcriptions:
            work = self._select_work(missing, request)
            if work and self.transcriber is None:
                raise ConfigurationError(
                    "Transcription provider is not configured",
                    setting="ASSEMBLYAI_API_KEY",
                )

            for record in work:
                record_result = await self.process_record(record)
                result.per_record_results.append(record_result)
                if record_result.status == "failed":
                    result.errors.append(
                        RecordFailure(
                            identifier=record.contact_id,
                            message=record_result.error or "unknown error",
                        )
                    )

        log_batch_summary(result.summary())
        return result

    def _select_work(
        self, missing: list[CallRecord], request: BatchRequest
    ) -> list[CallRecord]:
        excluded = set(request.exclude_contact_ids)
        work: list[CallRecord] = []
        for record in missing:
            if record.contact_id in excluded:
                continue
            if self.attempt_tracker.is_in_flight(record.contact_id):
                logger.info(
                    "Skipping record already in flight",
                    extra={"contact_id": record.contact_id},
                )
                continue
            if self.attempt_tracker.is_exhausted(record.contact_id):
                logger.info(
                    "Skipping record after %d failed attempts",
                    self.attempt_tracker.max_attempts,
                    extra={"contact_id": record.contact_id},
                )
                continue
            work.append(record)

        if request.max_process_count is not None:
            work = work[: request.max_process_count]
        return work

    async def process_record(self, record: CallRecord) -> RecordResult:
        """Process one record end to end. Never raises for record failures."""
        contact_id = record.contact_id
        stage_timings: dict[str, float] = {}
        metrics = RecordMetrics(contact_id=contact_id, status="processing")
        wall_start = time.monotonic()
        self.attempt_tracker.start(contact_id)

        try:
            with _StageTimer("existence_check", stage_timings):
                persisted = await self.repository.exists(contact_id, refresh=True)

            if persisted:
                self.attempt_tracker.succeed(contact_id)
                logger.info(
                    "Record persisted since batch start, skipping",
                    extra={"contact_id": contact_id},
                )
                result = RecordResult(
                    contact_id=contact_id,
                    status="skipped",
                    stage_timings=stage_timings,
                )
                metrics.status = "skipped"
                return result

            with _StageTimer("locate", stage_timings):
                candidates = self.locator.locate(record.recording_location)

            with _StageTimer("fetch", stage_timings):
                fetched = await self.fetcher.fetch(candidates, contact_id=contact_id)
            metrics.recording_path = fetched.path
            metrics.audio_size_bytes = fetched.size_bytes

            with _StageTimer("transcribe", stage_timings):
                if self.transcriber is None:
                    raise ConfigurationError(
                        "Transcription provider is not configured",
                        contact_id=contact_id,
                        setting="ASSEMBLYAI_API_KEY",
                    )
                job = await self.transcriber.transcribe(
                    fetched.data, contact_id=contact_id
                )
            metrics.transcription_job_id = job.job_id
            metrics.poll_attempts = job.attempts
            metrics.audio_duration_seconds = job.audio_duration or 0.0

            with _StageTimer("categorize", stage_timings):
                categorization = await run_categorization(
                    job, self.categorizer, contact_id=contact_id
                )

            transcription = PersistedTranscription.from_enrichment(
                record, job, categorization
            )
            with _StageTimer("persist", stage_timings):
                await self.repository.upsert(transcription)

        except Exception as exc:
            error_stage = _determine_error_stage(exc, stage_timings)
            attempts = self.attempt_tracker.fail(contact_id)
            logger.error(
                "Record failed at stage '%s' (attempt %d/%d): %s",
                error_stage,
                attempts,
                self.attempt_tracker.max_attempts,
                exc,
                exc_info=True,
                extra={"contact_id": contact_id, "stage": error_stage},
            )
            metrics.status = "failed"
            metrics.error_stage = error_stage
            metrics.error_message = str(exc)
            return RecordResult(
                contact_id=contact_id,
                status="failed",
                error_stage=error_stage,
                error=str(exc),
                transcription_job_id=metrics.transcription_job_id or None,
                stage_timings=stage_timings,
            )
        else:
            self.attempt_tracker.succeed(contact_id)
            metrics.status = "processed"
            metrics.primary_category = transcription.primary_category
            logger.info(
                "Record processed (job %s, category %s)",
                job.job_id,
                transcription.primary_category,
                extra={"contact_id": contact_id},
            )
            return RecordResult(
                contact_id=contact_id,
                status="processed",
                transcription_job_id=job.job_id,
                primary_category=transcription.primary_category,
                stage_timings=stage_timings,
            )
        finally:
            metrics.processing_wall_time_seconds = time.monotonic() - wall_start
            _fill_stage_durations(metrics, stage_timings)
            log_record_metrics(metrics)


def _fill_stage_durations(
    metrics: RecordMetrics, stage_timings: dict[str, float]
) -> None:
    for stage in ("locate", "fetch", "transcribe", "categorize", "persist"):
        duration = stage_timings.get(stage, stage_timings.get(f"_{stage}_failed"))
        if duration is not None:
            setattr(metrics, f"{stage}_duration_seconds", duration)
