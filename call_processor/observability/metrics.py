"""Processing metrics collection and reporting.

Provides the RecordMetrics dataclass for per-call observability data and
helpers that emit record and batch metrics as structured JSON lines on
stdout.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any


@dataclass
class RecordMetrics:
    """All metrics collected while processing a single call record."""

    contact_id: str
    status: str
    recording_path: str = ""
    audio_size_bytes: int = 0
    transcription_job_id: str = ""
    audio_duration_seconds: float = 0.0
    poll_attempts: int = 0
    locate_duration_seconds: float = 0.0
    fetch_duration_seconds: float = 0.0
    transcribe_duration_seconds: float = 0.0
    categorize_duration_seconds: float = 0.0
    persist_duration_seconds: float = 0.0
    processing_wall_time_seconds: float = 0.0
    primary_category: str | None = None
    error_stage: str | None = None
    error_message: str | None = None


def _emit(metric_type: str, payload: dict[str, Any]) -> None:
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": "INFO",
        "metric_type": metric_type,
        **payload,
    }
    print(json.dumps(entry, default=str))


def log_record_metrics(metrics: RecordMetrics) -> None:
    """Emit record metrics as a single structured JSON line to stdout.

    Args:
        metrics: Populated RecordMetrics dataclass.
    """
    _emit("record_completion", asdict(metrics))


def log_batch_summary(summary: dict[str, Any]) -> None:
    """Emit a batch summary (counts and error total) as one JSON line."""
    _emit("batch_summary", summary)
