"""Tests for call_processor.observability.metrics module."""

from __future__ import annotations

import json
from dataclasses import asdict

from call_processor.observability.metrics import (
    RecordMetrics,
    log_batch_summary,
    log_record_metrics,
)


class TestRecordMetrics:
    """Tests for RecordMetrics dataclass."""

    def test_defaults(self):
        """Only contact_id and status are required."""
        metrics = RecordMetrics(contact_id="c-1", status="processing")
        d = asdict(metrics)
        assert d["contact_id"] == "c-1"
        assert d["audio_size_bytes"] == 0
        assert d["error_stage"] is None
        assert d["primary_category"] is None


class TestLogRecordMetrics:
    """Tests for log_record_metrics() output."""

    def test_emits_single_json_line(self, capsys):
        """One JSON object per record with the metric envelope."""
        metrics = RecordMetrics(
            contact_id="c-9",
            status="processed",
            recording_path="tsa-dialler/2025/01/02/c-9.wav",
            audio_size_bytes=52_000,
            transcription_job_id="job-1",
            fetch_duration_seconds=1.5,
        )
        log_record_metrics(metrics)

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["metric_type"] == "record_completion"
        assert entry["severity"] == "INFO"
        assert entry["contact_id"] == "c-9"
        assert entry["audio_size_bytes"] == 52_000
        assert entry["fetch_duration_seconds"] == 1.5
        assert "timestamp" in entry


class TestLogBatchSummary:
    """Tests for log_batch_summary() output."""

    def test_emits_batch_summary(self, capsys):
        log_batch_summary({"totalRecords": 5, "processedCount": 2, "errorCount": 1})

        entry = json.loads(capsys.readouterr().out.strip())
        assert entry["metric_type"] == "batch_summary"
        assert entry["totalRecords"] == 5
        assert entry["errorCount"] == 1
