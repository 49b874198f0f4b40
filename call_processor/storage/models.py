"""Persisted transcription row model.

Typed sub-records (utterances, sentiment, entities, categories) travel
through the pipeline as dataclasses and are serialized to JSON text once,
in to_row(), at the persistence boundary.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from call_processor.asr.interface import (
    Entity,
    SentimentResult,
    TranscriptionJob,
    Utterance,
)
from call_processor.categorization.interface import (
    UNCATEGORISED,
    CategorizationResult,
)
from call_processor.models import CallDuration, CallRecord


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


@dataclass
class PersistedTranscription:
    """One call record with its transcript and enrichment, ready to store."""

    contact_id: str
    recording_location: str
    transcript_text: str
    queue_name: str
    agent_username: str
    initiation_timestamp: str
    disposition_title: str
    speaker_data: list[Utterance] | None = None
    sentiment_analysis: list[SentimentResult] | None = None
    entities: list[Entity] | None = None
    call_summary: str | None = None
    campaign_name: str | None = None
    campaign_id: str | None = None
    customer_cli: str | None = None
    agent_hold_time: float | None = None
    total_hold_time: float | None = None
    time_in_queue: float | None = None
    call_duration: CallDuration | None = None
    categories: list[str] = field(default_factory=lambda: [UNCATEGORISED])
    primary_category: str = UNCATEGORISED
    category_confidence: float | None = None

    @classmethod
    def from_enrichment(
        cls,
        record: CallRecord,
        job: TranscriptionJob,
        categorization: CategorizationResult | None,
    ) -> PersistedTranscription:
        """Combine a call record, its transcript and its categorization.

        A missing categorization is stored as the "Uncategorised" sentinel
        with no confidence, distinguishing "processed but unclassifiable"
        from "not yet processed".
        """
        if categorization is None:
            categories = [UNCATEGORISED]
            primary = UNCATEGORISED
            confidence = None
        else:
            categories = list(categorization.topic_categories)
            primary = categorization.primary_category
            confidence = categorization.confidence

        return cls(
            contact_id=record.contact_id,
            recording_location=record.recording_location or "",
            transcript_text=job.text or "",
            queue_name=record.queue_name or "",
            agent_username=record.agent_username or "",
            initiation_timestamp=(
                record.initiation_timestamp or datetime.now(UTC).isoformat()
            ),
            disposition_title=record.disposition_title or "",
            speaker_data=job.utterances or None,
            sentiment_analysis=job.sentiment or None,
            entities=job.entities or None,
            call_summary=job.summary or None,
            campaign_name=record.campaign_name,
            campaign_id=record.campaign_id,
            customer_cli=record.customer_cli,
            agent_hold_time=record.agent_hold_time,
            total_hold_time=record.total_hold_time,
            time_in_queue=record.time_in_queue,
            call_duration=record.total_call_time,
            categories=categories,
            primary_category=primary,
            category_confidence=confidence,
        )

    def to_row(self) -> dict[str, Any]:
        """Return the backing-store row with sub-records as JSON text."""
        return {
            "contact_id": self.contact_id,
            "recording_location": self.recording_location,
            "transcript_text": self.transcript_text,
            "queue_name": self.queue_name,
            "agent_username": self.agent_username,
            "initiation_timestamp": self.initiation_timestamp,
            "speaker_data": (
                _dumps([u.to_payload() for u in self.speaker_data])
                if self.speaker_data
                else None
            ),
            "sentiment_analysis": (
                _dumps([s.to_payload() for s in self.sentiment_analysis])
                if self.sentiment_analysis
                else None
            ),
            "entities": (
                _dumps([e.to_payload() for e in self.entities])
                if self.entities
                else None
            ),
            "disposition_title": self.disposition_title,
            "call_summary": self.call_summary,
            "campaign_name": self.campaign_name,
            "campaign_id": self.campaign_id,
            "customer_cli": self.customer_cli,
            "agent_hold_time": self.agent_hold_time,
            "total_hold_time": self.total_hold_time,
            "time_in_queue": self.time_in_queue,
            "call_duration": (
                _dumps(self.call_duration.to_payload())
                if self.call_duration
                else None
            ),
            "categories": _dumps(self.categories),
            "primary_category": self.primary_category,
            "category_confidence": self.category_confidence,
        }
