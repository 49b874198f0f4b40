"""Tests for PersistedTranscription assembly and row serialization."""

import json

from call_processor.asr.interface import (
    Entity,
    SentimentResult,
    TranscriptionJob,
    TranscriptionStatus,
    Utterance,
    Word,
)
from call_processor.categorization.interface import CategorizationResult
from call_processor.models import CallDuration, CallRecord
from call_processor.storage.models import PersistedTranscription


def _record(**overrides) -> CallRecord:
    fields = {
        "contact_id": "c-1",
        "recording_location": "c-1.wav",
        "agent_username": "agent.one",
        "queue_name": "Sales",
        "campaign_name": "Spring",
        "campaign_id": "42",
        "customer_cli": "+447700900000",
        "agent_hold_time": 12.5,
        "initiation_timestamp": "2025-03-01T10:00:00+00:00",
        "disposition_title": "Sale",
        "total_call_time": CallDuration(minutes=3, seconds=15),
    }
    fields.update(overrides)
    return CallRecord(**fields)


def _job(**overrides) -> TranscriptionJob:
    fields = {
        "job_id": "tr-1",
        "status": TranscriptionStatus.COMPLETED,
        "text": "Hello. Hi.",
        "utterances": [
            Utterance(
                speaker="A",
                text="Hello.",
                speaker_role="Agent",
                words=[Word(text="Hello.", speaker="A", speaker_role="Agent")],
            ),
            Utterance(speaker="B", text="Hi.", speaker_role="Customer"),
        ],
        "summary": "Greeting.",
        "sentiment": [SentimentResult(text="Hi.", sentiment="POSITIVE", confidence=0.6)],
        "entities": [Entity(entity_type="person_name", text="Sam")],
    }
    fields.update(overrides)
    return TranscriptionJob(**fields)


class TestFromEnrichment:
    """Tests for PersistedTranscription.from_enrichment()."""

    def test_with_categorization(self):
        result = CategorizationResult("Sales", ["Sales", "Upgrade"], 0.8)

        persisted = PersistedTranscription.from_enrichment(_record(), _job(), result)

        assert persisted.categories == ["Sales", "Upgrade"]
        assert persisted.primary_category == "Sales"
        assert persisted.category_confidence == 0.8
        assert persisted.call_summary == "Greeting."
        assert persisted.call_duration == CallDuration(minutes=3, seconds=15)

    def test_missing_categorization_is_uncategorised(self):
        persisted = PersistedTranscription.from_enrichment(_record(), _job(), None)

        assert persisted.categories == ["Uncategorised"]
        assert persisted.primary_category == "Uncategorised"
        assert persisted.category_confidence is None

    def test_missing_timestamp_defaults_to_now(self):
        persisted = PersistedTranscription.from_enrichment(
            _record(initiation_timestamp=None), _job(), None
        )
        assert persisted.initiation_timestamp.endswith("+00:00")

    def test_empty_enrichment_becomes_none(self):
        persisted = PersistedTranscription.from_enrichment(
            _record(), _job(utterances=[], sentiment=[], entities=[], summary=""), None
        )
        assert persisted.speaker_data is None
        assert persisted.sentiment_analysis is None
        assert persisted.entities is None
        assert persisted.call_summary is None


class TestToRow:
    """Tests for PersistedTranscription.to_row()."""

    def test_sub_records_are_compact_json(self):
        persisted = PersistedTranscription.from_enrichment(_record(), _job(), None)

        row = persisted.to_row()

        speakers = json.loads(row["speaker_data"])
        assert speakers[0]["speakerRole"] == "Agent"
        assert speakers[0]["words"][0]["speakerRole"] == "Agent"
        assert speakers[1]["speakerRole"] == "Customer"
        assert json.loads(row["sentiment_analysis"])[0]["sentiment"] == "POSITIVE"
        assert json.loads(row["entities"])[0]["text"] == "Sam"
        assert row["call_duration"] == '{"minutes":3,"seconds":15}'
        assert row["categories"] == '["Uncategorised"]'
        assert " " not in row["categories"]

    def test_row_columns(self):
        row = PersistedTranscription.from_enrichment(_record(), _job(), None).to_row()

        assert set(row) == {
            "contact_id",
            "recording_location",
            "transcript_text",
            "queue_name",
            "agent_username",
            "initiation_timestamp",
            "speaker_data",
            "sentiment_analysis",
            "entities",
            "disposition_title",
            "call_summary",
            "campaign_name",
            "campaign_id",
            "customer_cli",
            "agent_hold_time",
            "total_hold_time",
            "time_in_queue",
            "call_duration",
            "categories",
            "primary_category",
            "category_confidence",
        }
        assert row["agent_hold_time"] == 12.5
        assert row["total_hold_time"] is None

    def test_empty_sub_records_are_null(self):
        persisted = PersistedTranscription.from_enrichment(
            _record(total_call_time=None),
            _job(utterances=[], sentiment=[], entities=[]),
            None,
        )

        row = persisted.to_row()

        assert row["speaker_data"] is None
        assert row["sentiment_analysis"] is None
        assert row["entities"] is None
        assert row["call_duration"] is None
