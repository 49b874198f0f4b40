"""Transcription persistence modules."""

from call_processor.storage.cache import ExpiringCache, RecordCaches
from call_processor.storage.models import PersistedTranscription
from call_processor.storage.repository import TranscriptionRepository

__all__ = [
    "ExpiringCache",
    "PersistedTranscription",
    "RecordCaches",
    "TranscriptionRepository",
]
