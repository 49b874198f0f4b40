"""Abstract transcription provider interface.

Defines the TranscriptionProvider ABC and the transcription job data
models. Concrete implementations (e.g., AssemblyAI) subclass
TranscriptionProvider and return status payloads with normalized keys:
status, text, utterances, words, summary, sentiment, entities,
audio_duration, error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TranscriptionStatus(str, Enum):
    """Lifecycle states reported by a transcription provider."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str | None) -> TranscriptionStatus:
        """Map a provider status string to a state.

        Unknown values are treated as still processing so polling continues
        until the attempt budget runs out.
        """
        try:
            return cls(value)
        except ValueError:
            return cls.PROCESSING


@dataclass
class Word:
    """A single recognized word with timing in milliseconds."""

    text: str
    start: int = 0
    end: int = 0
    confidence: float = 0.0
    speaker: str | None = None
    speaker_role: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Word:
        return cls(
            text=payload.get("text", ""),
            start=payload.get("start", 0),
            end=payload.get("end", 0),
            confidence=payload.get("confidence", 0.0),
            speaker=payload.get("speaker"),
            speaker_role=payload.get("speakerRole"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
            "speaker": self.speaker,
            "speakerRole": self.speaker_role,
        }


@dataclass
class Utterance:
    """A contiguous stretch of speech from one speaker."""

    speaker: str
    text: str
    start: int = 0
    end: int = 0
    confidence: float = 0.0
    words: list[Word] = field(default_factory=list)
    speaker_role: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Utterance:
        return cls(
            speaker=payload.get("speaker") or "",
            text=payload.get("text", ""),
            start=payload.get("start", 0),
            end=payload.get("end", 0),
            confidence=payload.get("confidence", 0.0),
            words=[Word.from_payload(w) for w in payload.get("words") or []],
            speaker_role=payload.get("speakerRole"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "speaker": self.speaker,
            "speakerRole": self.speaker_role,
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
            "words": [w.to_payload() for w in self.words],
        }


@dataclass
class SentimentResult:
    """Sentiment label for one sentence of the transcript."""

    text: str
    sentiment: str
    confidence: float = 0.0
    start: int = 0
    end: int = 0
    speaker: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SentimentResult:
        return cls(
            text=payload.get("text", ""),
            sentiment=payload.get("sentiment", "NEUTRAL"),
            confidence=payload.get("confidence", 0.0),
            start=payload.get("start", 0),
            end=payload.get("end", 0),
            speaker=payload.get("speaker"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "start": self.start,
            "end": self.end,
            "speaker": self.speaker,
        }


@dataclass
class Entity:
    """A named entity detected in the transcript."""

    entity_type: str
    text: str
    start: int = 0
    end: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Entity:
        return cls(
            entity_type=payload.get("entity_type", ""),
            text=payload.get("text", ""),
            start=payload.get("start", 0),
            end=payload.get("end", 0),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "text": self.text,
            "start": self.start,
            "end": self.end,
        }


@dataclass
class TranscriptionJob:
    """State of one provider transcription job as last observed."""

    job_id: str
    status: TranscriptionStatus = TranscriptionStatus.QUEUED
    attempts: int = 0
    text: str = ""
    utterances: list[Utterance] = field(default_factory=list)
    words: list[Word] = field(default_factory=list)
    summary: str | None = None
    sentiment: list[SentimentResult] = field(default_factory=list)
    entities: list[Entity] = field(default_factory=list)
    audio_duration: float | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            TranscriptionStatus.COMPLETED,
            TranscriptionStatus.ERROR,
        )

    def apply_status(self, payload: dict[str, Any]) -> None:
        """Update this job from a normalized provider status payload."""
        self.status = TranscriptionStatus.parse(payload.get("status"))
        self.error = payload.get("error")
        if self.status is not TranscriptionStatus.COMPLETED:
            return
        self.text = payload.get("text") or ""
        self.utterances = [
            Utterance.from_payload(u) for u in payload.get("utterances") or []
        ]
        self.words = [Word.from_payload(w) for w in payload.get("words") or []]
        self.summary = payload.get("summary")
        self.sentiment = [
            SentimentResult.from_payload(s) for s in payload.get("sentiment") or []
        ]
        self.entities = [
            Entity.from_payload(e) for e in payload.get("entities") or []
        ]
        self.audio_duration = payload.get("audio_duration")


class TranscriptionProvider(ABC):
    """Abstract base class for speech-to-text provider clients.

    Subclasses must implement upload(), submit() and get_status().
    """

    name: str = "unknown"

    @abstractmethod
    async def upload(self, audio: bytes) -> str:
        """Upload raw audio and return a provider URL for it.

        Raises:
            UploadError: On a non-2xx response.
        """

    @abstractmethod
    async def submit(
        self,
        audio_url: str,
        speakers_expected: int,
        options: dict[str, Any] | None = None,
    ) -> str:
        """Start a transcription job and return its provider job id.

        Raises:
            UploadError: On a non-2xx response.
        """

    @abstractmethod
    async def get_status(self, job_id: str) -> dict[str, Any]:
        """Return the job's current status payload with normalized keys.

        Raises:
            ProviderUnavailableError: On transient provider responses.
            TranscriptionError: On any other non-2xx response.
        """

    async def close(self) -> None:
        """Release any held network resources."""
