"""Abstract categorization interface.

Defines the Categorizer ABC and the categorization result model.
Concrete implementations (e.g., HttpCategorizer) subclass Categorizer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from call_processor.asr.interface import TranscriptionJob

UNCATEGORISED = "Uncategorised"


@dataclass
class CategorizationResult:
    """Topic classification of a completed transcript."""

    primary_category: str
    topic_categories: list[str] = field(default_factory=list)
    confidence: float = 1.0


class Categorizer(ABC):
    """Abstract base class for transcript categorizers.

    Implementations are best-effort: categorize() returns None on any
    failure instead of raising.
    """

    @abstractmethod
    async def categorize(self, job: TranscriptionJob) -> CategorizationResult | None:
        """Classify a completed transcript, or return None on failure."""

    async def close(self) -> None:
        """Release any held network resources."""
