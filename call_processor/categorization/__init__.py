"""Transcript categorization modules."""

from call_processor.categorization.interface import (
    UNCATEGORISED,
    CategorizationResult,
    Categorizer,
)

__all__ = ["UNCATEGORISED", "CategorizationResult", "Categorizer"]
