"""Speech-to-text job modules."""

from call_processor.asr.orchestrator import TranscriptionOrchestrator
from call_processor.asr.registry import get_transcription_provider
from call_processor.asr.roles import SpeakerRoleMap

__all__ = [
    "SpeakerRoleMap",
    "TranscriptionOrchestrator",
    "get_transcription_provider",
]
