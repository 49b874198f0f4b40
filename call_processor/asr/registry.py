"""Transcription provider registry with configuration-driven selection.

Maps provider name strings to provider classes. Use
get_transcription_provider() to instantiate a provider by name with
provider-specific configuration.
"""

from call_processor.asr.assemblyai import AssemblyAIProvider
from call_processor.asr.interface import TranscriptionProvider
from call_processor.utils.errors import ConfigurationError

TRANSCRIPTION_PROVIDERS: dict[str, type[TranscriptionProvider]] = {
    "assemblyai": AssemblyAIProvider,
}


def get_transcription_provider(
    provider: str, **kwargs: object
) -> TranscriptionProvider:
    """Create a transcription provider instance by name.

    Args:
        provider: Provider name (e.g., "assemblyai").
        **kwargs: Provider-specific configuration passed to the constructor.

    Raises:
        ConfigurationError: If the provider name is not registered.
    """
    provider_cls = TRANSCRIPTION_PROVIDERS.get(provider)
    if not provider_cls:
        available = ", ".join(sorted(TRANSCRIPTION_PROVIDERS.keys()))
        raise ConfigurationError(
            f"Unknown transcription provider: '{provider}'. Available: {available}",
            setting="TRANSCRIPTION_PROVIDER",
        )
    return provider_cls(**kwargs)
