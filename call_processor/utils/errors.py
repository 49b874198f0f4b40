"""Custom exception hierarchy for the call transcription pipeline.

All exceptions inherit from PipelineError, enabling targeted handling
at the batch boundary while preserving specific failure context.
"""


class PipelineError(Exception):
    """Base exception for all call pipeline errors."""

    def __init__(self, message: str, contact_id: str | None = None) -> None:
        self.contact_id = contact_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.contact_id:
            return f"[contact_id={self.contact_id}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(PipelineError):
    """Raised when a required setting is missing before any work starts."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        setting: str | None = None,
    ) -> None:
        self.setting = setting
        super().__init__(message, contact_id)


class RecordingNotFoundError(PipelineError):
    """Raised when no candidate path resolves to a usable recording."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        candidates: list[str] | None = None,
    ) -> None:
        self.candidates = list(candidates or [])
        super().__init__(message, contact_id)


class RemoteConnectionError(PipelineError):
    """Raised when the remote file server session cannot be established."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        host: str | None = None,
    ) -> None:
        self.host = host
        super().__init__(message, contact_id)


class RemoteReadError(PipelineError):
    """Raised when streaming a remote file fails part way through."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        path: str | None = None,
    ) -> None:
        self.path = path
        super().__init__(message, contact_id)


class IntegrityError(PipelineError):
    """Raised when transferred bytes do not match the declared file size."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        path: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(message, contact_id)


class StageTimeoutError(PipelineError):
    """Raised when a network-bound stage exceeds its time budget."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        stage: str | None = None,
    ) -> None:
        self.stage = stage
        super().__init__(message, contact_id)


class FetchTimeoutError(StageTimeoutError):
    """Raised when a recording fetch phase (connect, stat, total) times out."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        phase: str | None = None,
    ) -> None:
        self.phase = phase
        super().__init__(message, contact_id, stage="fetch")


class UploadError(PipelineError):
    """Raised when the speech-to-text provider rejects an upload or submission."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message, contact_id)


class TranscriptionError(PipelineError):
    """Raised when a transcription job fails on the provider side."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        provider: str | None = None,
        job_id: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.provider = provider
        self.job_id = job_id
        self.detail = detail
        super().__init__(message, contact_id)


class ProviderUnavailableError(TranscriptionError):
    """Raised for transient provider responses (rate limiting, 503)."""


class TranscriptionTimeoutError(StageTimeoutError):
    """Raised when polling exhausts its attempt budget before a terminal status."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        job_id: str | None = None,
        attempts: int | None = None,
    ) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(message, contact_id, stage="transcribe")


class CategorizationError(PipelineError):
    """Raised inside the categorization client; never escapes it."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.detail = detail
        super().__init__(message, contact_id)


class PersistenceError(PipelineError):
    """Raised when an existence check is ambiguous or a write fails."""

    def __init__(
        self,
        message: str,
        contact_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.operation = operation
        super().__init__(message, contact_id)


class CallLogError(PipelineError):
    """Raised when the upstream call log cannot be queried."""
