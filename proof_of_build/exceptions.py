"""Shared exceptions for the orchestrator.

The classes below encode the error taxonomy the pipeline relies on:
validation errors skip a project for the current poll, precondition and
configuration errors fail a stage without retry, and provider errors carry
an HTTP status code so the retry wrapper can tell transient from fatal.

Every class carries a machine ``code`` that the stage executor copies into
the persisted ErrorState.
"""

from typing import Any

from proof_of_build.constants import DEFAULT_ERROR_CODE


class PipelineError(Exception):
    """Base class for all orchestrator errors.

    Attributes:
        code: Machine-readable error code recorded into ErrorState.code.
        details: Optional structured context recorded into ErrorState.details.
    """

    code = DEFAULT_ERROR_CODE

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(PipelineError):
    """Raised when required configuration is missing.

    Typical causes are an absent ELEVENLABS_API_KEY or Cloudflare account.
    This is a fatal provider error: the retry wrapper never retries it.
    """

    code = "CONFIGURATION_ERROR"


class ManifestValidationError(PipelineError):
    """Raised when a manifest object cannot be parsed or fails schema validation."""

    code = "INVALID_MANIFEST"


class ManifestNotFoundError(ManifestValidationError):
    """Raised when no manifest exists at a project's manifest key."""

    code = "MANIFEST_NOT_FOUND"


class StateValidationError(PipelineError):
    """Raised when a persisted state record cannot be parsed or validated."""

    code = "INVALID_STATE"


class InvalidStageError(PipelineError):
    """Raised when a stage value is not a member of the stage table."""

    code = "INVALID_STAGE"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Unknown pipeline stage: {stage}", {"stage": stage})


class EmptyNarrationError(PipelineError):
    """Raised when narration text is empty before audio synthesis.

    Precondition failure: the audio provider is never called and the error
    is never retried.
    """

    code = "EMPTY_NARRATION"


class ProviderError(PipelineError):
    """Base class for failures reported by an external generation provider.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
    """

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        merged = dict(details or {})
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        super().__init__(message, merged)


class AudioGenerationError(ProviderError):
    """Raised when the text-to-speech provider rejects or fails a request."""

    code = "AUDIO_GENERATION_FAILED"


class ScriptGenerationError(ProviderError):
    """Raised when the language model call fails or returns an invalid script.

    Invalid or partial model output is rejected with this error before
    anything is persisted to the scripts namespace.
    """

    code = "SCRIPT_GENERATION_FAILED"
