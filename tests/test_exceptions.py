"""Tests for the orchestrator error taxonomy."""

import pytest

from proof_of_build.exceptions import (
    AudioGenerationError,
    ConfigurationError,
    EmptyNarrationError,
    InvalidStageError,
    ManifestNotFoundError,
    ManifestValidationError,
    PipelineError,
    ProviderError,
    ScriptGenerationError,
    StateValidationError,
)


@pytest.mark.parametrize(
    "error_class, code",
    [
        (PipelineError, "PIPELINE_ERROR"),
        (ConfigurationError, "CONFIGURATION_ERROR"),
        (ManifestValidationError, "INVALID_MANIFEST"),
        (ManifestNotFoundError, "MANIFEST_NOT_FOUND"),
        (StateValidationError, "INVALID_STATE"),
        (EmptyNarrationError, "EMPTY_NARRATION"),
        (ProviderError, "PROVIDER_ERROR"),
        (AudioGenerationError, "AUDIO_GENERATION_FAILED"),
        (ScriptGenerationError, "SCRIPT_GENERATION_FAILED"),
    ],
)
def test_p1_error_codes(error_class, code):
    error = error_class("boom")

    assert error.code == code
    assert str(error) == "boom"
    assert error.details == {}
    assert isinstance(error, PipelineError)


def test_p1_provider_error_records_status_in_details():
    error = AudioGenerationError("Service Unavailable", status_code=503, details={"voice": "v1"})

    assert error.status_code == 503
    assert error.details == {"voice": "v1", "status_code": 503}


def test_p2_provider_error_without_status():
    error = ScriptGenerationError("bad output")

    assert error.status_code is None
    assert "status_code" not in error.details


def test_p1_invalid_stage_error_names_stage():
    error = InvalidStageError("publish")

    assert error.stage == "publish"
    assert str(error) == "Unknown pipeline stage: publish"
    assert error.details == {"stage": "publish"}


def test_p2_manifest_not_found_is_a_validation_error():
    assert issubclass(ManifestNotFoundError, ManifestValidationError)
