# Data factories for test data generation

from tests.support.factories.audio_factory import FAKE_AUDIO, create_audio_result
from tests.support.factories.manifest_factory import (
    create_artifact_collection,
    create_manifest,
    create_screenshot,
    manifest_payload,
    put_manifest,
)
from tests.support.factories.script_factory import create_script
from tests.support.factories.state_factory import create_state, put_state

__all__ = [
    # Audio factories
    "FAKE_AUDIO",
    "create_audio_result",
    # Manifest factories
    "create_artifact_collection",
    "create_manifest",
    "create_screenshot",
    "manifest_payload",
    "put_manifest",
    # Script factories
    "create_script",
    # State factories
    "create_state",
    "put_state",
]
