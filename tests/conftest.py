"""Shared pytest fixtures for orchestrator tests.

Provides an in-memory object store, the default stage table, and a fully
wired executor/poller whose generation capabilities are AsyncMocks, so
tests never reach a real provider and retry sleeps never block.
"""

from unittest.mock import AsyncMock

import pytest

from proof_of_build import config
from proof_of_build.services.manifest_poller import ManifestPoller
from proof_of_build.services.stage_executor import GenerationOptions, StageExecutor
from proof_of_build.services.stage_table import StageTable, build_default_stage_table
from proof_of_build.services.state_store import StateStore
from proof_of_build.utils.retry import RetryPolicy
from tests.support.factories import create_audio_result, create_script
from tests.support.recording_store import RecordingObjectStore


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Reset cached secrets so monkeypatched environment variables take effect."""
    for getter in (
        config.get_elevenlabs_api_key,
        config.get_cloudflare_account_id,
        config.get_cloudflare_api_token,
    ):
        getter.cache_clear()
    yield
    for getter in (
        config.get_elevenlabs_api_key,
        config.get_cloudflare_account_id,
        config.get_cloudflare_api_token,
    ):
        getter.cache_clear()


@pytest.fixture
def store() -> RecordingObjectStore:
    return RecordingObjectStore()


@pytest.fixture
def stage_table() -> StageTable:
    return build_default_stage_table()


@pytest.fixture
def state_store(store, stage_table) -> StateStore:
    return StateStore(store, stage_table)


@pytest.fixture
def script_generator() -> AsyncMock:
    """Script Generator returning a two-segment script for project p1."""
    generator = AsyncMock()
    generator.generate.return_value = create_script("p1")
    return generator


@pytest.fixture
def audio_generator() -> AsyncMock:
    generator = AsyncMock()
    generator.synthesize.return_value = create_audio_result()
    return generator


@pytest.fixture
def retry_sleep() -> AsyncMock:
    """Records backoff delays instead of sleeping."""
    return AsyncMock()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, base_delay=1.0)


@pytest.fixture
def executor(
    store, state_store, stage_table, script_generator, audio_generator, retry_policy, retry_sleep
) -> StageExecutor:
    return StageExecutor(
        store,
        state_store,
        stage_table,
        script_generator,
        audio_generator,
        retry_policy=retry_policy,
        options=GenerationOptions(tone="professional", language="en"),
        sleep=retry_sleep,
    )


@pytest.fixture
def poller(store, state_store, executor) -> ManifestPoller:
    return ManifestPoller(store, state_store, executor)
