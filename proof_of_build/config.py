"""Configuration management for the build-narration orchestrator.

All configuration is read from environment variables through small getter
functions. Required secrets are cached with lru_cache; tunables are re-read
on every call so tests and operators can change them without a restart.

Environment Variables:
    POLL_INTERVAL_SECONDS: Manifest polling cadence (default: 120)
    STORAGE_ROOT: Root directory of the local object store (default: "./storage")
    ELEVENLABS_API_KEY: ElevenLabs API key (required for audio generation)
    CLOUDFLARE_ACCOUNT_ID / CLOUDFLARE_API_TOKEN: Workers AI credentials
        (required for script generation)

Usage:
    from proof_of_build.config import get_poll_interval, get_elevenlabs_api_key

    interval = get_poll_interval()  # 120 unless overridden
    api_key = get_elevenlabs_api_key()  # Raises ConfigurationError if not set
"""

import os
from functools import lru_cache

import structlog

from proof_of_build.constants import (
    DEFAULT_ELEVENLABS_MODEL_ID,
    DEFAULT_ELEVENLABS_OUTPUT_FORMAT,
    DEFAULT_ELEVENLABS_VOICE_ID,
    DEFAULT_SCRIPT_LANGUAGE,
    DEFAULT_SCRIPT_TONE,
    DEFAULT_WORKERS_AI_MODEL,
)
from proof_of_build.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 120
MIN_POLL_INTERVAL_SECONDS = 10
MAX_POLL_INTERVAL_SECONDS = 3600

DEFAULT_RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_RETRY_MAX_RETRIES = 3
DEFAULT_PROVIDER_MAX_REQUESTS_PER_SECOND = 3


def get_poll_interval() -> int:
    """Get manifest polling interval in seconds from environment.

    Environment Variable:
        POLL_INTERVAL_SECONDS: Polling interval (default: 120)

    Returns:
        Poll interval in seconds (minimum 10, maximum 3600).

    Note:
        The default matches a two-minute cron cadence. Non-integer values
        fall back to the default.
    """
    raw = os.getenv("POLL_INTERVAL_SECONDS", str(DEFAULT_POLL_INTERVAL_SECONDS))
    try:
        interval = int(raw)
    except ValueError:
        log.warning(
            "invalid_poll_interval",
            value=raw,
            using_default=DEFAULT_POLL_INTERVAL_SECONDS,
        )
        return DEFAULT_POLL_INTERVAL_SECONDS
    return clamp_poll_interval(interval)


def clamp_poll_interval(interval: int) -> int:
    """Clamp a polling interval to [MIN_POLL_INTERVAL_SECONDS, MAX_POLL_INTERVAL_SECONDS]."""
    clamped = max(MIN_POLL_INTERVAL_SECONDS, min(MAX_POLL_INTERVAL_SECONDS, interval))
    if clamped != interval:
        log.warning("poll_interval_clamped", value=interval, using=clamped)
    return clamped


def get_storage_root() -> str:
    """Get the local object store root directory.

    Environment Variable:
        STORAGE_ROOT: Directory holding uploads/, state/, scripts/, audio/
            (default: "./storage")
    """
    return os.getenv("STORAGE_ROOT", "./storage")


@lru_cache
def get_elevenlabs_api_key() -> str:
    """Get ElevenLabs API key from environment.

    Returns:
        API key string.

    Raises:
        ConfigurationError: If ELEVENLABS_API_KEY is not set. Missing
            configuration is fatal for the audio stage and is never retried.
    """
    key = os.getenv("ELEVENLABS_API_KEY")
    if not key:
        raise ConfigurationError("ELEVENLABS_API_KEY not configured")
    return key


def get_elevenlabs_voice_id() -> str:
    return os.getenv("ELEVENLABS_VOICE_ID") or DEFAULT_ELEVENLABS_VOICE_ID


def get_elevenlabs_model_id() -> str:
    return os.getenv("ELEVENLABS_MODEL_ID") or DEFAULT_ELEVENLABS_MODEL_ID


def get_elevenlabs_output_format() -> str:
    return os.getenv("ELEVENLABS_OUTPUT_FORMAT") or DEFAULT_ELEVENLABS_OUTPUT_FORMAT


@lru_cache
def get_cloudflare_account_id() -> str:
    """Get Cloudflare account ID for Workers AI.

    Raises:
        ConfigurationError: If CLOUDFLARE_ACCOUNT_ID is not set.
    """
    account_id = os.getenv("CLOUDFLARE_ACCOUNT_ID")
    if not account_id:
        raise ConfigurationError("CLOUDFLARE_ACCOUNT_ID not configured")
    return account_id


@lru_cache
def get_cloudflare_api_token() -> str:
    """Get Cloudflare API token for Workers AI.

    Raises:
        ConfigurationError: If CLOUDFLARE_API_TOKEN is not set.
    """
    token = os.getenv("CLOUDFLARE_API_TOKEN")
    if not token:
        raise ConfigurationError("CLOUDFLARE_API_TOKEN not configured")
    return token


def get_workers_ai_model() -> str:
    return os.getenv("WORKERS_AI_MODEL") or DEFAULT_WORKERS_AI_MODEL


def get_script_tone() -> str:
    return os.getenv("SCRIPT_TONE") or DEFAULT_SCRIPT_TONE


def get_script_language() -> str:
    return os.getenv("SCRIPT_LANGUAGE") or DEFAULT_SCRIPT_LANGUAGE


def get_retry_base_delay() -> float:
    """Get retry wrapper base delay in seconds.

    Environment Variable:
        RETRY_BASE_DELAY_SECONDS: Base of the exponential backoff (default: 1.0)

    Returns:
        Base delay in seconds, never negative.
    """
    raw = os.getenv("RETRY_BASE_DELAY_SECONDS", str(DEFAULT_RETRY_BASE_DELAY_SECONDS))
    try:
        return max(0.0, float(raw))
    except ValueError:
        log.warning(
            "invalid_retry_base_delay",
            value=raw,
            using_default=DEFAULT_RETRY_BASE_DELAY_SECONDS,
        )
        return DEFAULT_RETRY_BASE_DELAY_SECONDS


def get_retry_max_retries() -> int:
    """Get the number of retries (not attempts) the retry wrapper allows.

    Environment Variable:
        RETRY_MAX_RETRIES: Retry cap (default: 3, i.e. 4 total attempts)
    """
    raw = os.getenv("RETRY_MAX_RETRIES", str(DEFAULT_RETRY_MAX_RETRIES))
    try:
        return max(0, int(raw))
    except ValueError:
        log.warning(
            "invalid_retry_max_retries",
            value=raw,
            using_default=DEFAULT_RETRY_MAX_RETRIES,
        )
        return DEFAULT_RETRY_MAX_RETRIES


def get_provider_max_requests_per_second() -> int:
    """Get the client-side request rate limit applied to each provider client.

    Environment Variable:
        PROVIDER_MAX_REQUESTS_PER_SECOND: Requests per second (default: 3)

    Returns:
        Requests per second, at least 1.
    """
    raw = os.getenv(
        "PROVIDER_MAX_REQUESTS_PER_SECOND",
        str(DEFAULT_PROVIDER_MAX_REQUESTS_PER_SECOND),
    )
    try:
        return max(1, int(raw))
    except ValueError:
        log.warning(
            "invalid_provider_max_requests_per_second",
            value=raw,
            using_default=DEFAULT_PROVIDER_MAX_REQUESTS_PER_SECOND,
        )
        return DEFAULT_PROVIDER_MAX_REQUESTS_PER_SECOND


def get_polling_enabled() -> bool:
    """Whether the FastAPI lifespan starts the polling loop.

    Environment Variable:
        POLLING_ENABLED: "false", "0" or "no" disables polling (default: enabled)
    """
    return os.getenv("POLLING_ENABLED", "true").strip().lower() not in {"false", "0", "no"}
