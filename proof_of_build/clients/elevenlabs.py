"""ElevenLabs text-to-speech client.

This module provides a rate-limited async client for the ElevenLabs
text-to-speech API. It performs exactly one HTTP request per call; retrying
is the caller's concern (see proof_of_build.utils.retry), which keeps the
client free of backoff policy.

Error Mapping:
    - Empty text: EmptyNarrationError before any request is made
    - Missing API key: ConfigurationError (fatal, never retried)
    - HTTP 4xx/5xx: AudioGenerationError with status_code set
    - Network failures / timeouts: httpx exceptions propagate unchanged

Usage:
    client = ElevenLabsClient(api_key="...")
    result = await client.synthesize("Welcome to the build walkthrough.")
    await store.put("audio/p1.m4a", result.audio, content_type=result.content_type)
    await client.close()
"""

from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from proof_of_build.clients.base import AudioResult
from proof_of_build.config import (
    get_elevenlabs_api_key,
    get_elevenlabs_model_id,
    get_elevenlabs_output_format,
    get_elevenlabs_voice_id,
    get_provider_max_requests_per_second,
)
from proof_of_build.constants import (
    DEFAULT_AUDIO_CONTENT_TYPE,
    ELEVENLABS_API_BASE,
    ELEVENLABS_OUTPUT_FORMATS,
    ELEVENLABS_VOICE_SETTINGS,
)
from proof_of_build.exceptions import AudioGenerationError, EmptyNarrationError
from proof_of_build.utils.logging import get_logger

log = get_logger(__name__)


class ElevenLabsClient:
    """Client for the ElevenLabs text-to-speech endpoint.

    Attributes:
        base_url: API base URL (default: https://api.elevenlabs.io/v1)
        default_voice_id: Voice used when synthesize() gets no voice
        default_model_id: Model used when synthesize() gets no model
        default_output_format: Output format used when none is given
        client: Async HTTP client for making requests
        rate_limiter: Client-side request rate limit
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = ELEVENLABS_API_BASE,
        default_voice_id: str | None = None,
        default_model_id: str | None = None,
        default_output_format: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: ElevenLabs API key. When omitted it is read from
                ELEVENLABS_API_KEY at call time, so a missing key fails the
                audio stage instead of the process start.
        """
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_voice_id = default_voice_id or get_elevenlabs_voice_id()
        self.default_model_id = default_model_id or get_elevenlabs_model_id()
        self.default_output_format = default_output_format or get_elevenlabs_output_format()
        self.client = httpx.AsyncClient(timeout=timeout)
        self.rate_limiter = AsyncLimiter(
            max_rate=get_provider_max_requests_per_second(), time_period=1
        )

    def _get_headers(self) -> dict[str, str]:
        api_key = self._api_key or get_elevenlabs_api_key()
        return {
            "Content-Type": "application/json",
            "xi-api-key": api_key,
        }

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Prefer the provider's detail.message over the bare status line."""
        message = f"ElevenLabs API error: {response.status_code} {response.reason_phrase}"
        try:
            body = response.json()
        except ValueError:
            return message
        detail = body.get("detail") if isinstance(body, dict) else None
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
        return message

    async def synthesize(
        self,
        text: str,
        *,
        voice: str | None = None,
        model: str | None = None,
        output_format: str | None = None,
    ) -> AudioResult:
        """Convert text to speech.

        Args:
            text: Narration text
            voice: ElevenLabs voice ID (default: client default)
            model: ElevenLabs model ID (default: client default)
            output_format: One of ELEVENLABS_OUTPUT_FORMATS (default: mp3_44100_128)

        Returns:
            AudioResult with raw audio bytes and response content type

        Raises:
            EmptyNarrationError: If text is empty or whitespace
            ConfigurationError: If no API key is available
            ValueError: If output_format is not supported
            AudioGenerationError: On any non-2xx response
        """
        if not text or not text.strip():
            raise EmptyNarrationError("Text cannot be empty")

        fmt = output_format or self.default_output_format
        if fmt not in ELEVENLABS_OUTPUT_FORMATS:
            raise ValueError(f"Unsupported ElevenLabs output format: {fmt}")

        voice_id = voice or self.default_voice_id
        payload: dict[str, Any] = {
            "text": text,
            "model_id": model or self.default_model_id,
            "voice_settings": dict(ELEVENLABS_VOICE_SETTINGS),
        }
        headers = self._get_headers()

        log.info(
            "elevenlabs_request_started",
            voice_id=voice_id,
            model_id=payload["model_id"],
            output_format=fmt,
            text_length=len(text),
        )

        async with self.rate_limiter:
            response = await self.client.post(
                f"{self.base_url}/text-to-speech/{voice_id}",
                params={"output_format": fmt},
                headers=headers,
                json=payload,
            )

        if response.status_code >= 400:
            message = self._error_message(response)
            log.warning(
                "elevenlabs_request_failed",
                status_code=response.status_code,
                error=message,
            )
            raise AudioGenerationError(message, status_code=response.status_code)

        content_type = response.headers.get("content-type") or DEFAULT_AUDIO_CONTENT_TYPE
        log.info(
            "elevenlabs_request_succeeded",
            size_bytes=len(response.content),
            content_type=content_type,
        )
        return AudioResult(audio=response.content, content_type=content_type)

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
