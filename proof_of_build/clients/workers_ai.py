"""Cloudflare Workers AI script generator.

Calls the Workers AI REST endpoint with the version 1.0 script prompt and
turns the model's answer into a validated Script. Model output that cannot
be parsed or validated raises ScriptGenerationError, so nothing partial ever
reaches the scripts namespace.

API Endpoint:
    POST {base}/accounts/{account_id}/ai/run/{model}
    Authorization: Bearer {api_token}
    Body: {"prompt": "...", "max_tokens": 2000}
"""

from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from proof_of_build.config import (
    get_cloudflare_account_id,
    get_cloudflare_api_token,
    get_provider_max_requests_per_second,
    get_workers_ai_model,
)
from proof_of_build.constants import WORKERS_AI_API_BASE, WORKERS_AI_MAX_TOKENS
from proof_of_build.exceptions import ScriptGenerationError
from proof_of_build.schemas import ArtifactCollection, Script
from proof_of_build.services.prompt_builder import build_script_prompt
from proof_of_build.services.response_normalizer import (
    build_script_from_text,
    normalize_provider_response,
)
from proof_of_build.utils.logging import get_logger

log = get_logger(__name__)


class WorkersAIScriptGenerator:
    """Script generator backed by a Workers AI text model.

    Credentials left as None are read from CLOUDFLARE_ACCOUNT_ID and
    CLOUDFLARE_API_TOKEN when a request is made.
    """

    def __init__(
        self,
        account_id: str | None = None,
        api_token: str | None = None,
        *,
        model: str | None = None,
        base_url: str = WORKERS_AI_API_BASE,
        max_tokens: int = WORKERS_AI_MAX_TOKENS,
        timeout: float = 120.0,
    ) -> None:
        self._account_id = account_id
        self._api_token = api_token
        self.model = model or get_workers_ai_model()
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.client = httpx.AsyncClient(timeout=timeout)
        self.rate_limiter = AsyncLimiter(
            max_rate=get_provider_max_requests_per_second(), time_period=1
        )

    def _run_url(self) -> str:
        account_id = self._account_id or get_cloudflare_account_id()
        return f"{self.base_url}/accounts/{account_id}/ai/run/{self.model}"

    async def _run(self, prompt: str) -> Any:
        url = self._run_url()
        headers = {
            "Authorization": f"Bearer {self._api_token or get_cloudflare_api_token()}",
            "Content-Type": "application/json",
        }
        async with self.rate_limiter:
            response = await self.client.post(
                url,
                headers=headers,
                json={"prompt": prompt, "max_tokens": self.max_tokens},
            )

        if response.status_code >= 400:
            raise ScriptGenerationError(
                f"Workers AI error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            return response.text

    async def generate(
        self,
        project_id: str,
        artifacts: ArtifactCollection,
        *,
        tone: str | None = None,
        language: str | None = None,
    ) -> Script:
        """Generate a narration script for the project's artifacts.

        Raises:
            ConfigurationError: If Cloudflare credentials are missing
            ScriptGenerationError: On HTTP failure or unusable model output
        """
        prompt = build_script_prompt(project_id, artifacts, tone=tone, language=language)
        log.info(
            "script_generation_started",
            project_id=project_id,
            model=self.model,
            prompt_length=len(prompt),
        )

        payload = await self._run(prompt)
        normalized = normalize_provider_response(payload)
        if not normalized.ok:
            raise ScriptGenerationError(normalized.error or "Empty response from Workers AI")

        script = build_script_from_text(normalized.text or "", project_id)
        log.info(
            "script_generation_succeeded",
            project_id=project_id,
            segments=len(script.segments),
            total_duration=script.total_duration,
        )
        return script

    async def close(self) -> None:
        await self.client.aclose()
