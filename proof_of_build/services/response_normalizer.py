"""Normalize heterogeneous language-model responses into narration scripts.

Workers AI returns different payload shapes depending on the model and the
endpoint. Each known shape has its own normalizer variant; the first variant
whose ``matches`` accepts the payload produces a canonical NormalizedText.

Known shapes:
    - Bare string
    - Cloudflare REST envelope: {"success": bool, "result": <inner>, "errors": [...]}
    - OpenAI-compatible chat: {"choices": [{"message": {"content": "..."}}]}
    - Text fields: {"response": "..."}, {"text": "..."}, {"description": "..."}
    - Any other JSON object: serialized so the JSON extractor can still try it
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from proof_of_build.exceptions import ScriptGenerationError
from proof_of_build.schemas import Script

_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class NormalizedText:
    """Canonical normalizer output: exactly one of text or error is set."""

    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


class ResponseNormalizer(ABC):
    name: str = "base"

    @abstractmethod
    def matches(self, payload: Any) -> bool: ...

    @abstractmethod
    def normalize(self, payload: Any) -> NormalizedText: ...


class PlainStringNormalizer(ResponseNormalizer):
    name = "string"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, str)

    def normalize(self, payload: Any) -> NormalizedText:
        return NormalizedText(text=payload)


class CloudflareEnvelopeNormalizer(ResponseNormalizer):
    """Unwrap ``{"success", "result", "errors"}`` and normalize the inner result."""

    name = "cloudflare_envelope"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, dict) and "success" in payload and (
            "result" in payload or "errors" in payload
        )

    def normalize(self, payload: Any) -> NormalizedText:
        if not payload.get("success"):
            messages = [
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in payload.get("errors") or []
            ]
            return NormalizedText(error="; ".join(messages) or "Workers AI request failed")
        result = payload.get("result")
        if result is None:
            return NormalizedText(error="Workers AI response has no result")
        return normalize_provider_response(result)


class ChatCompletionNormalizer(ResponseNormalizer):
    name = "chat_completion"

    def matches(self, payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False
        choices = payload.get("choices")
        return isinstance(choices, list) and len(choices) > 0 and isinstance(choices[0], dict)

    def normalize(self, payload: Any) -> NormalizedText:
        message = payload["choices"][0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            return NormalizedText(error="Chat completion has no message content")
        return NormalizedText(text=content)


class TextFieldNormalizer(ResponseNormalizer):
    """Take the text from a single well-known string field."""

    def __init__(self, field: str):
        self.field = field
        self.name = f"field:{field}"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, dict) and isinstance(payload.get(self.field), str)

    def normalize(self, payload: Any) -> NormalizedText:
        return NormalizedText(text=payload[self.field])


class SerializedObjectNormalizer(ResponseNormalizer):
    name = "serialized_object"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, dict | list)

    def normalize(self, payload: Any) -> NormalizedText:
        return NormalizedText(text=json.dumps(payload))


DEFAULT_NORMALIZERS: tuple[ResponseNormalizer, ...] = (
    PlainStringNormalizer(),
    CloudflareEnvelopeNormalizer(),
    ChatCompletionNormalizer(),
    TextFieldNormalizer("response"),
    TextFieldNormalizer("text"),
    TextFieldNormalizer("description"),
    SerializedObjectNormalizer(),
)


def normalize_provider_response(
    payload: Any,
    normalizers: tuple[ResponseNormalizer, ...] = DEFAULT_NORMALIZERS,
) -> NormalizedText:
    """Return the text carried by ``payload`` using the first matching variant."""
    for normalizer in normalizers:
        if normalizer.matches(payload):
            return normalizer.normalize(payload)
    return NormalizedText(error=f"Unexpected response format: {type(payload).__name__}")


def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = text.split("\n")
    json_start = next((i for i, line in enumerate(lines) if line.strip().startswith("{")), -1)
    json_end = max((i for i, line in enumerate(lines) if line.strip() == "```"), default=-1)
    if json_start >= 0 and json_end > json_start:
        return "\n".join(lines[json_start:json_end])
    if json_start >= 0:
        return "\n".join(lines[json_start:])
    return text


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object in model output, tolerating markdown fences and prose.

    Raises:
        ScriptGenerationError: If no JSON object can be parsed
    """
    candidate = _strip_code_fence(text.strip())
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        match = _JSON_OBJECT_PATTERN.search(candidate)
        if not match:
            raise ScriptGenerationError(f"Failed to parse AI response as JSON: {e}") from e
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as inner:
            raise ScriptGenerationError(
                f"Failed to parse AI response as JSON: {inner}"
            ) from inner

    if not isinstance(data, dict):
        raise ScriptGenerationError(
            f"AI response JSON is a {type(data).__name__}, expected an object"
        )
    return data


def build_script_from_text(
    text: str,
    project_id: str,
    created_at: datetime | None = None,
) -> Script:
    """Turn normalized model text into a validated Script.

    projectId and createdAt are always set by the orchestrator, overriding
    anything the model echoed back.

    Raises:
        ScriptGenerationError: If the text holds no JSON object or the object
            is not a valid Script (nothing is persisted in that case)
    """
    data = extract_json_object(text)
    created_at = created_at or datetime.now(timezone.utc)
    payload = {**data, "projectId": project_id, "createdAt": created_at.isoformat()}
    try:
        return Script.model_validate(payload)
    except ValidationError as e:
        raise ScriptGenerationError(
            f"AI response is not a valid script: {e.error_count()} validation error(s)",
            details={"validation_errors": [error["msg"] for error in e.errors()]},
        ) from e
