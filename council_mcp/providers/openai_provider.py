"""OpenAI chat-completions shape, also used by OpenAI-compatible custom endpoints."""

from typing import Any

from council_mcp.models import CallLimits, ModelSpec
from council_mcp.providers.base import PreparedRequest, ProviderAdapter, ProviderError, join_text_fragments

OPENAI_BASE_URL = "https://api.openai.com/v1"


def _chat_payload(spec: ModelSpec, prompt: str, limits: CallLimits, system_prompt: str) -> dict[str, Any]:
    return {
        "model": spec.model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        "temperature": limits.temperature,
    }


class OpenAIProvider(ProviderAdapter):
    """OpenAI provider via the chat completions endpoint."""

    name = "openai"

    def prepare(self, spec: ModelSpec, prompt: str, limits: CallLimits, system_prompt: str) -> PreparedRequest:
        if not spec.api_key:
            raise ProviderError(spec.id, "missing api_key for openai.")
        base = (spec.api_url or OPENAI_BASE_URL).rstrip("/")
        return PreparedRequest(
            url=f"{base}/chat/completions",
            payload=_chat_payload(spec, prompt, limits, system_prompt),
            headers={"Authorization": f"Bearer {spec.api_key}"},
        )

    def extract_text(self, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return join_text_fragments(content)
        return None


class CustomProvider(OpenAIProvider):
    """Any OpenAI-compatible endpoint addressed by its full URL."""

    name = "custom"

    def prepare(self, spec: ModelSpec, prompt: str, limits: CallLimits, system_prompt: str) -> PreparedRequest:
        if not spec.api_url:
            raise ProviderError(spec.id, "missing api_url for custom provider.")
        headers = {"Authorization": f"Bearer {spec.api_key}"} if spec.api_key else {}
        return PreparedRequest(
            url=spec.api_url,
            payload=_chat_payload(spec, prompt, limits, system_prompt),
            headers=headers,
        )
