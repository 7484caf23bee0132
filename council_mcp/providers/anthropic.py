"""Anthropic Messages API shape."""

from typing import Any

from council_mcp.models import CallLimits, ModelSpec
from council_mcp.providers.base import PreparedRequest, ProviderAdapter, ProviderError

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(ProviderAdapter):
    """Anthropic Claude provider via the messages endpoint."""

    name = "anthropic"

    def prepare(self, spec: ModelSpec, prompt: str, limits: CallLimits, system_prompt: str) -> PreparedRequest:
        if not spec.api_key:
            raise ProviderError(spec.id, "missing api_key for anthropic.")
        return PreparedRequest(
            url=(spec.api_url or ANTHROPIC_MESSAGES_URL).rstrip("/"),
            payload={
                "model": spec.model,
                "system": system_prompt,
                "max_tokens": limits.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": spec.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

    def extract_text(self, payload: Any) -> str | None:
        if not isinstance(payload, dict) or not isinstance(payload.get("content"), list):
            return None
        text_blocks = [
            block["text"]
            for block in payload["content"]
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        return "\n".join(text_blocks).strip() or None
