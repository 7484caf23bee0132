"""Google Gemini generateContent shape."""

from typing import Any
from urllib.parse import quote

from council_mcp.models import CallLimits, ModelSpec
from council_mcp.providers.base import PreparedRequest, ProviderAdapter, ProviderError, join_text_fragments

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(ProviderAdapter):
    """Google Gemini provider via the REST generateContent endpoint."""

    name = "gemini"

    def prepare(self, spec: ModelSpec, prompt: str, limits: CallLimits, system_prompt: str) -> PreparedRequest:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": {
                "temperature": limits.temperature,
                "maxOutputTokens": limits.max_tokens,
            },
        }
        if spec.api_url:
            headers = {"x-goog-api-key": spec.api_key} if spec.api_key else {}
            return PreparedRequest(url=spec.api_url, payload=payload, headers=headers)

        if not spec.api_key:
            raise ProviderError(spec.id, "missing api_key for gemini.")
        return PreparedRequest(
            url=f"{GEMINI_BASE_URL}/models/{quote(spec.model, safe='')}:generateContent",
            payload=payload,
            params={"key": spec.api_key},
        )

    def extract_text(self, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return None
        content = candidates[0].get("content")
        if not isinstance(content, dict):
            return None
        return join_text_fragments(content.get("parts"))
