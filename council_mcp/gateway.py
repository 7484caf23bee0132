"""Provider-normalizing model gateway: one call contract over four API shapes."""

import json
import logging
import time
from typing import Any

import httpx

from council_mcp.models import CallLimits, GatewayResult, ModelSpec
from council_mcp.providers.anthropic import AnthropicProvider
from council_mcp.providers.base import DEFAULT_SYSTEM_PROMPT, ProviderAdapter, ProviderError
from council_mcp.providers.gemini import GeminiProvider
from council_mcp.providers.openai_provider import CustomProvider, OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_ADAPTERS: dict[str, ProviderAdapter] = {
    "openai": OpenAIProvider(),
    "anthropic": AnthropicProvider(),
    "gemini": GeminiProvider(),
    "custom": CustomProvider(),
}

# Returned for requests that never produced an HTTP response.
TRANSPORT_ERROR_CODE = 1
# Returned when a spec cannot be turned into a request at all.
SPEC_ERROR_CODE = 2


class ModelGateway:
    """Call any configured backend and normalize the outcome to (code, text).

    Never raises for backend trouble: missing credentials, HTTP errors,
    timeouts and connection failures all come back as a nonzero code with
    diagnostic text.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._default_system_prompt = default_system_prompt

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ModelGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def call(self, spec: ModelSpec, prompt: str, limits: CallLimits) -> GatewayResult:
        adapter = PROVIDER_ADAPTERS.get(spec.provider)
        if adapter is None:
            return GatewayResult(SPEC_ERROR_CODE, f"[{spec.id}] unsupported provider: {spec.provider}")

        try:
            request = adapter.prepare(
                spec,
                prompt,
                limits,
                adapter.system_prompt(spec, self._default_system_prompt),
            )
        except ProviderError as exc:
            logger.warning("Skipping call to %s: %s", spec.id, exc)
            return GatewayResult(SPEC_ERROR_CODE, str(exc))
        except (ValueError, UnicodeError) as exc:
            logger.warning("Could not build request for %s: %s", spec.id, exc)
            return GatewayResult(TRANSPORT_ERROR_CODE, f"[{spec.id}] invalid request: {exc}")

        start = time.monotonic()
        try:
            response = await self._get_client().post(
                request.url,
                json=request.payload,
                headers=request.headers,
                params=request.params or None,
                timeout=limits.timeout_sec,
            )
        except httpx.TimeoutException:
            logger.warning("%s (%s) timed out after %ss", spec.id, spec.provider, limits.timeout_sec)
            return GatewayResult(TRANSPORT_ERROR_CODE, f"Request timed out after {limits.timeout_sec}s")
        except httpx.HTTPError as exc:
            logger.warning("%s (%s) request failed: %s", spec.id, spec.provider, exc)
            return GatewayResult(TRANSPORT_ERROR_CODE, str(exc) or exc.__class__.__name__)
        # Raised while httpx builds the request: bad URL, non-ASCII header
        # value, or a payload JSON cannot encode.
        except (httpx.InvalidURL, ValueError, UnicodeError) as exc:
            logger.warning("%s (%s) request rejected before sending: %s", spec.id, spec.provider, exc)
            return GatewayResult(TRANSPORT_ERROR_CODE, f"[{spec.id}] invalid request: {exc}")

        latency = time.monotonic() - start
        raw = response.text
        status = response.status_code
        logger.info("%s (%s/%s): HTTP %d in %.2fs", spec.id, spec.provider, spec.model, status, latency)

        if status >= 400 or status == 0:
            return GatewayResult(status or TRANSPORT_ERROR_CODE, raw)

        parsed = _parse_json(raw)
        text = adapter.extract_text(parsed)
        if text is None:
            text = json.dumps(parsed, indent=2, ensure_ascii=False) if parsed else raw
        return GatewayResult(0, text)


def _parse_json(raw: str) -> Any:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}
