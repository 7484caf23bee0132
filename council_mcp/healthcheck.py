"""Participant health checks: ping each backend before a brainstorm."""

import asyncio
import logging
from collections.abc import Sequence

from council_mcp.brainstorm import ModelCaller
from council_mcp.models import CallLimits, ModelSpec

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_PING_LIMITS = CallLimits(timeout_sec=15, temperature=0.0, max_tokens=16)


async def _check_one(caller: ModelCaller, spec: ModelSpec, limits: CallLimits) -> tuple[str, bool, str]:
    """Ping a single participant. Returns (id, ok, error_message)."""
    try:
        result = await caller.call(spec, _PING_PROMPT, limits)
    except Exception as exc:
        logger.debug("Health check raised for %s: %s", spec.id, exc)
        return spec.id, False, str(exc) or exc.__class__.__name__
    if result.ok:
        return spec.id, True, ""
    logger.debug("Health check failed for %s: code=%d", spec.id, result.code)
    return spec.id, False, f"code={result.code}: {result.text}"


async def run_health_checks(
    caller: ModelCaller,
    participants: Sequence[ModelSpec],
    limits: CallLimits = _PING_LIMITS,
) -> dict[str, tuple[bool, str]]:
    """Ping all participants in parallel.

    Returns:
        Dict mapping participant id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(caller, spec, limits) for spec in participants))
    return {spec_id: (ok, err) for spec_id, ok, err in results}
