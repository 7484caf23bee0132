"""Brainstorm orchestration: proposals, critique rounds, synthesis."""

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from config.config_loader import PromptsConfig
from council_mcp.models import (
    BrainstormReport,
    BrainstormState,
    CallLimits,
    DebateRound,
    GatewayResult,
    ModelSpec,
)

logger = logging.getLogger(__name__)

MAX_DEBATE_ROUNDS = 5


class ModelCaller(Protocol):
    async def call(self, spec: ModelSpec, prompt: str, limits: CallLimits) -> GatewayResult: ...


def clamp_debate_rounds(value: int, maximum: int = MAX_DEBATE_ROUNDS) -> int:
    return max(0, min(maximum, int(value)))


def resolve_synthesizer(participants: Sequence[ModelSpec], synthesis_by: str | None) -> ModelSpec:
    """Pick the participant whose id matches, else the first participant."""
    if synthesis_by:
        for spec in participants:
            if spec.id == synthesis_by:
                return spec
        logger.info("Synthesis participant %r not found, using %s", synthesis_by, participants[0].id)
    return participants[0]


def _others(latest: dict[str, str], own_id: str) -> dict[str, str]:
    return {k: v for k, v in latest.items() if k != own_id}


def _dump(value: object) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


async def _fan_out(
    caller: ModelCaller,
    calls: Sequence[tuple[ModelSpec, str]],
    limits: CallLimits,
    fan_out: int,
) -> list[GatewayResult]:
    """Issue calls in list order with at most ``fan_out`` in flight.

    Results come back in the same order as ``calls``. Unexpected exceptions
    from the caller are folded into a failed GatewayResult.
    """
    gate = asyncio.Semaphore(max(1, fan_out))

    async def _one(spec: ModelSpec, prompt: str) -> GatewayResult:
        async with gate:
            try:
                return await caller.call(spec, prompt, limits)
            except Exception as exc:
                logger.warning("Participant %s raised unexpectedly: %s", spec.id, exc)
                return GatewayResult(1, f"[{spec.id}] unexpected error: {exc}")

    return list(await asyncio.gather(*(_one(spec, prompt) for spec, prompt in calls)))


def _record(
    results: Sequence[GatewayResult],
    participants: Sequence[ModelSpec],
    label: str,
    errors: list[str],
) -> dict[str, str]:
    outputs: dict[str, str] = {}
    for spec, result in zip(participants, results):
        if result.ok:
            outputs[spec.id] = result.text.strip()
        else:
            errors.append(f"[{label}:{spec.id}] code={result.code}")
            outputs[spec.id] = f"(failed) {result.text}"
    return outputs


async def run_brainstorm(
    requirement: str,
    participants: Sequence[ModelSpec],
    caller: ModelCaller,
    prompts: PromptsConfig,
    limits: CallLimits,
    debate_rounds: int = 1,
    synthesis_by: str | None = None,
    fan_out: int = 1,
    max_debate_rounds: int = MAX_DEBATE_ROUNDS,
    on_round_complete: Callable[[DebateRound], None] | None = None,
) -> BrainstormReport:
    """Run proposal, debate and synthesis stages over the participants.

    Args:
        requirement: Free-text requirement every stage works on.
        participants: Ordered, non-empty list of model specs.
        caller: Gateway used for every model call.
        prompts: Prompt templates from config.
        limits: Shared per-call timeout, temperature and token cap.
        debate_rounds: Requested critique rounds, clamped to [0, max_debate_rounds].
        synthesis_by: Participant id that writes the synthesis.
        fan_out: Concurrent calls allowed within one stage.
        on_round_complete: Optional callback invoked after each debate round.

    Returns:
        BrainstormReport; a failure of any call is recorded in ``errors`` and
        never aborts the pipeline.

    Raises:
        ValueError: If participants is empty.
    """
    if not participants:
        raise ValueError("brainstorm requires at least one participant")

    rounds = clamp_debate_rounds(debate_rounds, max_debate_rounds)
    synthesizer = resolve_synthesizer(participants, synthesis_by)
    state = BrainstormState()

    logger.info("Proposal stage with %d participants", len(participants))
    proposal_prompt = prompts.proposal.format(requirement=requirement)
    results = await _fan_out(caller, [(spec, proposal_prompt) for spec in participants], limits, fan_out)
    state.proposals = _record(results, participants, "proposal", state.errors)

    latest = dict(state.proposals)
    for round_num in range(1, rounds + 1):
        logger.info("Debate round %d/%d", round_num, rounds)
        calls = [
            (
                spec,
                prompts.critique.format(requirement=requirement, others=_dump(_others(latest, spec.id))),
            )
            for spec in participants
        ]
        results = await _fan_out(caller, calls, limits, fan_out)
        current = DebateRound(
            round=round_num,
            responses=_record(results, participants, f"debate-r{round_num}", state.errors),
        )
        state.debates.append(current)
        latest = current.responses
        if on_round_complete:
            on_round_complete(current)

    logger.info("Running synthesis via %s", synthesizer.id)
    synthesis_prompt = prompts.synthesis.format(
        requirement=requirement,
        proposals=_dump(state.proposals),
        debates=_dump([{"round": d.round, "responses": d.responses} for d in state.debates]),
    )
    (synth,) = await _fan_out(caller, [(synthesizer, synthesis_prompt)], limits, 1)
    if not synth.ok:
        state.errors.append(f"[synthesis:{synthesizer.id}] code={synth.code}")

    if state.errors:
        logger.warning("Brainstorm finished with %d error(s)", len(state.errors))

    return BrainstormReport(
        requirement=requirement,
        participants=[spec.id for spec in participants],
        debate_rounds=rounds,
        synthesis_by=synthesizer.id,
        proposals=state.proposals,
        debates=state.debates,
        synthesis=synth.text,
        errors=state.errors,
    )
