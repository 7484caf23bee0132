"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from config.config_loader import AppConfig, PromptsConfig, RunnerConfig, load_config
from council_mcp.models import CallLimits, GatewayResult, ModelSpec


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Bundled settings with the runner allow-list pinned to tmp_path."""
    return load_config(environ={"CLAUDE_RUNNER_ALLOWED_ROOTS": str(tmp_path)})


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="You are a helpful assistant.",
        proposal="PROPOSE\n{requirement}",
        critique="CRITIQUE\n{requirement}\nOTHERS:\n{others}",
        synthesis="SYNTHESIZE\n{requirement}\nPROPOSALS:\n{proposals}\nDEBATES:\n{debates}",
        review_diff="REVIEW\n{diff}",
        generate_patch="PATCH\n{task}\n{context}",
    )


@pytest.fixture
def sample_limits() -> CallLimits:
    return CallLimits(timeout_sec=30, temperature=0.2, max_tokens=256)


@pytest.fixture
def three_participants() -> list[ModelSpec]:
    return [
        ModelSpec(id="A", provider="openai", model="gpt-test", api_key="k-a"),
        ModelSpec(id="B", provider="anthropic", model="claude-test", api_key="k-b"),
        ModelSpec(id="C", provider="gemini", model="gemini-test", api_key="k-c"),
    ]


@pytest.fixture
def runner_config(tmp_path: Path) -> RunnerConfig:
    return RunnerConfig(
        command="echo",
        command_args=(),
        timeout_sec=30,
        max_file_chars=6000,
        allowed_roots=(tmp_path,),
    )


class FakeGateway:
    """Test double for ModelGateway that records every call.

    ``replies`` maps participant id to either a string (success) or a
    GatewayResult (returned as-is). Unknown ids get "<id> says hi".
    ``fail_stage`` maps participant id to a prompt prefix whose calls fail.
    """

    def __init__(
        self,
        replies: dict[str, str | GatewayResult] | None = None,
        fail_stage: dict[str, str] | None = None,
    ) -> None:
        self.replies = replies or {}
        self.fail_stage = fail_stage or {}
        self.calls: list[tuple[ModelSpec, str, CallLimits]] = []

    async def call(self, spec: ModelSpec, prompt: str, limits: CallLimits) -> GatewayResult:
        self.calls.append((spec, prompt, limits))
        prefix = self.fail_stage.get(spec.id)
        if prefix is not None and prompt.startswith(prefix):
            return GatewayResult(500, f"{spec.id} backend exploded")
        reply = self.replies.get(spec.id, f"{spec.id} says hi")
        if isinstance(reply, GatewayResult):
            return reply
        return GatewayResult(0, f"  {reply}  ")

    def prompts_for(self, spec_id: str) -> list[str]:
        return [prompt for spec, prompt, _ in self.calls if spec.id == spec_id]


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()
