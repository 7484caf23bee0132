"""Claude runner tools: prompt templates over the sandboxed execution bridge."""

import logging
from typing import Any

from config.config_loader import AppConfig
from council_mcp.bridge import ExecutionBridge, SandboxViolation, format_run
from council_mcp.models import ToolResult
from council_mcp.tools import ToolDescriptor, ToolRegistry, int_arg, str_arg, str_list_arg

logger = logging.getLogger(__name__)

SERVER_NAME = "claude-runner"

_CWD_AND_TIMEOUT: dict[str, Any] = {
    "cwd": {"type": "string"},
    "timeout_sec": {"type": "integer", "minimum": 1, "maximum": 3600},
}

ONE_SHOT = ToolDescriptor(
    name="claude.one_shot",
    description="Run a one-shot prompt with `claude -p` and return stdout/stderr metadata.",
    input_schema={
        "type": "object",
        "properties": {
            "prompt": {"type": "string"},
            **_CWD_AND_TIMEOUT,
            "context_files": {"type": "array", "items": {"type": "string"}},
            "max_file_chars": {"type": "integer", "minimum": 100, "maximum": 50000},
        },
        "required": ["prompt"],
        "additionalProperties": False,
    },
)

REVIEW_DIFF = ToolDescriptor(
    name="claude.review_diff",
    description="Review a unified diff and report findings by severity.",
    input_schema={
        "type": "object",
        "properties": {"diff": {"type": "string"}, **_CWD_AND_TIMEOUT},
        "required": ["diff"],
        "additionalProperties": False,
    },
)

GENERATE_PATCH = ToolDescriptor(
    name="claude.generate_patch",
    description="Generate a unified diff patch from context and instructions.",
    input_schema={
        "type": "object",
        "properties": {"task": {"type": "string"}, "context": {"type": "string"}, **_CWD_AND_TIMEOUT},
        "required": ["task", "context"],
        "additionalProperties": False,
    },
)


class ClaudeRunnerTools:
    """Handlers for the runner surface. Every handler checks cwd before anything else."""

    def __init__(self, bridge: ExecutionBridge, config: AppConfig) -> None:
        self.bridge = bridge
        self.config = config

    async def _execute(self, args: dict[str, Any], prompt: str, files: list[str] | None = None) -> ToolResult:
        try:
            cwd = self.bridge.resolve_cwd(str_arg(args, "cwd") or None)
        except SandboxViolation as exc:
            logger.warning("Sandbox violation: %s", exc)
            return ToolResult.error(str(exc))

        runner = self.config.runner
        timeout_sec = int_arg(args, "timeout_sec", runner.timeout_sec, 1, 3600)
        if files:
            max_chars = int_arg(args, "max_file_chars", runner.max_file_chars, 100, 50000)
            prompt = self.bridge.inline_files(prompt, cwd, files, max_chars)

        outcome = await self.bridge.run(prompt, cwd, timeout_sec)
        return ToolResult.text(
            format_run(outcome, cwd, self.bridge.describe_command()),
            is_error=outcome.exit_code != 0,
        )

    async def one_shot(self, args: dict[str, Any]) -> ToolResult:
        prompt = str_arg(args, "prompt")
        if not prompt:
            return ToolResult.error("`prompt` is required.")
        return await self._execute(args, prompt, str_list_arg(args, "context_files"))

    async def review_diff(self, args: dict[str, Any]) -> ToolResult:
        diff = str_arg(args, "diff")
        if not diff:
            return ToolResult.error("`diff` is required.")
        return await self._execute(args, self.config.prompts.review_diff.format(diff=diff))

    async def generate_patch(self, args: dict[str, Any]) -> ToolResult:
        task = str_arg(args, "task")
        context = str_arg(args, "context")
        if not task or not context:
            return ToolResult.error("`task` and `context` are required.")
        return await self._execute(
            args,
            self.config.prompts.generate_patch.format(task=task, context=context),
        )


def build_registry(bridge: ExecutionBridge, config: AppConfig) -> ToolRegistry:
    tools = ClaudeRunnerTools(bridge, config)
    registry = ToolRegistry()
    registry.register(ONE_SHOT, tools.one_shot)
    registry.register(REVIEW_DIFF, tools.review_diff)
    registry.register(GENERATE_PATCH, tools.generate_patch)
    return registry
