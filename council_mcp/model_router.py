"""Model router tools: one-shot calls and multi-model brainstorms."""

import json
import logging
from typing import Any

from config.config_loader import AppConfig
from council_mcp.brainstorm import ModelCaller, run_brainstorm
from council_mcp.models import PROVIDERS, CallLimits, ModelSpec, ToolResult
from council_mcp.tools import ArgumentError, ToolDescriptor, ToolRegistry, float_arg, int_arg, str_arg

logger = logging.getLogger(__name__)

SERVER_NAME = "model-router"

_MODEL_SPEC_PROPERTIES: dict[str, Any] = {
    "id": {"type": "string"},
    "provider": {"type": "string", "enum": list(PROVIDERS)},
    "model": {"type": "string"},
    "api_url": {"type": "string"},
    "api_key": {"type": "string"},
    "system_prompt": {"type": "string"},
}

_LIMIT_PROPERTIES: dict[str, Any] = {
    "timeout_sec": {"type": "integer", "minimum": 1, "maximum": 3600},
    "temperature": {"type": "number"},
    "max_tokens": {"type": "integer", "minimum": 1, "maximum": 8192},
}

ONE_SHOT = ToolDescriptor(
    name="model.one_shot",
    description="Run one prompt against a selected provider/model.",
    input_schema={
        "type": "object",
        "properties": {
            "model": {
                "type": "object",
                "properties": _MODEL_SPEC_PROPERTIES,
                "required": ["provider", "model"],
                "additionalProperties": False,
            },
            "prompt": {"type": "string"},
            **_LIMIT_PROPERTIES,
        },
        "required": ["model", "prompt"],
        "additionalProperties": False,
    },
)

BRAINSTORM = ToolDescriptor(
    name="model.brainstorm",
    description="Run multi-model brainstorm + debate rounds + synthesis model selection.",
    input_schema={
        "type": "object",
        "properties": {
            "requirement": {"type": "string"},
            "participants": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": _MODEL_SPEC_PROPERTIES,
                    "required": ["id", "provider", "model"],
                    "additionalProperties": False,
                },
            },
            "debate_rounds": {"type": "integer", "minimum": 0, "maximum": 5},
            "synthesis_by": {"type": "string"},
            **_LIMIT_PROPERTIES,
        },
        "required": ["requirement", "participants"],
        "additionalProperties": False,
    },
)


def limits_from_args(args: dict[str, Any], config: AppConfig) -> CallLimits:
    defaults = config.defaults
    return CallLimits(
        timeout_sec=int_arg(args, "timeout_sec", defaults.timeout_sec, 1, 3600),
        temperature=float_arg(args, "temperature", defaults.temperature),
        max_tokens=int_arg(args, "max_tokens", defaults.max_tokens, 1, 8192),
    )


def parse_participants(raw: Any) -> list[ModelSpec]:
    """Turn the ``participants`` argument into model specs.

    Raises:
        ArgumentError: If the list is empty or any entry is invalid.
    """
    if not isinstance(raw, list) or not raw:
        raise ArgumentError("`participants` must include at least one valid model.")
    specs: list[ModelSpec] = []
    for idx, item in enumerate(raw):
        try:
            specs.append(ModelSpec.from_mapping(item, f"model_{idx + 1}"))
        except ValueError as exc:
            raise ArgumentError(f"Invalid participant #{idx + 1}: {exc}") from exc
    return specs


class ModelRouterTools:
    """Handlers for the model router surface, bound to one gateway and config."""

    def __init__(self, gateway: ModelCaller, config: AppConfig) -> None:
        self.gateway = gateway
        self.config = config

    async def one_shot(self, args: dict[str, Any]) -> ToolResult:
        try:
            spec = ModelSpec.from_mapping(args.get("model"), "model_1")
        except ValueError as exc:
            return ToolResult.error(f"Invalid model: {exc}")
        prompt = str_arg(args, "prompt")
        if not prompt:
            return ToolResult.error("`prompt` is required.")

        result = await self.gateway.call(spec, prompt, limits_from_args(args, self.config))
        return ToolResult.text(result.text, is_error=not result.ok)

    async def brainstorm(self, args: dict[str, Any]) -> ToolResult:
        requirement = str_arg(args, "requirement")
        if not requirement:
            return ToolResult.error("`requirement` is required.")
        participants = parse_participants(args.get("participants"))
        defaults = self.config.defaults

        report = await run_brainstorm(
            requirement=requirement,
            participants=participants,
            caller=self.gateway,
            prompts=self.config.prompts,
            limits=limits_from_args(args, self.config),
            # Clamped inside run_brainstorm, so no range here.
            debate_rounds=int_arg(args, "debate_rounds", defaults.debate_rounds),
            synthesis_by=str_arg(args, "synthesis_by") or None,
            fan_out=defaults.fan_out,
            max_debate_rounds=defaults.max_debate_rounds,
        )
        return ToolResult.text(
            json.dumps(report.to_dict(), indent=2, ensure_ascii=False),
            is_error=report.failed,
        )


def build_registry(gateway: ModelCaller, config: AppConfig) -> ToolRegistry:
    tools = ModelRouterTools(gateway, config)
    registry = ToolRegistry()
    registry.register(ONE_SHOT, tools.one_shot)
    registry.register(BRAINSTORM, tools.brainstorm)
    return registry
