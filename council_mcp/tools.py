"""Tool descriptors, argument coercion and the lookup-and-validate registry."""

import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from council_mcp.models import ToolResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


class ArgumentError(ValueError):
    """Raised by argument helpers when a value has the wrong shape."""


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: dict[str, Any]

    @property
    def required(self) -> list[str]:
        return list(self.input_schema.get("required", []))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def _finite(raw: Any, key: str, kind: str) -> float:
    """Coerce a present argument to a finite float or raise ArgumentError."""
    if isinstance(raw, bool):
        raise ArgumentError(f"`{key}` must be {kind}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ArgumentError(f"`{key}` must be {kind}") from exc
    if not math.isfinite(value):
        raise ArgumentError(f"`{key}` must be a finite number")
    return value


def int_arg(
    args: Mapping[str, Any],
    key: str,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    """Read an integer argument, coercing numeric strings and clamping to range.

    Missing or null values yield ``default``. Booleans, non-numeric and
    non-finite values raise ArgumentError.
    """
    raw = args.get(key)
    if raw is None or raw == "":
        value = default
    else:
        value = int(_finite(raw, key, "an integer"))
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def float_arg(args: Mapping[str, Any], key: str, default: float) -> float:
    raw = args.get(key)
    if raw is None or raw == "":
        return default
    return _finite(raw, key, "a number")


def str_arg(args: Mapping[str, Any], key: str) -> str:
    raw = args.get(key)
    if raw is None:
        return ""
    if isinstance(raw, (dict, list)):
        raise ArgumentError(f"`{key}` must be a string")
    return str(raw).strip()


def str_list_arg(args: Mapping[str, Any], key: str) -> list[str]:
    raw = args.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ArgumentError(f"`{key}` must be an array of strings")
    return [str(item) for item in raw]


class ToolRegistry:
    """Ordered set of tools. Unknown names never reach a handler."""

    def __init__(self) -> None:
        self._tools: dict[str, tuple[ToolDescriptor, ToolHandler]] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        if descriptor.name in self._tools:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = (descriptor, handler)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[dict[str, Any]]:
        return [descriptor.to_dict() for descriptor, _ in self._tools.values()]

    def validate(self, name: str, arguments: Any) -> tuple[dict[str, Any] | None, str | None]:
        """Return (arguments, None) when callable, else (None, error message)."""
        if name not in self._tools:
            return None, f"Unknown tool: {name}"
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return None, f"Invalid arguments for {name}: expected an object."
        descriptor, _ = self._tools[name]
        missing = [key for key in descriptor.required if arguments.get(key) is None]
        if missing:
            return None, f"Missing required argument(s) for {name}: {', '.join(missing)}"
        return arguments, None

    async def call(self, name: str, arguments: Any) -> ToolResult:
        args, problem = self.validate(name, arguments)
        if problem is not None:
            logger.info("Rejected tool call: %s", problem)
            return ToolResult.error(problem)

        _, handler = self._tools[name]
        logger.info("Calling tool %s", name)
        try:
            return await handler(args)
        except ArgumentError as exc:
            return ToolResult.error(str(exc))
