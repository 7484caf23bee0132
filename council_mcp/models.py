"""Pure dataclasses for the model router and runner servers."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

PROVIDERS = ("openai", "anthropic", "gemini", "custom")


@dataclass(frozen=True)
class ModelSpec:
    id: str
    provider: str          # one of PROVIDERS
    model: str             # backend model string
    api_url: str = ""
    api_key: str = ""
    system_prompt: str = ""

    @classmethod
    def from_mapping(cls, raw: Any, fallback_id: str) -> "ModelSpec":
        """Build a spec from an untyped tool argument.

        Raises:
            ValueError: If ``raw`` is not an object, provider/model are missing,
                or the provider is not one of PROVIDERS.
        """
        if not isinstance(raw, Mapping):
            raise ValueError("model spec must be an object")
        provider = str(raw.get("provider") or "").strip().lower()
        model = str(raw.get("model") or "").strip()
        if not provider or not model:
            raise ValueError("model spec requires `provider` and `model`")
        if provider not in PROVIDERS:
            raise ValueError(f"unsupported provider: {provider}")
        return cls(
            id=str(raw.get("id") or fallback_id),
            provider=provider,
            model=model,
            api_url=str(raw.get("api_url") or ""),
            api_key=str(raw.get("api_key") or ""),
            system_prompt=str(raw.get("system_prompt") or ""),
        )


@dataclass(frozen=True)
class CallLimits:
    timeout_sec: float = 180
    temperature: float = 0.2
    max_tokens: int = 2048


@dataclass(frozen=True)
class GatewayResult:
    code: int              # 0 on success, HTTP status or 1/2 on failure
    text: str

    @property
    def ok(self) -> bool:
        return self.code == 0


@dataclass
class ToolResult:
    content: list[str] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "ToolResult":
        return cls(content=[text], is_error=is_error)

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(content=[text], is_error=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": t} for t in self.content],
            "isError": self.is_error,
        }


@dataclass
class DebateRound:
    round: int
    responses: dict[str, str] = field(default_factory=dict)


@dataclass
class BrainstormState:
    proposals: dict[str, str] = field(default_factory=dict)
    debates: list[DebateRound] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class BrainstormReport:
    requirement: str
    participants: list[str]
    debate_rounds: int
    synthesis_by: str
    proposals: dict[str, str]
    debates: list[DebateRound]
    synthesis: str
    errors: list[str]

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requirement": self.requirement,
            "participants": list(self.participants),
            "debate_rounds": self.debate_rounds,
            "synthesis_by": self.synthesis_by,
            "proposals": dict(self.proposals),
            "debates": [{"round": d.round, "responses": dict(d.responses)} for d in self.debates],
            "synthesis": self.synthesis,
            "errors": list(self.errors),
        }


@dataclass
class RunOutcome:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool
