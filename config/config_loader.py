"""Load settings.yaml into typed dataclasses. Resolves the runner allow-list at startup."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


class ConfigError(Exception):
    """Raised when settings.yaml is present but unusable."""


@dataclass
class DefaultsConfig:
    timeout_sec: int
    temperature: float
    max_tokens: int
    debate_rounds: int
    max_debate_rounds: int
    fan_out: int = 1


@dataclass
class ServerConfig:
    protocol_version: str
    version: str


@dataclass(frozen=True)
class RunnerConfig:
    command: str
    command_args: tuple[str, ...]
    timeout_sec: int
    max_file_chars: int
    allowed_roots: tuple[Path, ...] = ()


@dataclass
class PromptsConfig:
    system: str
    proposal: str
    critique: str
    synthesis: str
    review_diff: str
    generate_patch: str


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    server: ServerConfig
    runner: RunnerConfig
    prompts: PromptsConfig
    settings_path: Path = field(default=_SETTINGS_PATH)


def parse_allowed_roots(raw: str | None, fallback: Path | None = None) -> tuple[Path, ...]:
    """Split a comma-separated root list into resolved absolute paths.

    Empty or missing input yields the fallback (the process working directory
    when no fallback is given).
    """
    roots = tuple(Path(part.strip()).resolve() for part in (raw or "").split(",") if part.strip())
    if roots:
        return roots
    return ((fallback or Path.cwd()).resolve(),)


def load_config(
    settings_path: Path = _SETTINGS_PATH,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    The runner allow-list is read from the environment variable named by
    ``runner.allowed_roots_env`` exactly once, here.

    Raises FileNotFoundError if the settings file is missing and ConfigError
    if a required section or key is absent or has the wrong type.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    env = os.environ if environ is None else environ

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file is not a mapping: {settings_path}")

    try:
        defaults_raw = raw["defaults"]
        defaults = DefaultsConfig(
            timeout_sec=int(defaults_raw["timeout_sec"]),
            temperature=float(defaults_raw["temperature"]),
            max_tokens=int(defaults_raw["max_tokens"]),
            debate_rounds=int(defaults_raw["debate_rounds"]),
            max_debate_rounds=int(defaults_raw["max_debate_rounds"]),
            fan_out=max(1, int(defaults_raw.get("fan_out", 1))),
        )

        server_raw = raw["server"]
        server = ServerConfig(
            protocol_version=str(server_raw["protocol_version"]),
            version=str(server_raw["version"]),
        )

        runner_raw = raw["runner"]
        roots_env = str(runner_raw.get("allowed_roots_env", "CLAUDE_RUNNER_ALLOWED_ROOTS"))
        runner = RunnerConfig(
            command=str(runner_raw["command"]),
            command_args=tuple(str(a) for a in runner_raw.get("command_args", [])),
            timeout_sec=int(runner_raw["timeout_sec"]),
            max_file_chars=int(runner_raw["max_file_chars"]),
            allowed_roots=parse_allowed_roots(env.get(roots_env)),
        )

        prompts_raw = raw["prompts"]
        prompts = PromptsConfig(
            system=str(prompts_raw["system"]),
            proposal=prompts_raw["proposal"],
            critique=prompts_raw["critique"],
            synthesis=prompts_raw["synthesis"],
            review_diff=prompts_raw["review_diff"],
            generate_patch=prompts_raw["generate_patch"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings in {settings_path}: {exc!r}") from exc

    logger.debug(
        "Runner allowed roots (%s): %s",
        roots_env,
        ", ".join(str(r) for r in runner.allowed_roots),
    )

    return AppConfig(
        defaults=defaults,
        server=server,
        runner=runner,
        prompts=prompts,
        settings_path=settings_path,
    )
