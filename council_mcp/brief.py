"""Brainstorm brief files: markdown requirement with YAML front matter."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import frontmatter

from council_mcp.models import ModelSpec


@dataclass
class Brief:
    requirement: str
    participants: list[ModelSpec] = field(default_factory=list)
    debate_rounds: int | None = None
    synthesis_by: str | None = None
    source: str = ""


def _resolve_key(entry: dict, environ: Mapping[str, str]) -> dict:
    """Replace ``api_key_env`` with the key it names, leaving literal keys alone."""
    resolved = dict(entry)
    key_env = resolved.pop("api_key_env", None)
    if key_env and not resolved.get("api_key"):
        resolved["api_key"] = environ.get(str(key_env), "").strip()
    return resolved


def parse_brief(file_path: Path, environ: Mapping[str, str] | None = None) -> Brief:
    """Parse a brief file.

    Front matter keys: ``participants`` (list of model spec mappings; each may
    name its key with ``api_key_env``), ``debate_rounds``, ``synthesis_by``.
    The body is the requirement.

    Raises:
        ValueError: If a participant entry is not a valid model spec.
    """
    env = os.environ if environ is None else environ
    post = frontmatter.load(str(file_path))
    metadata = dict(post.metadata)

    participants: list[ModelSpec] = []
    for idx, entry in enumerate(metadata.get("participants") or []):
        if not isinstance(entry, dict):
            raise ValueError(f"participant #{idx + 1} in {file_path} must be a mapping")
        participants.append(ModelSpec.from_mapping(_resolve_key(entry, env), f"model_{idx + 1}"))

    rounds = metadata.get("debate_rounds")
    synthesis_by = metadata.get("synthesis_by")
    return Brief(
        requirement=post.content.strip(),
        participants=participants,
        debate_rounds=int(rounds) if rounds is not None else None,
        synthesis_by=str(synthesis_by) if synthesis_by else None,
        source=str(file_path),
    )
