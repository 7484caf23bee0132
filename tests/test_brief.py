"""Tests for council_mcp/brief.py."""

from pathlib import Path

import pytest

from council_mcp.brief import parse_brief

BRIEF = """\
---
debate_rounds: 2
synthesis_by: critic
participants:
  - id: planner
    provider: openai
    model: gpt-4o
    api_key_env: OPENAI_KEY
  - id: critic
    provider: anthropic
    model: claude-sonnet
    api_key: literal-key
    api_key_env: SHOULD_NOT_BE_USED
  - provider: custom
    model: local
    api_url: http://localhost:8080/v1/chat/completions
---

Design a retry policy for the billing webhook.
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "brief.md"
    path.write_text(text, encoding="utf-8")
    return path


def test_parse_brief(tmp_path):
    path = _write(tmp_path, BRIEF)
    brief = parse_brief(path, environ={"OPENAI_KEY": " sk-env ", "SHOULD_NOT_BE_USED": "x"})

    assert brief.requirement == "Design a retry policy for the billing webhook."
    assert brief.debate_rounds == 2
    assert brief.synthesis_by == "critic"
    assert brief.source == str(path)
    assert [p.id for p in brief.participants] == ["planner", "critic", "model_3"]
    assert brief.participants[0].api_key == "sk-env"
    assert brief.participants[1].api_key == "literal-key"
    assert brief.participants[2].api_url == "http://localhost:8080/v1/chat/completions"


def test_missing_env_key_becomes_empty(tmp_path):
    brief = parse_brief(_write(tmp_path, BRIEF), environ={})
    assert brief.participants[0].api_key == ""


def test_brief_without_front_matter(tmp_path):
    brief = parse_brief(_write(tmp_path, "Just a requirement.\n"), environ={})
    assert brief.requirement == "Just a requirement."
    assert brief.participants == []
    assert brief.debate_rounds is None
    assert brief.synthesis_by is None


def test_invalid_participant_raises(tmp_path):
    text = "---\nparticipants:\n  - provider: watson\n    model: x\n---\nreq\n"
    with pytest.raises(ValueError, match="unsupported provider"):
        parse_brief(_write(tmp_path, text), environ={})


def test_non_mapping_participant_raises(tmp_path):
    text = "---\nparticipants:\n  - just-a-string\n---\nreq\n"
    with pytest.raises(ValueError, match="participant #1"):
        parse_brief(_write(tmp_path, text), environ={})
