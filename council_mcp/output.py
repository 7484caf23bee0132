"""Rich console output and markdown file save for brainstorm reports."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from council_mcp.models import BrainstormReport

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _print_stage(title: str, outputs: dict[str, str]) -> None:
    console.print(Rule(f"[bold cyan]{title}[/bold cyan]"))
    for participant_id, text in outputs.items():
        failed = text.startswith("(failed)")
        console.print(
            Panel(
                Text(_preview(text)),
                title=f"[bold]{escape(participant_id)}[/bold]",
                border_style="red" if failed else "dim",
            )
        )


def print_report(report: BrainstormReport) -> None:
    """Print stage summaries, then the full synthesis as markdown."""
    _print_stage("Proposals", report.proposals)
    for rnd in report.debates:
        _print_stage(f"Debate Round {rnd.round}", rnd.responses)

    console.print(Rule("[bold green]Synthesis[/bold green]"))
    console.print(
        Text(
            f"Synthesized by: {report.synthesis_by} | "
            f"Participants: {', '.join(report.participants)} | "
            f"Rounds: {report.debate_rounds}",
            style="dim",
        )
    )
    console.print(Markdown(report.synthesis))

    if report.errors:
        console.print(Rule("[bold red]Errors[/bold red]"))
        for err in report.errors:
            console.print(f"  [red]{escape(err)}[/red]")


def save_to_file(report: BrainstormReport, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full brainstorm transcript as a markdown file.

    Args:
        report: The completed report.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the requirement text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(report.requirement)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Brainstorm: {report.requirement[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Participants:** {', '.join(report.participants)}",
        f"**Synthesizer:** {report.synthesis_by}",
        f"**Debate rounds:** {report.debate_rounds}",
        "",
        "---",
        "",
        "## Proposals",
        "",
    ]
    for participant_id, text in report.proposals.items():
        lines += [f"### {participant_id}", "", text, ""]

    for rnd in report.debates:
        lines += [f"## Debate Round {rnd.round}", ""]
        for participant_id, text in rnd.responses.items():
            lines += [f"### {participant_id}", "", text, ""]

    lines += [f"## Synthesis (by {report.synthesis_by})", "", report.synthesis, ""]

    if report.errors:
        lines += ["## Errors", ""]
        lines += [f"- `{err}`" for err in report.errors]
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Brainstorm saved to: %s", filepath)
    return filepath
