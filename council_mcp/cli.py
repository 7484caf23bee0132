"""Click CLI: start either stdio server, or run a brainstorm brief from a terminal."""

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, ConfigError, load_config, parse_allowed_roots
from council_mcp import claude_runner, model_router
from council_mcp.bridge import ExecutionBridge
from council_mcp.brainstorm import ModelCaller, run_brainstorm
from council_mcp.brief import Brief, parse_brief
from council_mcp.gateway import ModelGateway
from council_mcp.healthcheck import run_health_checks
from council_mcp.models import BrainstormReport, CallLimits, DebateRound
from council_mcp.output import console, print_report, save_to_file
from council_mcp.rpc import Dispatcher
from council_mcp.server import run_stdio

logger = logging.getLogger(__name__)

# stdout carries protocol frames for the servers, so diagnostics use stderr.
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


def _load_brief(path: str) -> Brief:
    try:
        brief = parse_brief(Path(path))
    except ValueError as exc:
        console.print(f"[bold red]Brief error:[/bold red] {escape(str(exc))}")
        sys.exit(1)
    if not brief.participants:
        console.print("[bold red]Error:[/bold red] Brief lists no participants in its front matter.")
        sys.exit(1)
    return brief


async def _brainstorm_brief(
    config: AppConfig,
    brief: Brief,
    caller: ModelCaller,
    rounds: int | None,
    synthesis_by: str | None,
) -> BrainstormReport:
    """Run one brief. Precedence for settings: CLI flag > front matter > config default."""
    effective_rounds = (
        rounds if rounds is not None
        else brief.debate_rounds if brief.debate_rounds is not None
        else config.defaults.debate_rounds
    )

    def on_round_complete(rnd: DebateRound) -> None:
        console.print(f"[green]OK[/green] Debate round {rnd.round} complete ({len(rnd.responses)} responses)")

    defaults = config.defaults
    return await run_brainstorm(
        requirement=brief.requirement,
        participants=brief.participants,
        caller=caller,
        prompts=config.prompts,
        limits=CallLimits(defaults.timeout_sec, defaults.temperature, defaults.max_tokens),
        debate_rounds=effective_rounds,
        synthesis_by=synthesis_by or brief.synthesis_by,
        fan_out=defaults.fan_out,
        max_debate_rounds=defaults.max_debate_rounds,
        on_round_complete=on_round_complete,
    )


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--settings", "settings_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Settings file (default: bundled config/settings.yaml)")
@click.pass_context
def main(ctx: click.Context, verbose: bool, settings_path: str | None) -> None:
    """council-mcp -- multi-model brainstorm and sandboxed runner servers.

    \b
    Examples:
      council-mcp serve-models
      council-mcp serve-runner --allowed-roots /work/repo,/tmp/scratch
      council-mcp brainstorm brief.md --rounds 2 --output ./output
      council-mcp check brief.md
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        ctx.obj = load_config(Path(settings_path)) if settings_path else load_config()
    except (FileNotFoundError, ConfigError) as exc:
        err_console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)


@main.command("serve-models")
@click.pass_obj
def serve_models(config: AppConfig) -> None:
    """Serve model.one_shot and model.brainstorm over stdio."""
    gateway = ModelGateway(default_system_prompt=config.prompts.system)
    dispatcher = Dispatcher(
        model_router.SERVER_NAME,
        config.server.version,
        model_router.build_registry(gateway, config),
        config.server.protocol_version,
    )
    run_stdio(dispatcher, closers=[gateway])


@main.command("serve-runner")
@click.option("--allowed-roots", default=None,
              help="Comma-separated allowed working-directory roots (overrides the environment)")
@click.option("--command", "command", default=None, help="External command to run (default: from config)")
@click.pass_obj
def serve_runner(config: AppConfig, allowed_roots: str | None, command: str | None) -> None:
    """Serve the claude.* tools over stdio."""
    runner = config.runner
    if allowed_roots:
        runner = dataclasses.replace(runner, allowed_roots=parse_allowed_roots(allowed_roots))
    if command:
        runner = dataclasses.replace(runner, command=command)
    config = dataclasses.replace(config, runner=runner)

    logger.info("Allowed roots: %s", ", ".join(str(r) for r in runner.allowed_roots))
    dispatcher = Dispatcher(
        claude_runner.SERVER_NAME,
        config.server.version,
        claude_runner.build_registry(ExecutionBridge(runner), config),
        config.server.protocol_version,
    )
    run_stdio(dispatcher)


@main.command()
@click.argument("brief_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--rounds", default=None, type=int, help="Debate rounds (default: front matter, then config)")
@click.option("--synthesis-by", default=None, help="Participant id that writes the synthesis")
@click.option("--output", "output_dir", default=None, type=click.Path(file_okay=False),
              help="Save a markdown transcript to this directory")
@click.pass_obj
def brainstorm(
    config: AppConfig,
    brief_file: str,
    rounds: int | None,
    synthesis_by: str | None,
    output_dir: str | None,
) -> None:
    """Run the brainstorm described by BRIEF_FILE and print the report."""
    brief = _load_brief(brief_file)
    console.print(
        f"\n[bold cyan]Brainstorm[/bold cyan] -- {len(brief.participants)} participants: "
        f"{', '.join(p.id for p in brief.participants)}"
    )

    async def _run() -> BrainstormReport:
        async with ModelGateway(default_system_prompt=config.prompts.system) as gateway:
            return await _brainstorm_brief(config, brief, gateway, rounds, synthesis_by)

    report = asyncio.run(_run())
    print_report(report)

    if output_dir:
        saved = save_to_file(report, Path(output_dir), slug_override=Path(brief_file).stem)
        console.print(f"\n[dim]Saved to: {saved}[/dim]")

    if report.failed:
        sys.exit(2)


@main.command()
@click.argument("brief_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def check(config: AppConfig, brief_file: str) -> None:
    """Ping every participant listed in BRIEF_FILE."""
    brief = _load_brief(brief_file)
    console.print("\n[bold]Checking participants...[/bold]")

    async def _run() -> dict[str, tuple[bool, str]]:
        async with ModelGateway(default_system_prompt=config.prompts.system) as gateway:
            return await run_health_checks(gateway, brief.participants)

    results = asyncio.run(_run())
    failed = 0
    for participant_id, (ok, err) in results.items():
        if ok:
            console.print(f"  [green]OK  [/green] {participant_id}")
        else:
            failed += 1
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {participant_id}: {escape(short_err)}")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
