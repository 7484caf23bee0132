"""Allow-list sandboxed execution of the external code-generation CLI."""

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from config.config_loader import RunnerConfig
from council_mcp.models import RunOutcome

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124


class SandboxViolation(Exception):
    """Raised when a working directory falls outside every allowed root."""


def is_within(root: Path, target: Path) -> bool:
    """True when target equals root or descends from it, compared by path components."""
    return target == root or root in target.parents


def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        if sys.platform != "win32":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


class ExecutionBridge:
    """Run the configured command inside an allowed working directory.

    The allow-list comes from the RunnerConfig handed to the constructor and
    never changes afterwards.
    """

    def __init__(self, config: RunnerConfig) -> None:
        if not config.allowed_roots:
            raise ValueError("RunnerConfig.allowed_roots must not be empty")
        self.config = config
        self.allowed_roots: tuple[Path, ...] = tuple(Path(r).resolve() for r in config.allowed_roots)

    def is_allowed(self, path: Path) -> bool:
        return any(is_within(root, path) for root in self.allowed_roots)

    def resolve_cwd(self, raw_cwd: str | None) -> Path:
        """Resolve the requested directory (default: process cwd) and check it.

        Raises:
            SandboxViolation: If the resolved path is outside every allowed root.
        """
        cwd = Path(raw_cwd or os.getcwd()).resolve()
        if not self.is_allowed(cwd):
            roots = ", ".join(str(r) for r in self.allowed_roots)
            raise SandboxViolation(f"cwd '{cwd}' is outside allowed roots: {roots}")
        return cwd

    def inline_files(self, prompt: str, cwd: Path, files: Sequence[str], max_chars: int) -> str:
        """Append each context file, truncated to max_chars, after the prompt."""
        if not files:
            return prompt
        chunks = [prompt, "", "Context files:"]
        for rel in files:
            chunks.append(f"\n[FILE: {rel}]")
            full = (cwd / rel).resolve()
            if not self.is_allowed(full):
                chunks.append("(outside allowed roots)")
                continue
            if not full.exists():
                chunks.append("(missing)")
                continue
            try:
                content = full.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not read context file %s: %s", full, exc)
                content = "(read failed)"
            chunks.append(content[:max_chars])
        return "\n".join(chunks)

    def command_line(self, prompt: str) -> list[str]:
        return [self.config.command, *self.config.command_args, prompt]

    def describe_command(self) -> str:
        return " ".join([self.config.command, *self.config.command_args, "<prompt>"])

    async def run(self, prompt: str, cwd: Path, timeout_sec: float) -> RunOutcome:
        """Spawn the command and wait at most timeout_sec for it.

        On timeout the whole process group is killed and the outcome carries
        ``timed_out=True`` with exit code 124.
        """
        argv = self.command_line(prompt)
        logger.info("Running %s in %s (timeout %ss)", self.describe_command(), cwd, timeout_sec)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except OSError as exc:
            logger.warning("Failed to start %s: %s", argv[0], exc)
            return RunOutcome(exit_code=1, stdout="", stderr=str(exc), timed_out=False)

        communicate = asyncio.ensure_future(proc.communicate())
        timed_out = False
        try:
            stdout, stderr = await asyncio.wait_for(asyncio.shield(communicate), timeout=timeout_sec)
        except TimeoutError:
            timed_out = True
            logger.warning("%s timed out after %ss, killing", argv[0], timeout_sec)
            _kill_tree(proc)
            stdout, stderr = await communicate

        exit_code = TIMEOUT_EXIT_CODE if timed_out else (proc.returncode if proc.returncode is not None else 1)
        return RunOutcome(
            exit_code=exit_code,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            timed_out=timed_out,
        )


def format_run(outcome: RunOutcome, cwd: Path, command: str) -> str:
    return "\n".join([
        "# Claude Runner Result",
        "",
        f"- exit_code: {outcome.exit_code}",
        f"- timed_out: {str(outcome.timed_out).lower()}",
        f"- cwd: {cwd}",
        f"- command: {command}",
        "",
        "## stdout",
        "",
        outcome.stdout.strip(),
        "",
        "## stderr",
        "",
        outcome.stderr.strip(),
        "",
    ])
