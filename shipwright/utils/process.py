# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The one place shipwright spawns external commands.

Every call site goes through `run_command`, which runs a subprocess with an
explicit timeout, captures everything, and returns a CommandResult. It never
raises for a non-zero exit, a timeout, or an executable that cannot be
launched; those come back as results and the caller decides whether the
stage fails. No shell=True anywhere: commands are argument lists.

Stages accept a `runner` argument with the same signature so tests can swap
in a recorder and assert which commands were (or were not) spawned.
"""

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from shipwright.logging.logger import get_logger

_logger = get_logger(__name__)

# exit_code reported when the process never produced one
NO_EXIT_CODE: int = -1


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    elapsed_seconds: float
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def describe(self) -> str:
        """One-line summary used as the cause in stage errors."""
        command = " ".join(self.args)
        if self.timed_out:
            return f"`{command}` timed out after {self.elapsed_seconds:.0f}s"
        detail = self.stderr.strip() or self.stdout.strip()
        if detail:
            # the tail of the output is where tools put the actual error
            detail = detail.splitlines()[-1]
            return f"`{command}` exited with {self.exit_code}: {detail}"
        return f"`{command}` exited with {self.exit_code}"


class CommandRunner(Protocol):
    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult: ...


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Args:
        args: Executable followed by its arguments.
        cwd: Working directory for the child.
        env: Extra environment variables, layered over the current environment.
        timeout: Seconds before the child is killed. None waits forever.

    Returns:
        CommandResult. A timeout yields timed_out=True; an executable that
        cannot be launched (missing, not executable, wrong format) yields
        exit_code=-1 with the reason in stderr. Undecodable output bytes are
        replaced, never raised.
    """
    argv = tuple(str(arg) for arg in args)
    child_env = None
    if env is not None:
        child_env = dict(os.environ)
        child_env.update(env)

    _logger.debug(
        "Running command",
        extra={"command": " ".join(argv), "cwd": str(cwd) if cwd else None},
    )
    start = time.monotonic()

    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
            env=child_env,
        )
    except subprocess.TimeoutExpired as err:
        elapsed = time.monotonic() - start
        _logger.warning(
            "Command timed out",
            extra={"command": " ".join(argv), "timeout_seconds": timeout},
        )
        return CommandResult(
            args=argv,
            exit_code=NO_EXIT_CODE,
            stdout=_as_text(err.stdout),
            stderr=_as_text(err.stderr),
            elapsed_seconds=elapsed,
            timed_out=True,
        )
    except OSError as err:
        elapsed = time.monotonic() - start
        _logger.error(
            "Command could not be started",
            extra={"command": " ".join(argv), "error": str(err)},
        )
        return CommandResult(
            args=argv,
            exit_code=NO_EXIT_CODE,
            stdout="",
            stderr=f"{argv[0]}: {err.strerror or err}",
            elapsed_seconds=elapsed,
        )

    elapsed = time.monotonic() - start
    _logger.debug(
        "Command finished",
        extra={
            "command": " ".join(argv),
            "exit_code": completed.returncode,
            "elapsed_seconds": round(elapsed, 3),
        },
    )
    return CommandResult(
        args=argv,
        exit_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        elapsed_seconds=elapsed,
    )


def _as_text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
