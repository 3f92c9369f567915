"""Command runners: the only place a toolchain process is started.

``CommandRunner`` is a Protocol so steps can be driven by the real
``SubprocessRunner`` or by any object with a compatible ``run()`` method.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class ToolNotFoundError(RuntimeError):
    """Raised when the executable for a command cannot be found."""


class CommandResult(BaseModel):
    """Captured outcome of one command."""

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)

    def diagnostics(self) -> str:
        """Combined output, labelled with the command that produced it."""
        parts = [f"$ {self.command_line}"]
        if self.stdout.strip():
            parts.append(self.stdout.rstrip())
        if self.stderr.strip():
            parts.append(self.stderr.rstrip())
        return "\n".join(parts)


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for command execution backends."""

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run *argv* in *cwd* with *env* layered over the process environment."""
        ...


def _creation_flags() -> int:
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


class SubprocessRunner:
    """Runs commands with ``subprocess.run``, capturing text output.

    stdin is redirected to ``DEVNULL`` so no step can block on user input.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        merged = {**os.environ, **(env or {})}
        logger.debug("running %s (cwd=%s)", shlex.join(argv), cwd)
        try:
            proc = subprocess.run(
                list(argv),
                cwd=cwd,
                env=merged,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
                creationflags=_creation_flags(),
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(
                f"{argv[0]!r} not found on PATH; is the toolchain installed?"
            ) from exc
        logger.debug("%s exited with %d", argv[0], proc.returncode)
        return CommandResult(
            argv=tuple(argv),
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )
