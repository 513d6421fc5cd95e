"""External command execution.

Short-lived helper programs (crictl, kubectl) run to completion with their
output captured. CommandRunner is the only place that invokes them, so tests
can substitute a recorder.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .errors import ExternalCommandFailure, ProcessSpawnFailure

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of an external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Run external commands synchronously."""

    def __init__(self, timeout: float | None = None):
        """Initialize runner.

        Args:
            timeout: Optional per-command timeout in seconds.
        """
        self.timeout = timeout

    def run(self, args: list[str | Path], env: dict[str, str] | None = None) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Program and arguments
            env: Variables added to the current environment

        Returns:
            CommandResult, whatever the exit status.

        Raises:
            ProcessSpawnFailure: If the program cannot be started.
        """
        argv = [str(arg) for arg in args]
        logger.debug("Running %s", " ".join(argv))
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                env={**os.environ, **env} if env else None,
                timeout=self.timeout,
            )
        except OSError as e:
            raise ProcessSpawnFailure(argv[0], e) from e
        except subprocess.TimeoutExpired:
            return CommandResult(argv, -1, "", f"timed out after {self.timeout:g}s")
        return CommandResult(argv, result.returncode, result.stdout, result.stderr)

    def check(
        self,
        args: list[str | Path],
        env: dict[str, str] | None = None,
        error: type[ExternalCommandFailure] = ExternalCommandFailure,
    ) -> CommandResult:
        """Run a command and raise if it exits non-zero.

        Args:
            args: Program and arguments
            env: Variables added to the current environment
            error: ExternalCommandFailure subclass to raise

        Returns:
            CommandResult of the successful command.
        """
        result = self.run(args, env)
        if not result.ok:
            logger.debug("%s stdout: %s", result.args[0], result.stdout)
            logger.debug("%s stderr: %s", result.args[0], result.stderr)
            raise error(result.args, result.returncode, result.stdout, result.stderr)
        return result
