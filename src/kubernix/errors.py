"""Error types for kubernix.

Every failure raised by the bootstrap layer derives from KubernixError so the
CLI can report it and exit non-zero. Errors caused by external programs carry
the captured output of that program for diagnosis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class KubernixError(Exception):
    """Base error class for kubernix errors."""


@dataclass(eq=False)
class ConfigError(KubernixError):
    """Configuration file or value could not be used."""

    message: str
    path: Path | None = None

    def __str__(self) -> str:
        if self.path:
            return f"Invalid configuration in {self.path}: {self.message}"
        return f"Invalid configuration: {self.message}"


@dataclass(eq=False)
class ExecutableNotFound(KubernixError):
    """A required binary is not on the search path."""

    name: str

    def __str__(self) -> str:
        return f"Unable to find {self.name} in $PATH"


@dataclass(eq=False)
class ConfigWriteFailure(KubernixError):
    """A generated configuration file could not be written."""

    path: Path
    cause: OSError

    def __str__(self) -> str:
        return f"Unable to write {self.path}: {self.cause}"


@dataclass(eq=False)
class ProcessSpawnFailure(KubernixError):
    """The operating system refused to start an executable."""

    executable: str
    cause: OSError

    def __str__(self) -> str:
        return f"Unable to spawn {self.executable}: {self.cause}"


def _with_stderr(message: str, stderr: str) -> str:
    if stderr.strip():
        return f"{message}\nstderr:\n{stderr.rstrip()}"
    return message


@dataclass(eq=False)
class ReadinessTimeout(KubernixError):
    """The readiness marker did not appear within the timeout."""

    name: str
    marker: str
    timeout: float
    stderr: str = ""

    def __str__(self) -> str:
        return _with_stderr(
            f"{self.name} did not print {self.marker!r} within {self.timeout:g}s",
            self.stderr,
        )


@dataclass(eq=False)
class ReadinessStreamClosed(KubernixError):
    """The process closed its output before printing the readiness marker."""

    name: str
    marker: str
    returncode: int | None = None
    stderr: str = ""

    def __str__(self) -> str:
        status = "closed its output" if self.returncode is None else f"exited ({self.returncode})"
        return _with_stderr(
            f"{self.name} {status} before printing {self.marker!r}",
            self.stderr,
        )


@dataclass(eq=False)
class ExternalCommandFailure(KubernixError):
    """An external command exited with a non-zero status."""

    command: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        message = f"Command failed ({self.exit_code}): {' '.join(self.command)}"
        if self.stdout.strip():
            message += f"\nstdout:\n{self.stdout.rstrip()}"
        return _with_stderr(message, self.stderr)


@dataclass(eq=False)
class DrainFailure(ExternalCommandFailure):
    """Workload listing or removal failed while draining the runtime."""


@dataclass(eq=False)
class StopFailure(KubernixError):
    """A process survived both the graceful stop and the forced kill."""

    name: str
    grace_period: float

    def __str__(self) -> str:
        return f"{self.name} did not terminate within {self.grace_period:g}s"


@dataclass(eq=False)
class BootstrapError(KubernixError):
    """One or more services failed to start."""

    failures: dict[str, BaseException] = field(default_factory=dict)
    cleanup_errors: dict[str, BaseException] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = ["Unable to start services:"]
        for name, error in self.failures.items():
            lines.append(f"  {name}: {error}")
        if self.cleanup_errors:
            lines.append("Cleanup of started services also failed:")
            for name, error in self.cleanup_errors.items():
                lines.append(f"  {name}: {error}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Summarize failures for structured logging."""
        return {
            "failures": {name: str(error) for name, error in self.failures.items()},
            "cleanup_errors": {name: str(error) for name, error in self.cleanup_errors.items()},
        }
