"""Common lifecycle contract for bootstrap services."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..command import CommandRunner
from ..config import Config
from ..errors import ConfigWriteFailure
from ..process import ProcessState, SupervisedProcess
from ..toolchain import Toolchain

logger = logging.getLogger(__name__)


def write_json(path: Path, document: dict[str, Any]) -> Path:
    """Write a generated JSON document.

    Raises:
        ConfigWriteFailure: If the file cannot be written.
    """
    try:
        path.write_text(json.dumps(document, indent=2) + "\n")
    except OSError as e:
        raise ConfigWriteFailure(path, e) from e
    return path


def make_dirs(*paths: Path) -> None:
    """Create directories, reporting failures as ConfigWriteFailure."""
    for path in paths:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteFailure(path, e) from e


class Service(ABC):
    """A daemon started and stopped by the orchestrator.

    Subclasses implement ``start`` as the service recipe and may override
    ``pre_stop`` to run work that must finish before the daemon exits.
    """

    name: str = "service"

    def __init__(self, config: Config, process: SupervisedProcess, runner: CommandRunner):
        self.config = config
        self.process = process
        self.runner = runner

    @classmethod
    @abstractmethod
    async def start(
        cls,
        config: Config,
        toolchain: Toolchain,
        runner: CommandRunner | None = None,
    ) -> Service:
        """Start the service and wait until it is ready."""

    @property
    def state(self) -> ProcessState:
        return self.process.state

    async def pre_stop(self) -> None:
        """Hook run before the process is terminated."""

    async def stop(self) -> None:
        """Run the pre-stop hook, then terminate the process."""
        if self.state == ProcessState.STOPPED:
            return
        if self.state == ProcessState.FAILED and not self.process.is_alive:
            return
        logger.info("Stopping %s", self.name)
        await self.pre_stop()
        await self.process.stop(self.config.stop_grace_period, self.config.kill_timeout)
        logger.info("%s stopped", self.name)


async def start_process(
    name: str,
    config: Config,
    executable: Path,
    args: list[str],
    marker: str,
    cwd: Path | None = None,
) -> SupervisedProcess:
    """Spawn a daemon and wait for its readiness marker.

    A process that fails its readiness wait is killed before the error
    propagates.
    """
    process = await SupervisedProcess.start(name, executable, args, config.log_dir, cwd=cwd)
    await process.wait_ready(marker, config.readiness_timeout)
    return process
