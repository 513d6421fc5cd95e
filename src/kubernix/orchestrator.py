"""Kubernix orchestrator.

Starts CRI-O and etcd concurrently and stops them in a fixed order:
- Both services start as independent tasks and are joined before either
  result is inspected
- If any start fails, services that did start are stopped again before the
  error is raised
- Shutdown is sequential: CRI-O (drain, then terminate), then etcd
"""

from __future__ import annotations

import asyncio

from .command import CommandRunner
from .config import Config
from .errors import BootstrapError, ConfigWriteFailure
from .services import CrioService, EtcdService, Service
from .shared.logging import get_logger
from .toolchain import Toolchain

logger = get_logger(__name__)


class Kubernix:
    """The running set of bootstrap services."""

    def __init__(self, config: Config, crio: CrioService, etcd: EtcdService):
        self.config = config
        self.crio = crio
        self.etcd = etcd
        self._stopped = False

    @property
    def services(self) -> list[Service]:
        """Services in shutdown order."""
        return [self.crio, self.etcd]

    @classmethod
    async def start(
        cls,
        config: Config,
        toolchain: Toolchain | None = None,
        runner: CommandRunner | None = None,
    ) -> Kubernix:
        """Start all services.

        Args:
            config: kubernix configuration
            toolchain: Resolved executables (default: discovered from $PATH)
            runner: External command runner shared by the services

        Returns:
            Kubernix with every service running.

        Raises:
            ConfigWriteFailure: If the log directory cannot be created.
            BootstrapError: If any service failed to start. Services that did
                start have been stopped again.
        """
        try:
            config.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteFailure(config.log_dir, e) from e

        toolchain = toolchain or Toolchain.discover()
        runner = runner or CommandRunner()

        crio_result, etcd_result = await asyncio.gather(
            CrioService.start(config, toolchain, runner),
            EtcdService.start(config, toolchain, runner),
            return_exceptions=True,
        )
        results: dict[str, Service | BaseException] = {
            CrioService.name: crio_result,
            EtcdService.name: etcd_result,
        }

        failures = {name: r for name, r in results.items() if isinstance(r, BaseException)}
        if failures:
            started = [r for r in results.values() if isinstance(r, Service)]
            cleanup_errors = await cls._cleanup(started)
            for failure in failures.values():
                # Cancellation and interpreter exit propagate as themselves
                if not isinstance(failure, Exception):
                    raise failure
            error = BootstrapError(failures, cleanup_errors)
            logger.error("Bootstrap failed", **error.to_dict())
            raise error

        kubernix = cls(config, crio_result, etcd_result)
        for service in kubernix.services:
            service.process.mark_running()
        logger.info("All services running")
        return kubernix

    @staticmethod
    async def _cleanup(started: list[Service]) -> dict[str, BaseException]:
        """Stop services left running by a failed bootstrap."""
        errors: dict[str, BaseException] = {}
        for service in started:
            logger.warning("Stopping %s after failed bootstrap", service.name)
            try:
                await service.stop()
            except Exception as e:
                logger.error("Unable to stop %s: %s", service.name, e)
                errors[service.name] = e
        return errors

    async def stop(self) -> None:
        """Stop all services in order.

        A failure stopping a service is raised immediately; services after it
        are left running.
        """
        if self._stopped:
            return
        for service in self.services:
            await service.stop()
        self._stopped = True
        logger.info("All services stopped")
