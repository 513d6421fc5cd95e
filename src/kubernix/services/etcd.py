"""etcd coordination store service."""

from __future__ import annotations

import logging

from ..command import CommandRunner
from ..config import Config
from ..toolchain import Toolchain
from .base import Service, make_dirs, start_process

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"
MEMBER_NAME = "kubernix"


class EtcdService(Service):
    """A single-member etcd listening on the loopback interface."""

    name = "etcd"

    @property
    def client_url(self) -> str:
        """Address Kubernetes components use to reach the store."""
        return f"http://{LOCALHOST}:{self.config.etcd.client_port}"

    @staticmethod
    def build_args(config: Config) -> list[str]:
        client_url = f"http://{LOCALHOST}:{config.etcd.client_port}"
        peer_url = f"http://{LOCALHOST}:{config.etcd.peer_port}"
        return [
            f"--name={MEMBER_NAME}",
            f"--data-dir={config.etcd_dir / 'data'}",
            f"--listen-client-urls={client_url}",
            f"--advertise-client-urls={client_url}",
            f"--listen-peer-urls={peer_url}",
            f"--initial-advertise-peer-urls={peer_url}",
            f"--initial-cluster={MEMBER_NAME}={peer_url}",
            # Readiness is read from stdout; etcd logs to stderr by default
            "--log-outputs=stdout",
        ]

    @classmethod
    async def start(
        cls,
        config: Config,
        toolchain: Toolchain,
        runner: CommandRunner | None = None,
    ) -> EtcdService:
        logger.info("Starting etcd")
        etcd = toolchain.require("etcd")
        make_dirs(config.etcd_dir)

        process = await start_process(
            cls.name,
            config,
            etcd,
            cls.build_args(config),
            config.etcd.readiness_marker,
            cwd=config.etcd_dir,
        )

        logger.info("etcd is ready")
        return cls(config, process, runner or CommandRunner())
