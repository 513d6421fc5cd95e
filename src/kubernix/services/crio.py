"""CRI-O container runtime service.

Generates the CNI bridge network and image signature policy, starts the crio
daemon, and on shutdown removes every pod before terminating it.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from ..command import CommandRunner
from ..config import Config
from ..errors import DrainFailure
from ..process import SupervisedProcess
from ..toolchain import Toolchain
from .base import Service, make_dirs, start_process, write_json

logger = logging.getLogger(__name__)

STORAGE_DRIVER = "overlay"
DEFAULT_REGISTRY = "docker.io"
RUNTIME_NAME = "local-runc"

# Environment variable crictl reads its endpoint from
ENDPOINT_ENV = "CONTAINER_RUNTIME_ENDPOINT"


def build_bridge_config(name: str, cidr: str) -> dict[str, Any]:
    """Build a NAT-ed bridge network with a host-local IP allocator."""
    return {
        "cniVersion": "0.3.1",
        "name": name,
        "type": "bridge",
        "bridge": "cni0",
        "isGateway": True,
        "ipMasq": True,
        "hairpinMode": True,
        "ipam": {
            "type": "host-local",
            "routes": [{"dst": "0.0.0.0/0"}],
            "ranges": [[{"subnet": cidr}]],
        },
    }


def build_signature_policy() -> dict[str, Any]:
    """Build a policy accepting any image signature (local use only)."""
    return {"default": [{"type": "insecureAcceptAnything"}]}


class CrioService(Service):
    """The CRI-O daemon."""

    name = "crio"

    def __init__(
        self,
        config: Config,
        process: SupervisedProcess,
        runner: CommandRunner,
        crictl: Path,
        socket: Path,
    ):
        super().__init__(config, process, runner)
        self.crictl = crictl
        self.socket = socket

    @staticmethod
    def build_args(
        config: Config,
        conmon: Path,
        runc: Path,
        cni_plugin_dir: Path,
    ) -> list[str]:
        """Build the crio command line."""
        root = config.crio_dir
        return [
            "--log-level=debug",
            f"--storage-driver={STORAGE_DRIVER}",
            f"--conmon={conmon}",
            f"--listen={config.crio_socket}",
            f"--root={root / 'storage'}",
            f"--runroot={root / 'run'}",
            f"--cni-config-dir={root / 'cni'}",
            f"--cni-plugin-dir={cni_plugin_dir}",
            f"--registry={DEFAULT_REGISTRY}",
            f"--signature-policy={root / 'policy.json'}",
            f"--runtimes={RUNTIME_NAME}:{runc}:{root / 'runc'}",
            f"--default-runtime={RUNTIME_NAME}",
        ]

    @classmethod
    async def start(
        cls,
        config: Config,
        toolchain: Toolchain,
        runner: CommandRunner | None = None,
    ) -> CrioService:
        """Configure and start CRI-O, returning once it is ready.

        Raises:
            ExecutableNotFound: If runc, conmon, the CNI bridge plugin,
                crio or crictl is missing.
            ConfigWriteFailure: If generated files cannot be written.
            ProcessSpawnFailure, ReadinessTimeout, ReadinessStreamClosed:
                If the daemon does not come up.
        """
        logger.info("Starting CRI-O")
        runc = toolchain.require("runc")
        conmon = toolchain.require("conmon")
        bridge = toolchain.require("bridge")
        crio = toolchain.require("crio")
        crictl = toolchain.require("crictl")
        cni_plugin_dir = bridge.parent

        root = config.crio_dir
        cni_config_dir = root / "cni"
        make_dirs(root, cni_config_dir)

        write_json(
            cni_config_dir / "bridge.json",
            build_bridge_config(config.crio.network_name, config.crio.cidr),
        )
        write_json(root / "policy.json", build_signature_policy())

        args = cls.build_args(config, conmon, runc, cni_plugin_dir)
        process = await start_process(cls.name, config, crio, args, config.crio.readiness_marker)

        logger.info("CRI-O is ready")
        return cls(config, process, runner or CommandRunner(), crictl, config.crio_socket)

    @property
    def endpoint(self) -> str:
        return f"unix://{self.socket}"

    def remove_all_pods(self) -> list[str]:
        """Force-remove every pod known to this CRI-O instance.

        Returns:
            IDs of the removed pods.

        Raises:
            DrainFailure: If listing or any removal exits non-zero. Nothing is
                removed when listing fails.
        """
        logger.debug("Removing all CRI-O workloads")
        env = {ENDPOINT_ENV: self.endpoint}

        result = self.runner.check([self.crictl, "pods", "-q"], env=env, error=DrainFailure)
        pods = [line.strip() for line in result.stdout.splitlines() if line.strip()]

        for pod in pods:
            logger.debug("Removing pod %s", pod)
            self.runner.check([self.crictl, "rmp", "-f", pod], env=env, error=DrainFailure)

        logger.debug("All workloads removed")
        return pods

    async def pre_stop(self) -> None:
        # crictl talks to the daemon, whose output must keep draining meanwhile
        await asyncio.to_thread(self.remove_all_pods)
