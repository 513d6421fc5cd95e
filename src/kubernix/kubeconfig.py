"""Kubeconfig generation.

Each control-plane identity gets its own kubeconfig file, assembled with four
``kubectl config`` calls. A role whose assembly fails leaves no file behind;
roles completed before it are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .command import CommandRunner
from .config import Config
from .errors import ConfigWriteFailure, KubernixError
from .pki import Pki
from .toolchain import Toolchain

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"
API_SERVER_PORT = 6443
CLUSTER_NAME = "kubernetes"
CONTEXT_NAME = "default"


@dataclass
class RoleDescriptor:
    """Identity a kubeconfig is generated for."""

    name: str  # Role name, also the file stem
    user: str  # Subject the client certificate is issued to
    cert: Path
    key: Path
    server_ip: str
    attr: str  # KubeConfig field holding the result


def role_descriptors(pki: Pki, ip: str, hostname: str) -> list[RoleDescriptor]:
    """The five well-known roles, in generation order.

    Node-level roles reach the API server on the node's address; control
    plane roles use the loopback address.
    """
    return [
        RoleDescriptor(
            "kubelet", f"system:node:{hostname}", pki.kubelet_cert, pki.kubelet_key, ip, "kubelet"
        ),
        RoleDescriptor(
            "kube-proxy", "system:kube-proxy", pki.proxy_cert, pki.proxy_key, ip, "proxy"
        ),
        RoleDescriptor(
            "kube-controller-manager",
            "system:kube-controller-manager",
            pki.controller_manager_cert,
            pki.controller_manager_key,
            LOCALHOST,
            "controller_manager",
        ),
        RoleDescriptor(
            "kube-scheduler",
            "system:kube-scheduler",
            pki.scheduler_cert,
            pki.scheduler_key,
            LOCALHOST,
            "scheduler",
        ),
        RoleDescriptor("admin", "admin", pki.admin_cert, pki.admin_key, LOCALHOST, "admin"),
    ]


class KubeconfigWriter:
    """Assemble kubeconfig files with kubectl."""

    def __init__(self, kubectl: Path, runner: CommandRunner):
        """Initialize writer.

        Args:
            kubectl: Path to kubectl
            runner: External command runner
        """
        self.kubectl = kubectl
        self.runner = runner

    def _config_cmd(self, *args: str) -> list[str | Path]:
        """Build a kubectl config command."""
        return [self.kubectl, "config", *args]

    def commands(
        self,
        target: Path,
        user: str,
        ca: Path,
        cert: Path,
        key: Path,
        server_ip: str,
    ) -> list[list[str | Path]]:
        """The four commands that produce one kubeconfig, in order."""
        kubeconfig_arg = f"--kubeconfig={target}"
        return [
            self._config_cmd(
                "set-cluster",
                CLUSTER_NAME,
                f"--certificate-authority={ca}",
                "--embed-certs=true",
                f"--server=https://{server_ip}:{API_SERVER_PORT}",
                kubeconfig_arg,
            ),
            self._config_cmd(
                "set-credentials",
                user,
                f"--client-certificate={cert}",
                f"--client-key={key}",
                "--embed-certs=true",
                kubeconfig_arg,
            ),
            self._config_cmd(
                "set-context",
                CONTEXT_NAME,
                f"--cluster={CLUSTER_NAME}",
                f"--user={user}",
                kubeconfig_arg,
            ),
            self._config_cmd("use-context", CONTEXT_NAME, kubeconfig_arg),
        ]

    def setup_kubeconfig(
        self,
        directory: Path,
        name: str,
        user: str,
        ca: Path,
        cert: Path,
        key: Path,
        server_ip: str,
    ) -> Path:
        """Generate ``{directory}/{name}.kubeconfig`` from scratch.

        Raises:
            ExternalCommandFailure: If any step fails.
            ProcessSpawnFailure: If kubectl cannot be run.

        On either failure the partial file is removed and later steps are
        not run.
        """
        logger.debug("Creating kubeconfig for %s", name)
        target = directory / f"{name}.kubeconfig"
        target.unlink(missing_ok=True)

        try:
            for args in self.commands(target, user, ca, cert, key, server_ip):
                self.runner.check(args)
        except KubernixError:
            target.unlink(missing_ok=True)
            raise

        logger.debug("Kubeconfig created for %s", name)
        return target


@dataclass
class KubeConfig:
    """Generated kubeconfig path of each role."""

    kubelet: Path | None = None
    proxy: Path | None = None
    controller_manager: Path | None = None
    scheduler: Path | None = None
    admin: Path | None = None

    @classmethod
    def build(
        cls,
        config: Config,
        pki: Pki,
        ip: str,
        hostname: str,
        toolchain: Toolchain,
        runner: CommandRunner | None = None,
    ) -> KubeConfig:
        """Generate kubeconfigs for all roles.

        Stops at the first failing role; files of earlier roles are kept.

        Raises:
            ExecutableNotFound: If kubectl is missing.
            ConfigWriteFailure: If the target directory cannot be created.
            ExternalCommandFailure: If a kubectl call fails.
        """
        logger.info("Creating kubeconfigs")
        writer = KubeconfigWriter(toolchain.require("kubectl"), runner or CommandRunner())

        kube_dir = config.kube_dir
        try:
            kube_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteFailure(kube_dir, e) from e

        kube = cls()
        for role in role_descriptors(pki, ip, hostname):
            target = writer.setup_kubeconfig(
                kube_dir, role.name, role.user, pki.ca_cert, role.cert, role.key, role.server_ip
            )
            setattr(kube, role.attr, target)

        return kube

    def items(self) -> dict[str, Path | None]:
        """Kubeconfig paths by role attribute."""
        return {
            "kubelet": self.kubelet,
            "proxy": self.proxy,
            "controller_manager": self.controller_manager,
            "scheduler": self.scheduler,
            "admin": self.admin,
        }
