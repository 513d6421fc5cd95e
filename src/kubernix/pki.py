"""Certificate bundle layout.

kubernix does not issue certificates; it expects a bundle produced elsewhere
and only needs to know where each file lives.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path


@dataclass
class Pki:
    """Paths of the CA and the client certificates of each role."""

    ca_cert: Path
    kubelet_cert: Path
    kubelet_key: Path
    proxy_cert: Path
    proxy_key: Path
    controller_manager_cert: Path
    controller_manager_key: Path
    scheduler_cert: Path
    scheduler_key: Path
    admin_cert: Path
    admin_key: Path

    @classmethod
    def from_dir(cls, directory: Path) -> Pki:
        """Use the conventional ``{name}.pem`` / ``{name}-key.pem`` names."""

        def pair(name: str) -> tuple[Path, Path]:
            return directory / f"{name}.pem", directory / f"{name}-key.pem"

        kubelet_cert, kubelet_key = pair("kubelet")
        proxy_cert, proxy_key = pair("kube-proxy")
        controller_manager_cert, controller_manager_key = pair("kube-controller-manager")
        scheduler_cert, scheduler_key = pair("kube-scheduler")
        admin_cert, admin_key = pair("admin")
        return cls(
            ca_cert=directory / "ca.pem",
            kubelet_cert=kubelet_cert,
            kubelet_key=kubelet_key,
            proxy_cert=proxy_cert,
            proxy_key=proxy_key,
            controller_manager_cert=controller_manager_cert,
            controller_manager_key=controller_manager_key,
            scheduler_cert=scheduler_cert,
            scheduler_key=scheduler_key,
            admin_cert=admin_cert,
            admin_key=admin_key,
        )

    def missing(self) -> list[Path]:
        """Files of the bundle that do not exist."""
        return [getattr(self, f.name) for f in fields(self) if not getattr(self, f.name).is_file()]
