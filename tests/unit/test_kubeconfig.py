"""Unit tests for kubeconfig generation."""

from __future__ import annotations

from pathlib import Path

import pytest

from kubernix.errors import ExecutableNotFound, ExternalCommandFailure, ProcessSpawnFailure
from kubernix.kubeconfig import KubeConfig, KubeconfigWriter, role_descriptors
from kubernix.pki import Pki
from kubernix.toolchain import Toolchain
from tests.mocks import RecordingRunner

ROLES = ["kubelet", "kube-proxy", "kube-controller-manager", "kube-scheduler", "admin"]
STEPS = ["set-cluster", "set-credentials", "set-context", "use-context"]


def touching_runner() -> RecordingRunner:
    """Runner that creates the target kubeconfig like kubectl would."""
    runner = RecordingRunner()

    def touch(argv: list[str]) -> None:
        for arg in argv:
            if arg.startswith("--kubeconfig="):
                Path(arg.split("=", 1)[1]).touch()

    runner.on_call = touch
    return runner


@pytest.fixture
def pki(tmp_path) -> Pki:
    return Pki.from_dir(tmp_path / "pki")


@pytest.fixture
def toolchain(tmp_path) -> Toolchain:
    return Toolchain(kubectl=tmp_path / "bin" / "kubectl")


@pytest.mark.cli_unit
class TestRoleDescriptors:
    """Tests for the role table."""

    def test_roles_and_addresses(self, pki):
        """Test node roles use the node IP and control plane roles loopback."""
        roles = role_descriptors(pki, "10.0.0.5", "node-1")

        assert [r.name for r in roles] == ROLES
        assert {r.name: r.server_ip for r in roles} == {
            "kubelet": "10.0.0.5",
            "kube-proxy": "10.0.0.5",
            "kube-controller-manager": "127.0.0.1",
            "kube-scheduler": "127.0.0.1",
            "admin": "127.0.0.1",
        }

    def test_subjects(self, pki):
        """Test subject names per role."""
        users = {r.name: r.user for r in role_descriptors(pki, "10.0.0.5", "node-1")}

        assert users["kubelet"] == "system:node:node-1"
        assert users["kube-proxy"] == "system:kube-proxy"
        assert users["kube-scheduler"] == "system:kube-scheduler"
        assert users["admin"] == "admin"

    def test_certificates(self, pki):
        """Test each role uses its own certificate pair."""
        kubelet = role_descriptors(pki, "10.0.0.5", "node-1")[0]
        assert kubelet.cert == pki.kubelet_cert
        assert kubelet.key == pki.kubelet_key


@pytest.mark.cli_unit
class TestSetupKubeconfig:
    """Tests for the four-step kubeconfig assembly."""

    def test_four_commands_in_order(self, tmp_path, pki):
        """Test the exact kubectl sequence for one role."""
        runner = RecordingRunner()
        writer = KubeconfigWriter(Path("/usr/bin/kubectl"), runner)

        target = writer.setup_kubeconfig(
            tmp_path,
            "admin",
            "admin",
            pki.ca_cert,
            pki.admin_cert,
            pki.admin_key,
            "127.0.0.1",
        )

        kubeconfig_arg = f"--kubeconfig={tmp_path / 'admin.kubeconfig'}"
        assert target == tmp_path / "admin.kubeconfig"
        assert runner.calls == [
            [
                "/usr/bin/kubectl",
                "config",
                "set-cluster",
                "kubernetes",
                f"--certificate-authority={pki.ca_cert}",
                "--embed-certs=true",
                "--server=https://127.0.0.1:6443",
                kubeconfig_arg,
            ],
            [
                "/usr/bin/kubectl",
                "config",
                "set-credentials",
                "admin",
                f"--client-certificate={pki.admin_cert}",
                f"--client-key={pki.admin_key}",
                "--embed-certs=true",
                kubeconfig_arg,
            ],
            [
                "/usr/bin/kubectl",
                "config",
                "set-context",
                "default",
                "--cluster=kubernetes",
                "--user=admin",
                kubeconfig_arg,
            ],
            ["/usr/bin/kubectl", "config", "use-context", "default", kubeconfig_arg],
        ]

    def test_failure_stops_sequence_and_removes_file(self, tmp_path, pki):
        """Test a failed step skips the rest and leaves no partial file."""
        runner = touching_runner()
        runner.respond("set-credentials", returncode=1, stderr="bad key")
        writer = KubeconfigWriter(Path("kubectl"), runner)

        with pytest.raises(ExternalCommandFailure) as exc_info:
            writer.setup_kubeconfig(
                tmp_path, "admin", "admin", pki.ca_cert, pki.admin_cert, pki.admin_key, "127.0.0.1"
            )

        assert [call[2] for call in runner.calls] == ["set-cluster", "set-credentials"]
        assert exc_info.value.stderr == "bad key"
        assert not (tmp_path / "admin.kubeconfig").exists()

    def test_spawn_failure_removes_file(self, tmp_path, pki):
        """Test kubectl disappearing mid-sequence leaves no partial file."""
        runner = touching_runner()
        touch = runner.on_call

        def vanish_at_set_context(argv: list[str]) -> None:
            touch(argv)
            if "set-context" in argv:
                raise ProcessSpawnFailure(argv[0], FileNotFoundError(argv[0]))

        runner.on_call = vanish_at_set_context
        writer = KubeconfigWriter(Path("kubectl"), runner)

        with pytest.raises(ProcessSpawnFailure):
            writer.setup_kubeconfig(
                tmp_path, "admin", "admin", pki.ca_cert, pki.admin_cert, pki.admin_key, "127.0.0.1"
            )

        assert [call[2] for call in runner.calls] == ["set-cluster", "set-credentials", "set-context"]
        assert not (tmp_path / "admin.kubeconfig").exists()

    def test_existing_file_is_regenerated(self, tmp_path, pki):
        """Test a previous kubeconfig is removed before assembly."""
        target = tmp_path / "admin.kubeconfig"
        target.write_text("stale")
        seen: list[bool] = []
        runner = RecordingRunner()
        runner.on_call = lambda argv: seen.append(target.exists())
        writer = KubeconfigWriter(Path("kubectl"), runner)

        writer.setup_kubeconfig(
            tmp_path, "admin", "admin", pki.ca_cert, pki.admin_cert, pki.admin_key, "127.0.0.1"
        )

        assert seen[0] is False


@pytest.mark.cli_unit
class TestKubeConfigBuild:
    """Tests for KubeConfig.build."""

    def test_build_all_roles(self, config, pki, toolchain):
        """Test every role gets four commands against its own file."""
        runner = touching_runner()

        kube = KubeConfig.build(config, pki, "10.0.0.5", "node-1", toolchain, runner)

        assert len(runner.calls) == 4 * len(ROLES)
        for index, role in enumerate(ROLES):
            calls = runner.calls[index * 4 : index * 4 + 4]
            assert [call[2] for call in calls] == STEPS
            for call in calls:
                assert call[-1] == f"--kubeconfig={config.kube_dir / f'{role}.kubeconfig'}"

        assert kube.kubelet == config.kube_dir / "kubelet.kubeconfig"
        assert kube.proxy == config.kube_dir / "kube-proxy.kubeconfig"
        assert kube.controller_manager == config.kube_dir / "kube-controller-manager.kubeconfig"
        assert kube.scheduler == config.kube_dir / "kube-scheduler.kubeconfig"
        assert kube.admin == config.kube_dir / "admin.kubeconfig"

    def test_kubelet_uses_node_ip(self, config, pki, toolchain):
        """Test the kubelet kubeconfig points at the node address."""
        runner = touching_runner()

        KubeConfig.build(config, pki, "10.0.0.5", "node-1", toolchain, runner)

        assert "--server=https://10.0.0.5:6443" in runner.calls[0]
        assert "--server=https://127.0.0.1:6443" in runner.calls[-4]

    def test_failure_aborts_remaining_roles(self, config, pki, toolchain):
        """Test a failing role stops the run and keeps earlier files."""
        runner = touching_runner()
        runner.respond("system:kube-proxy", returncode=1, stderr="denied")

        with pytest.raises(ExternalCommandFailure):
            KubeConfig.build(config, pki, "10.0.0.5", "node-1", toolchain, runner)

        # kubelet: 4 calls, kube-proxy: set-cluster + failing set-credentials
        assert len(runner.calls) == 6
        assert (config.kube_dir / "kubelet.kubeconfig").exists()
        assert not (config.kube_dir / "kube-proxy.kubeconfig").exists()
        assert not (config.kube_dir / "admin.kubeconfig").exists()

    def test_missing_kubectl(self, config, pki):
        """Test kubectl must be resolved."""
        with pytest.raises(ExecutableNotFound):
            KubeConfig.build(config, pki, "10.0.0.5", "node-1", Toolchain(), RecordingRunner())
