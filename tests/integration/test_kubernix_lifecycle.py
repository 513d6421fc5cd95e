"""Integration tests for the service lifecycle with fake daemons.

Fake crio, etcd and crictl executables live in a temporary search path;
services are started and stopped for real.
"""

from __future__ import annotations

import json

import pytest

from kubernix.errors import BootstrapError, ReadinessStreamClosed
from kubernix.orchestrator import Kubernix
from kubernix.process import ProcessState
from kubernix.services import CrioService, EtcdService
from kubernix.toolchain import Toolchain
from tests.mocks import make_executable

BROKEN_ETCD = """
import sys
print("etcdmain: listen tcp 127.0.0.1:2379: bind: address already in use", file=sys.stderr, flush=True)
sys.exit(1)
"""


@pytest.mark.integration
class TestCrioLifecycle:
    """CRI-O start and drain-then-stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, config, fake_bin, tmp_path):
        """Test crio becomes ready and is drained before it is stopped."""
        toolchain = Toolchain.discover(str(fake_bin))

        crio = await CrioService.start(config, toolchain)
        assert crio.state == ProcessState.READY
        assert crio.process.args[0] == str(fake_bin / "crio")
        assert f"--cni-plugin-dir={fake_bin}" in crio.process.args
        assert json.loads((config.crio_dir / "cni" / "bridge.json").read_text())["type"] == "bridge"

        await crio.stop()

        assert crio.state == ProcessState.STOPPED
        assert not crio.process.is_alive
        calls = (tmp_path / "crictl.log").read_text().splitlines()
        assert calls == [f"unix://{config.crio_socket} pods -q"]
        assert "sandboxes: initialized" in (config.log_dir / "crio.log").read_text()


@pytest.mark.integration
class TestKubernixLifecycle:
    """Both services through the orchestrator."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, config, fake_bin):
        """Test both services run and are stopped."""
        kubernix = await Kubernix.start(config, Toolchain.discover(str(fake_bin)))

        assert kubernix.crio.state == ProcessState.RUNNING
        assert kubernix.etcd.state == ProcessState.RUNNING
        assert (config.log_dir / "etcd.log").exists()

        await kubernix.stop()

        assert kubernix.crio.state == ProcessState.STOPPED
        assert kubernix.etcd.state == ProcessState.STOPPED

    @pytest.mark.asyncio
    async def test_etcd_failure_stops_crio(self, config, fake_bin, monkeypatch):
        """Test a failing etcd leaves no crio process behind."""
        make_executable(fake_bin, "etcd", BROKEN_ETCD)
        started: list[CrioService] = []
        real_start = CrioService.start.__func__

        async def tracking_start(cls, *args, **kwargs):
            service = await real_start(cls, *args, **kwargs)
            started.append(service)
            return service

        monkeypatch.setattr(CrioService, "start", classmethod(tracking_start))

        with pytest.raises(BootstrapError) as exc_info:
            await Kubernix.start(config, Toolchain.discover(str(fake_bin)))

        failure = exc_info.value.failures[EtcdService.name]
        assert isinstance(failure, ReadinessStreamClosed)
        assert "address already in use" in failure.stderr
        assert exc_info.value.cleanup_errors == {}
        assert len(started) == 1
        assert started[0].state == ProcessState.STOPPED
        assert not started[0].process.is_alive

    @pytest.mark.asyncio
    async def test_missing_executable(self, config, fake_bin):
        """Test a missing etcd is reported and crio is cleaned up."""
        (fake_bin / "etcd").unlink()

        with pytest.raises(BootstrapError) as exc_info:
            await Kubernix.start(config, Toolchain.discover(str(fake_bin)))

        assert str(exc_info.value.failures["etcd"]) == "Unable to find etcd in $PATH"
        assert "crio" not in exc_info.value.failures
