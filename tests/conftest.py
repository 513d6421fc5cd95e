"""Shared test fixtures for kubernix tests.

This module provides fixtures for testing the bootstrap layer:
- runner: RecordingRunner in place of real crictl/kubectl calls
- fake_bin: search path with fake daemons and helper programs
- config: Config rooted in a temporary directory with short timeouts
"""

from __future__ import annotations

from pathlib import Path

import pytest

from kubernix.config import Config
from tests.mocks import (
    FAKE_CRICTL,
    FAKE_CRIO,
    FAKE_ETCD,
    NOOP,
    RecordingRunner,
    make_executable,
)


@pytest.fixture
def runner() -> RecordingRunner:
    """Fixture providing a RecordingRunner."""
    return RecordingRunner()


@pytest.fixture
def fake_bin(tmp_path, monkeypatch) -> Path:
    """Directory with fake crio, conmon, runc, bridge, crictl, etcd and kubectl."""
    bin_dir = tmp_path / "bin"
    make_executable(bin_dir, "crio", FAKE_CRIO)
    make_executable(bin_dir, "etcd", FAKE_ETCD)
    make_executable(bin_dir, "crictl", FAKE_CRICTL)
    for name in ("conmon", "runc", "bridge", "kubectl"):
        make_executable(bin_dir, name, NOOP)
    monkeypatch.setenv("FAKE_CRICTL_LOG", str(tmp_path / "crictl.log"))
    return bin_dir


@pytest.fixture
def config(tmp_path) -> Config:
    """Config rooted in a temporary directory with short timeouts."""
    return Config(
        root=tmp_path / "root",
        readiness_timeout=10.0,
        stop_grace_period=2.0,
        kill_timeout=2.0,
    )


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's environment and home config out of tests."""
    for var in (
        "KUBERNIX_ROOT",
        "KUBERNIX_LOG_LEVEL",
        "KUBERNIX_CRIO_CIDR",
        "KUBERNIX_READINESS_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("kubernix.config.CONFIG_FILE", tmp_path / "home" / "config.yaml")
