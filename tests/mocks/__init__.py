"""Test mocks for kubernix.

Provides stand-ins for the external programs kubernix drives:
- RecordingRunner: records external commands instead of running them
- make_executable: writes Python scripts that impersonate daemons
"""

from .fake_bin import FAKE_CRICTL, FAKE_CRIO, FAKE_ETCD, NOOP, make_executable
from .recording_runner import RecordingRunner

__all__ = [
    "RecordingRunner",
    "make_executable",
    "FAKE_CRIO",
    "FAKE_ETCD",
    "FAKE_CRICTL",
    "NOOP",
]
