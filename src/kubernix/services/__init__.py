"""Daemons supervised by kubernix."""

from .base import Service
from .crio import CrioService
from .etcd import EtcdService

__all__ = [
    "Service",
    "CrioService",
    "EtcdService",
]
