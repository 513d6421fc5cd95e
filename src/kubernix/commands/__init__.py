"""CLI subcommands."""

from .tools import check, kubeconfig
from .up import up

__all__ = ["check", "kubeconfig", "up"]
