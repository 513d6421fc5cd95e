"""Executable discovery.

This module locates the external programs kubernix drives. The toolchain is
resolved once at startup and handed to every component that needs a binary,
so nothing downstream consults $PATH on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

from .errors import ExecutableNotFound

# Tools in the order they are reported by `kubernix check`
TOOLS = ("crio", "conmon", "runc", "bridge", "crictl", "etcd", "kubectl")


def find_executable(name: str, search_path: str | None = None) -> Path | None:
    """Find the first regular file called ``name`` on the search path.

    Args:
        name: Executable name
        search_path: os.pathsep separated directories (default: $PATH)

    Returns:
        Full path of the first match, or None.
    """
    if search_path is None:
        search_path = os.environ.get("PATH", "")

    for directory in search_path.split(os.pathsep):
        if not directory:
            continue
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


@dataclass
class Toolchain:
    """Resolved locations of every external program."""

    crio: Path | None = None
    conmon: Path | None = None
    runc: Path | None = None
    bridge: Path | None = None
    crictl: Path | None = None
    etcd: Path | None = None
    kubectl: Path | None = None

    @classmethod
    def discover(cls, search_path: str | None = None) -> Toolchain:
        """Resolve all known tools from the search path.

        Missing tools are left as None; components fail when they require one.
        """
        return cls(**{tool: find_executable(tool, search_path) for tool in TOOLS})

    def require(self, name: str) -> Path:
        """Get the path of a tool.

        Raises:
            ExecutableNotFound: If the tool was not found.
        """
        path = getattr(self, name, None)
        if path is None:
            raise ExecutableNotFound(name)
        return path

    def missing(self) -> list[str]:
        """Names of tools that could not be found."""
        return [f.name for f in fields(self) if getattr(self, f.name) is None]

    def found(self) -> dict[str, Path]:
        """Resolved tools by name."""
        return {
            f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None
        }
