"""Default locations for kubernix.

Everything kubernix writes lives under one root directory; each service owns a
disjoint subtree of it.
"""

from pathlib import Path

# Base directory for kubernix state
KUBERNIX_DIR = Path.home() / ".kubernix"

# Default config file location
CONFIG_FILE = KUBERNIX_DIR / "config.yaml"

# Default root for generated files and daemon state
DEFAULT_ROOT = KUBERNIX_DIR / "run"


def resolve_under(root: Path, path: str | Path) -> Path:
    """Resolve a configured directory relative to the root.

    Absolute paths are returned unchanged.

    Args:
        root: Root directory
        path: Configured path, absolute or relative

    Returns:
        Absolute or root-relative path
    """
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return root / path
