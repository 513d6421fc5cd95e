"""kubernix configuration management.

Handles the configuration stored in ~/.kubernix/config.yaml (or a path given
on the command line). Supports environment variable overrides.
"""

from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .shared.paths import CONFIG_FILE, DEFAULT_ROOT, resolve_under

# Default values
DEFAULT_CRIO_CIDR = "10.88.0.0/16"
DEFAULT_READINESS_TIMEOUT = 60.0
DEFAULT_STOP_GRACE_PERIOD = 10.0
DEFAULT_KILL_TIMEOUT = 5.0

# Environment variable mappings
ENV_VARS = {
    "root": "KUBERNIX_ROOT",
    "log.level": "KUBERNIX_LOG_LEVEL",
    "crio.cidr": "KUBERNIX_CRIO_CIDR",
    "readiness_timeout": "KUBERNIX_READINESS_TIMEOUT",
}

# Keys holding durations in seconds
POSITIVE_KEYS = {"readiness_timeout", "stop_grace_period", "kill_timeout"}
PORT_KEYS = {"etcd.client_port", "etcd.peer_port"}
LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class CrioConfig:
    """CRI-O settings."""

    dir: str = "crio"
    cidr: str = DEFAULT_CRIO_CIDR
    network_name: str = "crio-bridge"
    readiness_marker: str = "sandboxes:"


@dataclass
class EtcdConfig:
    """etcd settings."""

    dir: str = "etcd"
    client_port: int = 2379
    peer_port: int = 2380
    readiness_marker: str = "ready to serve client requests"


@dataclass
class KubeConfigConfig:
    """Where generated kubeconfigs are written."""

    dir: str = "kube"


@dataclass
class PkiConfig:
    """Where the certificate bundle is read from."""

    dir: str = "pki"


@dataclass
class LogConfig:
    """Logging settings."""

    dir: str = "log"
    level: str = "info"


@dataclass
class Config:
    """kubernix configuration."""

    root: Path = DEFAULT_ROOT
    readiness_timeout: float = DEFAULT_READINESS_TIMEOUT
    stop_grace_period: float = DEFAULT_STOP_GRACE_PERIOD
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    crio: CrioConfig = field(default_factory=CrioConfig)
    etcd: EtcdConfig = field(default_factory=EtcdConfig)
    kube: KubeConfigConfig = field(default_factory=KubeConfigConfig)
    pki: PkiConfig = field(default_factory=PkiConfig)
    log: LogConfig = field(default_factory=LogConfig)

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value (dotted key, e.g. ``crio.cidr``)."""
        return self._sources.get(key, "default")

    @property
    def crio_dir(self) -> Path:
        return resolve_under(self.root, self.crio.dir)

    @property
    def crio_socket(self) -> Path:
        return self.crio_dir / "crio.sock"

    @property
    def etcd_dir(self) -> Path:
        return resolve_under(self.root, self.etcd.dir)

    @property
    def kube_dir(self) -> Path:
        return resolve_under(self.root, self.kube.dir)

    @property
    def pki_dir(self) -> Path:
        return resolve_under(self.root, self.pki.dir)

    @property
    def log_dir(self) -> Path:
        return resolve_under(self.root, self.log.dir)


def get_config_path() -> Path:
    """Get the default config file path.

    Returns:
        Path to ~/.kubernix/config.yaml
    """
    return CONFIG_FILE


def _coerce(current: Any, value: Any, key: str, path: Path | None) -> Any:
    """Convert a raw value to the type of the field's current value."""
    try:
        if isinstance(current, Path):
            return Path(str(value)).expanduser()
        if isinstance(current, bool):
            return bool(value)
        return type(current)(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key}: {e}", path) from e


def _validate(key: str, value: Any, path: Path | None) -> None:
    """Reject values that would only fail later, at start or stop time."""
    if key in POSITIVE_KEYS and not value > 0:
        raise ConfigError(f"{key} must be greater than 0, got {value}", path)
    if key in PORT_KEYS and not 0 < value < 65536:
        raise ConfigError(f"{key} must be a TCP port, got {value}", path)
    if key == "crio.cidr":
        try:
            ipaddress.ip_network(value, strict=False)
        except ValueError as e:
            raise ConfigError(f"{key}: {e}", path) from e
    if key == "log.level" and value.lower() not in LOG_LEVELS:
        raise ConfigError(f"{key} must be one of {', '.join(LOG_LEVELS)}", path)


def _set_value(config: Config, key: str, value: Any, path: Path | None = None) -> None:
    """Set a dotted config key, validating that it exists."""
    target: Any = config
    *parents, name = key.split(".")
    for parent in parents:
        target = getattr(target, parent)
    known = {f.name for f in fields(target) if not f.name.startswith("_")}
    if name not in known:
        raise ConfigError(f"unknown key {key!r}", path)
    coerced = _coerce(getattr(target, name), value, key, path)
    _validate(key, coerced, path)
    setattr(target, name, coerced)


def _apply_file(config: Config, data: dict[str, Any], path: Path, sources: dict[str, str]) -> None:
    sections = {"crio", "etcd", "kube", "pki", "log"}
    for key, value in data.items():
        if key in sections:
            if not isinstance(value, dict):
                raise ConfigError(f"{key!r} must be a mapping", path)
            for sub_key, sub_value in value.items():
                _set_value(config, f"{key}.{sub_key}", sub_value, path)
                sources[f"{key}.{sub_key}"] = "config file"
        else:
            _set_value(config, key, value, path)
            sources[key] = "config file"


def load_config(path: str | Path | None = None) -> Config:
    """Load kubernix configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (explicit path, or ~/.kubernix/config.yaml)
    3. Defaults

    Args:
        path: Optional config file. An explicit path must exist.

    Returns:
        Config with values and sources

    Raises:
        ConfigError: If the file is unreadable, malformed, or has bad values.
    """
    config = Config()
    sources: dict[str, str] = {}

    config_path = Path(path).expanduser() if path else get_config_path()
    if path and not config_path.exists():
        raise ConfigError("file not found", config_path)

    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(str(e), config_path) from e
        if not isinstance(file_config, dict):
            raise ConfigError("top level must be a mapping", config_path)
        _apply_file(config, file_config, config_path, sources)

    # Override with environment variables
    for key, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            _set_value(config, key, os.environ[env_var])
            sources[key] = "environment"

    config._sources = sources
    return config
