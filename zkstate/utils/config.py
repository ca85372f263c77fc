"""
Configuration management for zkstate.

Handles loading and merging configuration from:
- Default configuration file
- User configuration file
- Environment variables

and turns the result into a validated :class:`ReaderConfig`.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from zkstate.exceptions import ConfigurationError


def build_zk_host_string(zk_hosts: List[str], chroot: str = "") -> str:
    """
    Build a coordination-service connection string.

    Args:
        zk_hosts: host:port pairs, in ensemble order
        chroot: Optional chroot path, must start with '/'

    Returns:
        Connection string, e.g. "zk1:2181,zk2:2181/solr"

    Raises:
        ConfigurationError: If no hosts are given or the chroot is malformed
    """
    if not zk_hosts:
        raise ConfigurationError(
            "Cannot create a state reader without a ZooKeeper host; none specified"
        )

    host_string = ",".join(zk_hosts)

    if chroot:
        if not chroot.startswith("/"):
            raise ConfigurationError("The chroot must start with a forward slash.")
        host_string += chroot

    return host_string


@dataclass
class ReaderConfig:
    """
    Construction-time settings for a state reader.

    Attributes:
        zk_hosts: Coordination ensemble as host:port pairs
        chroot: Optional chroot suffix (must start with '/')
        timeout: Connection/session timeout in seconds
        cache_key: Cache key the snapshot is stored under
        cache_expiration: Snapshot expiry in seconds (None = backend default)
        watch: Arm refresh watches right after bootstrap
    """
    zk_hosts: List[str] = field(default_factory=list)
    chroot: str = ""
    timeout: float = 10.0
    cache_key: str = "zkstate.snapshot"
    cache_expiration: Optional[int] = None
    watch: bool = False

    def __post_init__(self):
        if isinstance(self.zk_hosts, str):
            self.zk_hosts = [h.strip() for h in self.zk_hosts.split(",") if h.strip()]
        # Raises on empty hosts or a malformed chroot.
        build_zk_host_string(self.zk_hosts, self.chroot)
        if self.timeout <= 0:
            raise ConfigurationError("ReaderConfig.timeout must be > 0.")
        if not self.cache_key:
            raise ConfigurationError("ReaderConfig.cache_key must be non-empty.")
        if self.cache_expiration is not None and self.cache_expiration <= 0:
            raise ConfigurationError("ReaderConfig.cache_expiration must be > 0.")

    @property
    def connection_string(self) -> str:
        """Comma-separated hosts with the chroot appended."""
        return build_zk_host_string(self.zk_hosts, self.chroot)

    @classmethod
    def from_config(cls, config: "Config") -> "ReaderConfig":
        """Create from a :class:`Config` instance."""
        return cls(
            zk_hosts=config.get("zookeeper.hosts", []),
            chroot=config.get("zookeeper.chroot", "") or "",
            timeout=float(config.get("zookeeper.timeout", 10.0)),
            cache_key=config.get("cache.key", "zkstate.snapshot"),
            cache_expiration=config.get("cache.ttl"),
            watch=bool(config.get("reader.watch", False)),
        )


class Config:
    """Configuration manager for zkstate."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to configuration file. If None, uses default only.
        """
        self._config: Dict[str, Any] = {}
        self._load_default_config()

        if config_file:
            self._load_config_file(config_file)

        self._apply_env_overrides()

    def _load_default_config(self) -> None:
        default_config_path = Path(__file__).parent.parent.parent / "config" / "default.yaml"
        if default_config_path.exists():
            self._load_config_file(str(default_config_path))

    def _load_config_file(self, config_file: str) -> None:
        with open(config_file, "r") as f:
            file_config = yaml.safe_load(f) or {}
            self._merge_config(file_config)

    def _merge_config(self, new_config: Dict[str, Any]) -> None:
        self._config = self._deep_merge(self._config, new_config)

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if zk_hosts := os.getenv("ZK_HOSTS"):
            self.set("zookeeper.hosts", [h.strip() for h in zk_hosts.split(",") if h.strip()])

        if chroot := os.getenv("ZK_CHROOT"):
            self.set("zookeeper.chroot", chroot)

        if timeout := os.getenv("ZK_TIMEOUT"):
            self.set("zookeeper.timeout", float(timeout))

        if cache_url := os.getenv("CACHE_URL"):
            self.set("cache.url", cache_url)

        if cache_ttl := os.getenv("CACHE_TTL"):
            self.set("cache.ttl", int(cache_ttl))

        if log_level := os.getenv("LOG_LEVEL"):
            self.set("logging.level", log_level)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "zookeeper.hosts")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set
        """
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Get entire configuration as dictionary."""
        return self._config.copy()


_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Get global configuration instance.

    Args:
        config_file: Optional configuration file path

    Returns:
        Configuration instance
    """
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
