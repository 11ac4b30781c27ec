"""
Configuration loader with priority: CLI > env > TOML > defaults
"""
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import paramiko

from ...core.constants import (
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_CONFIG_PATH,
    DEFAULT_INVENTORY_PATH,
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_KNOWN_HOSTS_PATH,
    DEFAULT_SSH_TIMEOUT,
    ENV_PREFIX,
)
from ...core.exceptions import ConfigError
from ...core.hostkeys import AcceptAnyHostKey, PinnedHostKeys, TrustOnFirstUse
from ...core.utils import parse_size
from ...domain.transfer.models import TransferConfig

HOST_KEY_POLICIES = ("accept", "tofu", "pinned")


class ConfigLoader:
    """Configuration loader with priority support"""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self._env_prefix = ENV_PREFIX
        self._environ = environ if environ is not None else os.environ

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            return tomllib.loads(path.read_text(encoding='utf-8'))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}") from e

    def load_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}

        # Map environment variables to config keys
        env_mappings = {
            "TRANSFER_BUFFER_SIZE": "transfer.buffer_size",
            "TRANSFER_VERIFY_THRESHOLD": "transfer.verify_threshold",
            "TRANSFER_VERIFY": "transfer.verify",
            "TRANSFER_HASH_ALGORITHM": "transfer.hash_algorithm",
            "TRANSFER_MAX_CONCURRENCY": "transfer.max_concurrency",
            "TRANSFER_POLL_INTERVAL": "transfer.poll_interval",
            "CACHE_CAPACITY": "cache.capacity",
            "CONNECTION_TIMEOUT": "connection.timeout",
            "CONNECTION_KEEPALIVE": "connection.keepalive",
            "HOST_KEY_POLICY": "connection.host_key_policy",
            "KNOWN_HOSTS": "connection.known_hosts",
            "INVENTORY": "inventory.path",
            "LOG_LEVEL": "logging.level",
            "LOG_FILE": "logging.file",
        }

        for env_suffix, config_key in env_mappings.items():
            value = self._environ.get(self._env_prefix + env_suffix)
            if value:
                section, key = config_key.split(".")
                config.setdefault(section, {})[key] = self._convert_value(value)

        return config

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type"""
        # Try boolean
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        # Try integer, then float
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass

        # Return as string
        return value

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones.
        """
        result: Dict[str, Any] = {}

        for config in configs:
            result = self._deep_merge(result, config)

        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: CLI > env > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file. When omitted the
                default ~/.remotefs/config.toml is read if it exists.
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables

        Returns:
            Merged configuration dictionary
        """
        configs = []

        # 1. Load TOML
        if toml_path:
            configs.append(self.load_toml(Path(toml_path).expanduser()))
        else:
            default_path = Path(DEFAULT_CONFIG_PATH).expanduser()
            if default_path.exists():
                configs.append(self.load_toml(default_path))

        # 2. Load environment variables
        if use_env:
            env_config = self.load_env()
            if env_config:
                configs.append(env_config)

        # 3. Apply CLI overrides (highest priority)
        if cli_overrides:
            configs.append(cli_overrides)

        return self.merge_configs(*configs)


@dataclass
class Settings:
    """Typed view of the merged configuration"""
    transfer: TransferConfig = field(default_factory=TransferConfig)
    cache_capacity: int = DEFAULT_CACHE_CAPACITY
    timeout: float = DEFAULT_SSH_TIMEOUT
    keepalive: int = DEFAULT_KEEPALIVE_INTERVAL
    host_key_policy: str = "accept"
    known_hosts: str = DEFAULT_KNOWN_HOSTS_PATH
    pinned_keys: Dict[str, Any] = field(default_factory=dict)
    inventory_path: str = DEFAULT_INVENTORY_PATH
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """
        Build settings from a merged configuration dictionary.

        Raises:
            ConfigError: On invalid values
        """
        connection = data.get("connection", {})
        cache = data.get("cache", {})
        logging_cfg = data.get("logging", {})

        transfer = dict(data.get("transfer", {}))
        # Sizes may be written as "80K" or "1M"
        for key in ("buffer_size", "verify_threshold"):
            if isinstance(transfer.get(key), str):
                parsed = parse_size(transfer[key])
                if parsed is None:
                    raise ConfigError(f"Invalid transfer.{key}: {transfer[key]}")
                transfer[key] = parsed

        try:
            settings = cls(
                transfer=TransferConfig.from_dict(transfer),
                cache_capacity=int(cache.get("capacity", DEFAULT_CACHE_CAPACITY)),
                timeout=float(connection.get("timeout", DEFAULT_SSH_TIMEOUT)),
                keepalive=int(connection.get("keepalive", DEFAULT_KEEPALIVE_INTERVAL)),
                host_key_policy=str(connection.get("host_key_policy", "accept")).lower(),
                known_hosts=str(connection.get("known_hosts", DEFAULT_KNOWN_HOSTS_PATH)),
                pinned_keys=dict(connection.get("pinned_keys", {})),
                inventory_path=str(data.get("inventory", {}).get("path", DEFAULT_INVENTORY_PATH)),
                log_level=str(logging_cfg.get("level", "INFO")).upper(),
                log_file=logging_cfg.get("file"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        if settings.cache_capacity < 1:
            raise ConfigError(f"Invalid cache capacity: {settings.cache_capacity}")
        if settings.host_key_policy not in HOST_KEY_POLICIES:
            raise ConfigError(
                f"Invalid host_key_policy: {settings.host_key_policy}, "
                f"must be one of {', '.join(HOST_KEY_POLICIES)}"
            )
        return settings

    def build_host_key_policy(self) -> paramiko.MissingHostKeyPolicy:
        if self.host_key_policy == "tofu":
            return TrustOnFirstUse(self.known_hosts)
        if self.host_key_policy == "pinned":
            pins = {
                host: [fp] if isinstance(fp, str) else list(fp)
                for host, fp in self.pinned_keys.items()
            }
            return PinnedHostKeys(pins)
        return AcceptAnyHostKey()


def load_settings(
    toml_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """Load and validate settings in one call"""
    loader = ConfigLoader(environ)
    return Settings.from_dict(loader.load(toml_path, cli_overrides, use_env))
