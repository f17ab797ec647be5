"""Configuration management for acmectl"""

import ast
import copy
import os
import re
from pathlib import Path
from typing import Any, TypeVar, cast

import yaml

from .store import ConfigStore

LETSENCRYPT_PRODUCTION = "https://acme-v02.api.letsencrypt.org/directory"
LETSENCRYPT_STAGING = "https://acme-staging-v02.api.letsencrypt.org/directory"

DEFAULT_PROFILE = "default"
PROFILE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

# Default values - Hierarchical structure, one file per certificate profile
DEFAULT_CONFIG: dict[str, Any] = {
    "acme": {
        "service_uri": LETSENCRYPT_PRODUCTION,
        "account_email": None,
        "account_key": None,  # PEM, generated on first registration
        "registered": False,
    },
    "certificate": {
        "domains": [],
        "output_dir": None,  # Defaults to the profile directory
        "export_pem": False,
        "pfx_password": None,  # Generated per issuance when unset
        "renewal_days": 30,
    },
    "http": {
        "webroot": None,
        "standalone": False,
        "listen_port": 80,
        "listen_host": "0.0.0.0",
    },
    "dns": {
        "validator": None,  # acme-dns, rfc2136, route53, win-dns, script
        "server_url": None,
        "server_host": None,
        "server_port": 53,
        "server_user": None,
        "server_key": None,
        "server_password": None,
        "server_subdomain": None,
        "server_zone": None,
        "tsig_algorithm": "hmac-sha256",
        "script_file": None,
        "script_timeout": 60,
    },
    "validation": {
        "poll_interval_seconds": 2.0,
        "poll_attempts": 10,
        "dns_propagation_seconds": 5.0,
        "network_timeout_seconds": 45,
        "finalize_timeout_seconds": 90,
    },
    "install": {
        "enabled": True,
        "store_dir": None,  # Defaults to <config dir>/store
        "script_file": None,
        "script_timeout": 300,
    },
    "system": {
        "log_level": "INFO",
        "log_dir": None,
    },
    # Issued certificate records keyed by host id
    "records": {},
}

# Define type for expected types that can be a single type or a tuple of types
ConfigType = type | tuple[type, ...]

# T is a generic type variable for return type annotation
T = TypeVar("T")

# Valid configuration keys and their types - Hierarchical structure.
# A bare ``dict`` marks a free-form section.
CONFIG_SCHEMA: dict[str, Any] = {
    "acme": {
        "service_uri": str,
        "account_email": (str, type(None)),
        "account_key": (str, type(None)),
        "registered": bool,
    },
    "certificate": {
        "domains": list,
        "output_dir": (str, type(None)),
        "export_pem": bool,
        "pfx_password": (str, type(None)),
        "renewal_days": int,
    },
    "http": {
        "webroot": (str, type(None)),
        "standalone": bool,
        "listen_port": int,
        "listen_host": str,
    },
    "dns": {
        "validator": (str, type(None)),
        "server_url": (str, type(None)),
        "server_host": (str, type(None)),
        "server_port": int,
        "server_user": (str, type(None)),
        "server_key": (str, type(None)),
        "server_password": (str, type(None)),
        "server_subdomain": (str, type(None)),
        "server_zone": (str, type(None)),
        "tsig_algorithm": str,
        "script_file": (str, type(None)),
        "script_timeout": int,
    },
    "validation": {
        "poll_interval_seconds": float,
        "poll_attempts": int,
        "dns_propagation_seconds": float,
        "network_timeout_seconds": int,
        "finalize_timeout_seconds": int,
    },
    "install": {
        "enabled": bool,
        "store_dir": (str, type(None)),
        "script_file": (str, type(None)),
        "script_timeout": int,
    },
    "system": {
        "log_level": str,
        "log_dir": (str, type(None)),
    },
    "records": dict,
}

# Valid values for specific keys
CONFIG_VALID_VALUES: dict[str, list[Any]] = {
    "validator": [None, "acme-dns", "rfc2136", "route53", "win-dns", "script"],
    "log_level": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
}


def get_config_dir() -> Path:
    """Return the acmectl configuration directory.

    ACMECTL_CONFIG_DIR wins over the per-user default.
    """
    env_config_dir = os.environ.get("ACMECTL_CONFIG_DIR")
    if env_config_dir:
        return Path(env_config_dir)
    return Path.home() / ".config" / "acmectl"


def profile_path(name: str, base_dir: Path | None = None) -> Path:
    """Return the YAML file holding the profile called ``name``."""
    config_dir = base_dir if base_dir is not None else get_config_dir()
    return config_dir / "certificates" / f"{name}.yaml"


def list_profiles(base_dir: Path | None = None) -> list[str]:
    """List the certificate profiles stored under the config directory."""
    config_dir = base_dir if base_dir is not None else get_config_dir()
    certificates_dir = config_dir / "certificates"
    if not certificates_dir.is_dir():
        return []
    return sorted(p.stem for p in certificates_dir.glob("*.yaml"))


def _get_nested_value(config: dict[str, Any], path: str) -> Any:
    """Get a value from nested config using dotted path notation.

    Args:
        config: The config dictionary
        path: Dotted path like 'acme.service_uri' or 'records._abc.serial'

    Returns:
        The value at the specified path

    Raises:
        KeyError: If the path doesn't exist
    """
    parts = path.split(".")
    current = config

    for part in parts:
        if not isinstance(current, dict) or part not in current:
            raise KeyError(f"Config path not found: {path}")
        current = current[part]

    return current


def _set_nested_value(config: dict[str, Any], path: str, value: Any) -> None:
    """Set a value in nested config using dotted path notation."""
    parts = path.split(".")
    current = config

    # Navigate to the parent of the final key
    for part in parts[:-1]:
        if part not in current or current[part] is None:
            current[part] = {}
        elif not isinstance(current[part], dict):
            raise ValueError(f"Cannot set nested value: {part} is not a dictionary")
        current = current[part]

    current[parts[-1]] = value


def _delete_nested_value(config: dict[str, Any], path: str) -> None:
    """Delete a nested key, pruning parents left empty below the section."""
    parts = path.split(".")
    trail: list[tuple[dict[str, Any], str]] = []
    current = config

    for part in parts[:-1]:
        if not isinstance(current, dict) or not isinstance(current.get(part), dict):
            return
        trail.append((current, part))
        current = current[part]

    current.pop(parts[-1], None)

    # Keep the top-level section itself
    for parent, part in reversed(trail[1:]):
        if parent[part]:
            break
        del parent[part]


def _schema_for(path: str) -> Any:
    """Return the schema entry for ``path``; ``dict`` for free-form subtrees.

    Raises:
        ValueError: If the path is invalid
    """
    parts = path.split(".")
    current_schema: Any = CONFIG_SCHEMA

    for i, part in enumerate(parts):
        if current_schema is dict:
            return dict
        if not isinstance(current_schema, dict) or part not in current_schema:
            current_path = ".".join(parts[:i])
            if current_path:
                available_keys = (
                    list(current_schema.keys())
                    if isinstance(current_schema, dict)
                    else []
                )
                raise ValueError(
                    f"Invalid config path: {path}. "
                    f"'{part}' not found in section '{current_path}'. "
                    f"Available keys: {available_keys}"
                )
            available_sections = list(CONFIG_SCHEMA.keys())
            raise ValueError(
                f"Invalid config section: {part}. "
                f"Available sections: {available_sections}"
            )
        current_schema = current_schema[part]

    return current_schema


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested config into dotted keys, for display."""
    flat: dict[str, Any] = {}
    for key, value in config.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and value:
            flat.update(flatten_config(value, path))
        else:
            flat[path] = value
    return flat


class Config(ConfigStore):
    """YAML-backed configuration for one certificate profile"""

    def __init__(self, name: str = DEFAULT_PROFILE, base_dir: Path | None = None) -> None:
        """Initialize configuration.

        Args:
            name: Certificate profile name
            base_dir: Optional configuration directory (used in testing)
        """
        if not PROFILE_NAME_PATTERN.match(name):
            raise ValueError(f"Invalid certificate profile name: {name}")

        self.name = name
        self.config_dir = base_dir if base_dir is not None else get_config_dir()
        self.config_file = profile_path(name, self.config_dir)
        self._config: dict[str, Any] = {}

        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        if self.config_file.exists():
            self._load_config()
        else:
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save_config()

    def _load_config(self) -> None:
        """Load configuration from file."""
        try:
            if self.config_file.stat().st_size == 0:
                loaded_config: dict[str, Any] = {}
            else:
                with open(self.config_file, encoding="utf-8") as f:
                    loaded_config = yaml.safe_load(f) or {}

            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._deep_merge(self._config, loaded_config)
        except (yaml.YAMLError, OSError) as e:
            raise ValueError(f"Failed to load config: {e}") from e

    def _deep_merge(self, base: dict[str, Any], updates: dict[str, Any]) -> None:
        """Deep merge updates into base dictionary."""
        for key, value in updates.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_config(self) -> None:
        """Save configuration to file."""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False)
        except (yaml.YAMLError, OSError) as e:
            raise ValueError(f"Failed to save config: {e}") from e
        # Holds the account key
        try:
            os.chmod(self.config_file, 0o600)
        except OSError:
            pass

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using either flat key or dotted path."""
        if "." in key:
            try:
                return _get_nested_value(self._config, key)
            except KeyError:
                return default
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using a dotted path."""
        if "." not in key:
            raise ValueError(
                f"Configuration keys are dotted paths, got: {key}. "
                f"Valid sections: {list(CONFIG_SCHEMA.keys())}"
            )
        expected_type = _schema_for(key)
        if expected_type is not dict:
            value = self._convert_hierarchical_value(key, expected_type, value)
            self._validate_hierarchical_value(key, expected_type, value)
        _set_nested_value(self._config, key, value)
        self._save_config()

    def _validate_hierarchical_value(
        self, path: str, expected_type: Any, value: Any
    ) -> None:
        """Validate a hierarchical value against constraints."""
        if value is None:
            if isinstance(expected_type, tuple) and type(None) in expected_type:
                return
            raise ValueError(f"None is not a valid value for {path}")

        key_name = path.split(".")[-1]
        if key_name in CONFIG_VALID_VALUES:
            valid_values = CONFIG_VALID_VALUES[key_name]
            if value not in valid_values:
                raise ValueError(
                    f"Invalid value for {path}: {value}. "
                    f"Valid values are: {valid_values}"
                )

    def _convert_hierarchical_value(
        self, path: str, expected_type: Any, value: Any
    ) -> Any:
        """Convert string value to appropriate type for hierarchical path."""
        try:
            if not isinstance(value, str):
                if expected_type is float and isinstance(value, int):
                    return float(value)
                return value

            if value.lower() == "none":
                return None

            target = expected_type
            if isinstance(expected_type, tuple):
                target = next(t for t in expected_type if t is not type(None))

            if target is bool:
                return self._convert_to_bool(path, value)
            elif target is int:
                return int(value)
            elif target is float:
                return float(value)
            elif target is list:
                return self._convert_to_list(value)
            return value
        except (ValueError, TypeError) as e:
            if "Invalid" in str(e):
                raise
            raise ValueError(f"Invalid value for {path}: {e}") from e

    def _convert_to_bool(self, key: str, value: str) -> bool:
        """Convert a string value to a boolean."""
        if value.lower() in ("true", "yes", "1", "on"):
            return True
        if value.lower() in ("false", "no", "0", "off"):
            return False
        raise ValueError(
            f"Invalid boolean value for {key}: {value}. "
            f"Use true/false, yes/no, 1/0, or on/off"
        )

    def _convert_to_list(self, value: str) -> list[Any]:
        """Convert a string value to a list."""
        value = value.strip()
        if value.startswith("[") and value.endswith("]"):
            try:
                parsed = ast.literal_eval(value)
                if isinstance(parsed, list):
                    return parsed
            except (ValueError, SyntaxError):
                pass  # Fall through to comma-separated parsing

        items = [item.strip().strip("\"'") for item in value.split(",")]
        return [item for item in items if item]

    def unset(self, key: str) -> None:
        """Unset a key: schema keys go back to default, free-form keys are removed."""
        expected_type = _schema_for(key)
        if expected_type is dict and "." in key:
            _delete_nested_value(self._config, key)
        else:
            try:
                default_value = _get_nested_value(DEFAULT_CONFIG, key)
            except KeyError as err:
                raise ValueError(f"Config path not found: {key}") from err
            _set_nested_value(self._config, key, copy.deepcopy(default_value))
        self._save_config()

    def clear(self) -> None:
        """Reset the profile to defaults."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._save_config()

    def get_all(self) -> dict[str, Any]:
        """Get all configuration values."""
        return copy.deepcopy(self._config)

    def get_typed(self, key: str, default: T) -> T:
        """Get a typed configuration value with a default."""
        value = self.get(key, default)
        return cast("T", value)

    def remove(self) -> None:
        """Delete the profile file from disk."""
        self.config_file.unlink(missing_ok=True)
