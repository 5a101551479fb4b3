"""
Configuration management and loading.

Handles the client settings file and environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

CONFIG_ENV_VAR = "APPLOG_CONFIG"
TARGET_ENV_VAR = "APPLOG_TARGET"
TOKEN_ENV_VAR = "APPLOG_TOKEN"
APP_ENV_VAR = "APPLOG_APP"

DEFAULT_CONFIG_PATH = Path("~/.applog.yaml")
DEFAULT_CONNECT_TIMEOUT = 10.0


class ConfigError(ValueError):
    """Raised when the client configuration is invalid or incomplete."""


@dataclass(frozen=True)
class ClientConfig:
    """Settings needed to reach the platform API."""
    target: str
    token: Optional[str] = None
    default_app: Optional[str] = None
    color: bool = True
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    def __post_init__(self):
        """Validate config values."""
        if not self.target or not self.target.strip():
            raise ConfigError("target is required and cannot be empty")
        if self.connect_timeout <= 0:
            raise ConfigError("connect_timeout must be > 0")


def normalize_target(target: str) -> str:
    """Add a missing scheme and strip trailing slashes from a target URL."""
    target = target.strip()
    if "://" not in target:
        target = "http://" + target
    return target.rstrip("/")


def resolve_config_path(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Path:
    """Pick the config file: explicit path, then $APPLOG_CONFIG, then ~/.applog.yaml."""
    env = os.environ if env is None else env
    if path:
        return Path(path).expanduser()
    if env.get(CONFIG_ENV_VAR):
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_client_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None
) -> ClientConfig:
    """Load and validate client configuration.

    Values from the YAML file are overridden by APPLOG_TARGET,
    APPLOG_TOKEN and APPLOG_APP. Unknown keys are rejected so a typo
    never silently falls back to a default.

    Args:
        path: Path to YAML configuration file (looked up when None)
        env: Environment mapping (os.environ when None)

    Returns:
        Validated ClientConfig object

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigError: If configuration is invalid
    """
    env = os.environ if env is None else env
    explicit = bool(path) or bool(env.get(CONFIG_ENV_VAR))
    config_path = resolve_config_path(path, env)

    raw_config: Dict = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    allowed_keys = {'target', 'token', 'default_app', 'color', 'connect_timeout'}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown configuration keys: {unknown_keys}")

    target = env.get(TARGET_ENV_VAR) or raw_config.get('target')
    if not target:
        raise ConfigError(
            f"No target configured. Set 'target' in {config_path} or ${TARGET_ENV_VAR}"
        )
    if not isinstance(target, str):
        raise ConfigError("'target' must be a string")

    token = env.get(TOKEN_ENV_VAR) or raw_config.get('token')
    if token is not None and not isinstance(token, str):
        raise ConfigError("'token' must be a string")

    default_app = env.get(APP_ENV_VAR) or raw_config.get('default_app')
    if default_app is not None and not isinstance(default_app, str):
        raise ConfigError("'default_app' must be a string")

    color = raw_config.get('color', True)
    if not isinstance(color, bool):
        raise ConfigError("'color' must be true or false")

    connect_timeout = raw_config.get('connect_timeout', DEFAULT_CONNECT_TIMEOUT)
    if isinstance(connect_timeout, bool) or not isinstance(connect_timeout, (int, float)):
        raise ConfigError("'connect_timeout' must be a number")

    return ClientConfig(
        target=normalize_target(target),
        token=token or None,
        default_app=default_app or None,
        color=color,
        connect_timeout=float(connect_timeout)
    )


def _read_yaml(config_path: Path) -> Dict:
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}")

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration file must contain a mapping")
    return raw_config
