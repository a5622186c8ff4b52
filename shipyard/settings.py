"""
Settings for a shipyard run.

Defaults hold the fixed constants of a RabbitScout deployment. A YAML file
(shipyard.yaml in the working directory, or the path in SHIPYARD_CONFIG) may
override any of them using the same nested section names.
"""

import logging
import tempfile
import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "shipyard.yaml"


@dataclass
class AppSettings:
    name: str = "RabbitScout"
    port: int = 3456
    source_dir: str = "RabbitScout"         # checkout directory, relative to cwd
    repo_url: Optional[str] = "https://github.com/Ralve-org/RabbitScout.git"
    build_dir: str = ".next"
    env_file: str = ".env.production"
    fallback_env_file: str = ".env.local"
    entry_script: str = "server.js"
    extra_packages: List[str] = field(default_factory=lambda: ["sharp"])


@dataclass
class DeploySettings:
    root: str = "/var/www"
    serving_group: str = "www-data"
    mode: str = "775"


@dataclass
class RestartSettings:
    max_restarts: int = 10
    min_uptime_seconds: float = 10.0
    restart_delay_ms: int = 4000
    max_memory: str = "1G"


@dataclass
class ProxySettings:
    server_name: str = "rabbitmq.localhost"
    listen_port: int = 80
    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    nginx_conf: str = "/etc/nginx/nginx.conf"
    site_suffix: str = "rabbitmq"
    log_dir: str = "/var/log/nginx"
    log_prefix: str = "rabbitmq-scout"


@dataclass
class TimeoutSettings:
    default: float = 300.0
    install: float = 1800.0
    build: float = 1800.0


@dataclass
class HealthSettings:
    settle_seconds: float = 3.0
    http_timeout: float = 5.0
    log_lines: int = 20


@dataclass
class Settings:
    """All settings of a run, threaded explicitly through every stage."""
    app: AppSettings = field(default_factory=AppSettings)
    deploy: DeploySettings = field(default_factory=DeploySettings)
    restart: RestartSettings = field(default_factory=RestartSettings)
    proxy: ProxySettings = field(default_factory=ProxySettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    health: HealthSettings = field(default_factory=HealthSettings)
    state_dir: str = ".shipyard"
    lock_dir: str = field(default_factory=tempfile.gettempdir)  # shared by every checkout on the host

    @property
    def deploy_dir(self) -> Path:
        return Path(self.deploy.root) / self.app.name

    @property
    def site_file_name(self) -> str:
        return f"{self.app.name}.{self.proxy.site_suffix}"

    @property
    def source_path(self) -> Path:
        return Path(self.app.source_dir).resolve()


def _apply(target: Any, data: Dict[str, Any], prefix: str = "") -> Any:
    known = {f.name for f in fields(target)}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if key not in known:
            raise ConfigError(f"Unknown setting: {dotted}")
        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ConfigError(f"Setting '{dotted}' must be a mapping")
            _apply(current, value, f"{dotted}.")
            continue
        if isinstance(current, (int, float)) and not isinstance(current, bool):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"Setting '{dotted}' must be a number, got {value!r}")
        elif isinstance(current, list) and not isinstance(value, list):
            raise ConfigError(f"Setting '{dotted}' must be a list")
        setattr(target, key, value)
    return target


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings, applying YAML overrides on top of the defaults.

    Args:
        path: Explicit config file. When given it must exist.

    Returns:
        Settings instance

    Raises:
        ConfigError: If the file is unreadable, malformed or has unknown keys
    """
    explicit = path or os.environ.get("SHIPYARD_CONFIG")
    config_path = Path(explicit or DEFAULT_CONFIG_FILE)

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.debug("No %s found, using defaults", DEFAULT_CONFIG_FILE)
        return Settings()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping at top level")

    logger.debug("Loaded settings overrides from %s", config_path)
    return _apply(Settings(), data)
