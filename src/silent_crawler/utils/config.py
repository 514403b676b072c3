"""
Configuration management for the crawler.

Configuration is built once at startup from an optional YAML file and
command-line overrides, validated, and then passed around as frozen
dataclasses.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin
from urllib.parse import urlsplit

import yaml


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class ConfigError(ValueError):
    """Invalid configuration value."""
    pass


@dataclass(frozen=True)
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_url: str = ''
    max_depth: int = 3
    delay: float = 0.5
    jitter: float = 0.5
    request_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    respect_robots_txt: bool = True
    concurrency: int = 10
    record_non_html: bool = False
    record_external: bool = False
    max_content_size: int = 10 * 1024 * 1024


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: Optional[str] = None
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass(frozen=True)
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000
    stats_interval: float = 30.0


@dataclass(frozen=True)
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _check_type(section: str, key: str, expected, value: Any) -> Any:
    """Return ``value`` if it fits the field type; ints are accepted for floats."""
    allow_none = False
    if get_origin(expected) is Union:
        args = [arg for arg in get_args(expected) if arg is not type(None)]
        allow_none = len(args) < len(get_args(expected))
        expected = args[0]

    if value is None and allow_none:
        return value
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, expected) and not (expected is int and isinstance(value, bool)):
        return value

    raise ConfigError(
        f"'{section}.{key}' must be of type {expected.__name__}, got {value!r}"
    )


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")

    types = {f.name: f.type for f in fields(cls)}
    unknown = set(data) - set(types)
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {', '.join(sorted(unknown))}")

    values = {key: _check_type(name, key, types[key], value) for key, value in data.items()}
    return cls(**values)


class ConfigManager:
    """Loads configuration and validates it."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self.logger = logging.getLogger(__name__)

    def load_config(self, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
        """
        Load configuration from the YAML file (if any) and apply overrides.

        Args:
            overrides: Per-section values that take precedence over the file,
                e.g. ``{'crawler': {'max_depth': 2}}``

        Returns:
            Validated Config
        """
        config_data: Dict[str, Any] = {}
        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigError(f"Configuration file not found: {self.config_path}")
            try:
                with open(self.config_path, 'r') as file:
                    config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(config_data, dict):
                raise ConfigError(f"Configuration file must contain a mapping: {self.config_path}")

        try:
            config = Config(
                crawler=_section(CrawlerConfig, config_data.get('crawler'), 'crawler'),
                logging=_section(LoggingConfig, config_data.get('logging'), 'logging'),
                monitoring=_section(MonitoringConfig, config_data.get('monitoring'), 'monitoring'),
            )
        except TypeError as e:
            raise ConfigError(str(e)) from e

        for section, values in (overrides or {}).items():
            present = {key: value for key, value in values.items() if value is not None}
            if present:
                config = replace(config, **{section: replace(getattr(config, section), **present)})

        seed_url = config.crawler.seed_url.strip()
        if seed_url and '://' not in seed_url:
            config = replace(config, crawler=replace(config.crawler, seed_url=f'http://{seed_url}'))

        self.validate(config)
        return config

    def validate(self, config: Config):
        """Validate configuration values."""
        crawler = config.crawler

        if not crawler.seed_url:
            raise ConfigError("A seed URL must be provided")

        parsed = urlsplit(crawler.seed_url)
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            raise ConfigError(f"Seed URL must be an http(s) URL with a host: {crawler.seed_url}")

        if crawler.max_depth < 0:
            raise ConfigError("depth must be a non-negative integer")

        if crawler.delay < 0:
            raise ConfigError("wait must be non-negative")

        if crawler.jitter < 0:
            raise ConfigError("jitter must be non-negative")

        if crawler.request_timeout <= 0:
            raise ConfigError("timeout must be greater than zero")

        if crawler.concurrency < 1:
            raise ConfigError("concurrency must be at least 1")

        if not crawler.user_agent.strip():
            raise ConfigError("user agent must not be empty")

        if config.logging.level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigError(f"Unknown log level: {config.logging.level}")

        if not 0 < config.monitoring.prometheus_port < 65536:
            raise ConfigError("prometheus_port must be between 1 and 65535")

        if config.monitoring.stats_interval <= 0:
            raise ConfigError("stats_interval must be greater than zero")

        self.logger.debug("Configuration validation passed")


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
    """Load and validate configuration."""
    return ConfigManager(config_path).load_config(overrides)
