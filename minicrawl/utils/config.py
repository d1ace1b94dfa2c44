"""
Configuration management for the web crawler system.
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, get_args

import yaml


class ConfigError(ValueError):
    """Raised when a configuration file is malformed or holds invalid values."""


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    max_depth: int = 3
    max_concurrency: Optional[int] = None
    user_agent: str = "minicrawl/1.0"
    request_timeout: int = 30
    max_content_size: int = 10 * 1024 * 1024


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: Optional[str] = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _expected_types(annotation) -> Tuple[tuple, bool]:
    """Concrete types accepted for a field, and whether None is allowed."""
    args = get_args(annotation)
    if args:
        return tuple(arg for arg in args if arg is not type(None)), type(None) in args
    return (annotation,), False


def _check_field_type(section_name: str, name: str, value: Any, annotation):
    expected, nullable = _expected_types(annotation)
    if value is None:
        if nullable:
            return
    # bool is an int subclass; only accept it where a bool is expected
    elif isinstance(value, bool) and bool not in expected:
        pass
    elif isinstance(value, expected):
        return

    type_names = ' or '.join(t.__name__ for t in expected) + (' or null' if nullable else '')
    raise ConfigError(
        f"'{section_name}.{name}' must be {type_names}, got {type(value).__name__}"
    )


def _build_section(section_cls, data: Optional[Dict[str, Any]], section_name: str):
    """Build one config dataclass, rejecting unknown keys and wrongly typed values."""
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section_name}' must be a mapping")

    annotations = {f.name: f.type for f in fields(section_cls)}
    unknown = set(data) - set(annotations)
    if unknown:
        raise ConfigError(f"Unknown keys in section '{section_name}': {', '.join(sorted(str(key) for key in unknown))}")

    for name, value in data.items():
        _check_field_type(section_name, name, value, annotations[name])
    return section_cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    SECTIONS = {
        'crawler': CrawlerConfig,
        'logging': LoggingConfig,
        'monitoring': MonitoringConfig,
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file, or defaults when no path is set."""
        config_data: Dict[str, Any] = {}

        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r') as file:
                try:
                    config_data = yaml.safe_load(file) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

            if not isinstance(config_data, dict):
                raise ConfigError("Configuration root must be a mapping")

        unknown = set(config_data) - set(self.SECTIONS)
        if unknown:
            raise ConfigError(f"Unknown configuration sections: {', '.join(sorted(str(key) for key in unknown))}")

        sections = {
            name: _build_section(section_cls, config_data.get(name), name)
            for name, section_cls in self.SECTIONS.items()
        }
        self._config = Config(**sections)

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ConfigError("Configuration not loaded")

        crawler = self._config.crawler
        if not isinstance(crawler.max_depth, int) or crawler.max_depth < 0:
            raise ConfigError("max_depth must be a non-negative integer")

        if crawler.max_concurrency is not None and crawler.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1 or null")

        if crawler.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")

        if crawler.max_content_size <= 0:
            raise ConfigError("max_content_size must be positive")

        if not isinstance(logging.getLevelName(self._config.logging.level.upper()), int):
            raise ConfigError(f"Unknown logging level: {self._config.logging.level}")

        logging.getLogger(__name__).debug("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config_manager.config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file, falling back to defaults when no path is given."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()
