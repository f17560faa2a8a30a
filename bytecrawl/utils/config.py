"""
Configuration management for the crawler.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field, fields


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    worker_count: int = 5
    host_fetch_limit: int = 100
    user_agent: str = "bytecrawl/1.0"
    request_timeout: Optional[float] = None
    max_pages: Optional[int] = None


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    report_interval: float = 10.0
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Config':
        """Build a Config from parsed YAML; missing keys take their defaults."""
        data = data or {}
        return cls(
            crawler=_section(CrawlerConfig, data.get('crawler')),
            logging=_section(LoggingConfig, data.get('logging')),
            monitoring=_section(MonitoringConfig, data.get('monitoring'))
        )


def _section(section_cls, values: Optional[Dict[str, Any]]):
    values = values or {}
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {section_cls.__name__} keys: {', '.join(sorted(unknown))}")
    return section_cls(**values)


def validate_config(config: Config):
    """Validate configuration values."""
    # Validate seed URLs
    if not config.crawler.seed_urls:
        raise ValueError("At least one seed URL must be provided")

    for url in config.crawler.seed_urls:
        if not url.startswith(('http://', 'https://')):
            raise ValueError(f"Seed URL must be http or https: {url}")

    # Validate numeric values
    if config.crawler.worker_count < 1:
        raise ValueError("worker_count must be at least 1")

    if config.crawler.host_fetch_limit < 1:
        raise ValueError("host_fetch_limit must be at least 1")

    if config.crawler.request_timeout is not None and config.crawler.request_timeout <= 0:
        raise ValueError("request_timeout must be positive or null")

    if config.crawler.max_pages is not None and config.crawler.max_pages < 1:
        raise ValueError("max_pages must be at least 1 or null")

    if config.monitoring.report_interval <= 0:
        raise ValueError("report_interval must be positive")

    if not isinstance(logging.getLevelName(config.logging.level.upper()), int):
        raise ValueError(f"Unknown logging level: {config.logging.level}")


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file)

        self._config = Config.from_dict(config_data)
        validate_config(self._config)

        logging.getLogger(__name__).info("Configuration validation passed")
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config



def load_config(config_path: str = "config.yaml") -> Config:
    """Load and validate configuration from file."""
    return ConfigManager(config_path).load_config()
