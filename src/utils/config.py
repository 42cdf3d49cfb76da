"""
Configuration management for the crawler workers.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    crawl_id: str = "default"
    max_depth: int = -1
    follow_redirects: bool = True
    num_workers: int = 4
    pull_size: int = 10
    pull_retry_delay: float = 5.0
    request_timeout: int = 30
    max_content_size: int = 10 * 1024 * 1024
    user_agent: str = "ContinuousCrawler/1.0"
    respect_robots_txt: bool = True
    allowed_domains: List[str] = field(default_factory=list)
    blocked_domains: List[str] = field(default_factory=list)


@dataclass
class RedisConfig:
    """Configuration for Redis."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    frontier_key: str = "crawler:frontier"


@dataclass
class HistoryConfig:
    """Configuration for the crawl history store."""
    type: str = "file"
    retry_attempts: int = 3
    retry_delay: float = 1.0
    file: Dict[str, Any] = field(default_factory=lambda: {'path': 'data/crawl_history.jsonl'})
    cassandra: Dict[str, Any] = field(default_factory=dict)


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
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    redis: RedisConfig
    history: HistoryConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig


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
            config_data = yaml.safe_load(file) or {}

        self._config = self.from_dict(config_data)
        self._validate_config()
        return self._config

    @staticmethod
    def from_dict(config_data: Dict[str, Any]) -> Config:
        """Build a Config from parsed YAML; missing sections and keys take defaults."""
        return Config(
            crawler=CrawlerConfig(**(config_data.get('crawler') or {})),
            redis=RedisConfig(**(config_data.get('redis') or {})),
            history=HistoryConfig(**(config_data.get('history') or {})),
            logging=LoggingConfig(**(config_data.get('logging') or {})),
            monitoring=MonitoringConfig(**(config_data.get('monitoring') or {}))
        )

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")

        crawler = self._config.crawler

        # -1 means unlimited depth
        if crawler.max_depth < -1:
            raise ValueError("max_depth must be -1 (unlimited) or non-negative")

        if crawler.pull_size < 1:
            raise ValueError("pull_size must be at least 1")

        if crawler.pull_retry_delay < 0:
            raise ValueError("pull_retry_delay must be non-negative")

        if crawler.num_workers < 1:
            raise ValueError("num_workers must be at least 1")

        if self._config.history.type not in ['file', 'cassandra']:
            raise ValueError("History type must be 'file' or 'cassandra'")

        if self._config.history.retry_attempts < 1:
            raise ValueError("history retry_attempts must be at least 1")

        logging.getLogger(__name__).info("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config_manager.config


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()
