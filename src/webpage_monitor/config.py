"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
]


@dataclass
class FetchConfig:
    """Page download settings."""
    timeout: float = 10.0
    user_agents: list[str] = field(default_factory=lambda: list(DEFAULT_USER_AGENTS))


@dataclass
class DetectionConfig:
    """Change detection tuning."""
    similarity_threshold: float = 0.8
    min_word_length: int = 4
    min_item_length: int = 10
    history_size: int = 100


@dataclass
class WebhookConfig:
    """Webhook delivery settings."""
    min_interval: float = 0.5
    retry_buffer: float = 0.1
    default_retry_after: float = 1.0
    max_preview: int = 300
    timeout: float = 30.0
    username: str = "Webpage Monitor"


@dataclass
class SchedulerConfig:
    """Periodic check settings."""
    jitter: float = 0.1
    check_all_delay: float = 0.5
    initial_check_delay: float = 1.0
    reload_interval: float = 30.0


@dataclass
class PathsConfig:
    """Path settings."""
    store_path: Path = Path("monitors.yaml")


@dataclass
class LoggingConfig:
    """Log output settings."""
    level: str = "INFO"
    format: str = "console"


@dataclass
class Settings:
    """Application settings."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def store_path(self) -> Path:
        return self.paths.store_path

    @property
    def similarity_threshold(self) -> float:
        return self.detection.similarity_threshold

    @property
    def min_word_length(self) -> int:
        return self.detection.min_word_length


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)
    settings = Settings()

    sections = {
        "fetch": settings.fetch,
        "detection": settings.detection,
        "webhook": settings.webhook,
        "scheduler": settings.scheduler,
        "logging": settings.logging,
    }
    for name, section in sections.items():
        for key, value in (config.get(name) or {}).items():
            if hasattr(section, key):
                setattr(section, key, value)

    if "paths" in config:
        for key, value in (config["paths"] or {}).items():
            setattr(settings.paths, key, Path(value))

    # Environment wins over the file
    store_path = os.getenv("WEBPAGE_MONITOR_STORE")
    if store_path:
        settings.paths.store_path = Path(store_path)

    log_level = os.getenv("WEBPAGE_MONITOR_LOG_LEVEL")
    if log_level:
        settings.logging.level = log_level

    return settings
