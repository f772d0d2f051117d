"""
Configuration management for the crawler.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..crawler.fetcher import DEFAULT_MAX_CONTENT_BYTES, DEFAULT_USER_AGENT
from ..crawler.url_frontier import FrontierPolicy
from ..storage.exporter import EXPORT_FORMATS

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_url: str = ''
    max_pages: Optional[int] = None
    allowed_domains: List[str] = field(default_factory=list)
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: int = 30
    max_content_bytes: int = DEFAULT_MAX_CONTENT_BYTES
    max_duration: Optional[int] = None
    progress_interval: int = 50

    def to_policy(self) -> FrontierPolicy:
        """Admission policy for the frontier built from these options."""
        return FrontierPolicy.create(
            max_pages=self.max_pages,
            allowed_domains=self.allowed_domains
        )


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: Optional[str] = 'logs/crawler.log'
    format: str = DEFAULT_LOG_FORMAT
    json: bool = False


@dataclass
class ExportConfig:
    """Configuration for document export (disabled without an output_dir)."""
    output_dir: Optional[str] = None
    filename: Optional[str] = None
    format: str = 'jsonl'
    include_html: bool = False

    @property
    def enabled(self) -> bool:
        return bool(self.output_dir)


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Config':
        """Build and validate a configuration from parsed YAML."""
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration root must be a mapping")

        config = cls(
            crawler=_build_section(CrawlerConfig, data.get('crawler'), 'crawler'),
            logging=_build_section(LoggingConfig, data.get('logging'), 'logging'),
            export=_build_section(ExportConfig, data.get('export'), 'export')
        )
        validate_config(config)
        return config


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None
        self.logger = logging.getLogger(__name__)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Load configuration from YAML file.

        Args:
            overrides: Crawler options that replace the file's values;
                entries whose value is None are ignored
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            try:
                config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Malformed YAML in {self.config_path}: {e}") from e

        self._config = Config.from_dict(merge_overrides(config_data, overrides))
        self.logger.info(f"Configuration loaded from {self.config_path}")
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def _build_section(section_cls, section_data: Optional[Dict[str, Any]], name: str):
    if section_data is None:
        section_data = {}
    if not isinstance(section_data, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")

    known = {f.name for f in dataclasses.fields(section_cls)}
    unknown = sorted(set(section_data) - known)
    if unknown:
        raise ValueError(f"Unknown {name} option(s): {', '.join(unknown)}")

    return section_cls(**section_data)


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler

    if not crawler.seed_url or not str(crawler.seed_url).strip():
        raise ValueError("A seed_url must be provided")

    if crawler.max_pages is not None:
        if isinstance(crawler.max_pages, bool) or not isinstance(crawler.max_pages, int) \
                or crawler.max_pages < 1:
            raise ValueError("max_pages must be a positive integer")

    if crawler.allowed_domains is None:
        crawler.allowed_domains = []
    if isinstance(crawler.allowed_domains, str) or not all(
            isinstance(domain, str) for domain in crawler.allowed_domains):
        raise ValueError("allowed_domains must be a list of host names")

    _check_number('request_timeout', crawler.request_timeout, positive=True)
    _check_number('max_content_bytes', crawler.max_content_bytes, positive=True, integer=True)
    if crawler.max_duration is not None:
        _check_number('max_duration', crawler.max_duration, positive=True)
    _check_number('progress_interval', crawler.progress_interval, integer=True)

    if not isinstance(crawler.user_agent, str) or not crawler.user_agent.strip():
        raise ValueError("user_agent must be a non-empty string")

    if str(config.logging.level).upper() not in VALID_LOG_LEVELS:
        raise ValueError(f"Logging level must be one of {', '.join(VALID_LOG_LEVELS)}")

    validate_export_config(config.export)

    logging.getLogger(__name__).debug("Configuration validation passed")


def validate_export_config(export: ExportConfig):
    """Validate the export section."""
    if export.output_dir is not None and not isinstance(export.output_dir, str):
        raise ValueError("export.output_dir must be a path string")

    if export.format not in EXPORT_FORMATS:
        raise ValueError(f"export.format must be one of {', '.join(EXPORT_FORMATS)}")

    if export.filename is not None:
        if not isinstance(export.filename, str) or not export.filename.strip() \
                or Path(export.filename).name != export.filename:
            raise ValueError("export.filename must be a plain file name")

    if not isinstance(export.include_html, bool):
        raise ValueError("export.include_html must be true or false")


def _check_number(name: str, value: Any, positive: bool = False, integer: bool = False):
    """Raise ValueError unless value is a number in range."""
    allowed = int if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, allowed):
        kind = "an integer" if integer else "a number"
        raise ValueError(f"{name} must be {kind}, got {value!r}")

    if positive and value <= 0:
        raise ValueError(f"{name} must be positive")
    if not positive and value < 0:
        raise ValueError(f"{name} must be non-negative")


def merge_overrides(data: Optional[Dict[str, Any]],
                    overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a copy of raw config data with crawler options replaced."""
    if data is not None and not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping")

    merged = dict(data or {})
    changes = {key: value for key, value in (overrides or {}).items() if value is not None}
    if changes:
        crawler = merged.get('crawler') or {}
        if not isinstance(crawler, dict):
            raise ValueError("Configuration section 'crawler' must be a mapping")
        merged['crawler'] = {**crawler, **changes}
    return merged


def load_config(config_path: Optional[str] = "config.yaml",
                overrides: Optional[Dict[str, Any]] = None) -> Config:
    """
    Load configuration from file, or from overrides alone when config_path is None.
    """
    if config_path is None:
        return Config.from_dict(merge_overrides({}, overrides))
    return ConfigManager(config_path).load_config(overrides)
