"""
Configuration management for LinkPost.
"""
import copy
import os
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from linkpost.core.article import ConfigError
from linkpost.sources import DEFAULT_SOURCES, Source, sources_from_config

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONFIG = {
    "posts": {
        "max_per_day": 3,
        "min_article_length": 200,
        "max_article_length": 8000,
        "min_summary_length": 50,
        "summary_window": 300,
        "min_length": 50,
        "max_length": 3000,
        "generation_delay": 1.0,
    },
    "rss": {
        "max_per_source": 5,
        "timeout_seconds": 30,
        "max_tries": 2,
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
    },
    "scrape": {
        "timeout_seconds": 10,
        "requests_per_second": 1,
    },
    "summarizer": {
        "provider": "huggingface",
        "token": "",
        "model": "facebook/bart-large-cnn",
        "endpoint": "https://router.huggingface.co/hf-inference/models",
        "timeout_seconds": 30,
        "openai_model": "gpt-4o-mini",
        "temperature": 0.7,
    },
    "visuals": {
        "enabled": True,
        "image_model": "black-forest-labs/FLUX.1-schnell",
        "timeout_seconds": 60,
        "images_dir": "public/images",
        "infographics_dir": "public/infographics",
    },
    "scheduler": {
        "hour": 9,
        "minute": 0,
        "timezone": "America/New_York",
    },
    "storage": {
        "db_path": "data/articles.db",
        "drafts_path": "drafts",
    },
    "sources": None,
}

# Plain environment variables understood for compatibility with .env files
# written for earlier deployments: name -> (dotted key, converter)
LEGACY_ENV = {
    "HUGGINGFACE_TOKEN": ("summarizer.token", str),
    "SUMMARIZATION_MODEL": ("summarizer.model", str),
    "OPENAI_API_KEY": ("summarizer.openai_api_key", str),
    "MAX_POSTS_PER_DAY": ("posts.max_per_day", int),
    "MIN_ARTICLE_LENGTH": ("posts.min_article_length", int),
    "MAX_ARTICLE_LENGTH": ("posts.max_article_length", int),
    "DATABASE_PATH": ("storage.db_path", str),
    "DRAFTS_PATH": ("storage.drafts_path", str),
    "MAX_ARTICLES_PER_SOURCE": ("rss.max_per_source", int),
    "FETCH_TIMEOUT_MS": ("rss.timeout_seconds", lambda v: int(v) / 1000.0),
    "SCHEDULE_HOUR": ("scheduler.hour", int),
    "SCHEDULE_MINUTE": ("scheduler.minute", int),
    "SCHEDULE_TIMEZONE": ("scheduler.timezone", str),
}


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration, built once at startup and handed to every
    component constructor.
    """
    max_posts_per_day: int = 3
    min_article_length: int = 200
    max_article_length: int = 8000
    min_summary_length: int = 50
    summary_window: int = 300
    post_min_length: int = 50
    post_max_length: int = 3000
    generation_delay: float = 1.0

    max_per_source: int = 5
    feed_timeout: float = 30.0
    feed_max_tries: int = 2
    user_agent: str = DEFAULT_CONFIG["rss"]["user_agent"]

    scrape_timeout: float = 10.0
    scrape_rate_limit: float = 1.0

    summarizer_provider: str = "huggingface"
    summarizer_token: str = ""
    summarizer_model: str = "facebook/bart-large-cnn"
    summarizer_endpoint: str = "https://router.huggingface.co/hf-inference/models"
    summarizer_timeout: float = 30.0
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    temperature: float = 0.7

    visuals_enabled: bool = True
    image_model: str = "black-forest-labs/FLUX.1-schnell"
    image_timeout: float = 60.0
    images_dir: str = "public/images"
    infographics_dir: str = "public/infographics"

    schedule_hour: int = 9
    schedule_minute: int = 0
    schedule_timezone: str = "America/New_York"

    db_path: str = "data/articles.db"
    drafts_path: str = "drafts"

    sources: Tuple[Source, ...] = field(default_factory=lambda: tuple(DEFAULT_SOURCES))

    @property
    def summarizer_enabled(self) -> bool:
        if self.summarizer_provider == "openai":
            return bool(self.openai_api_key)
        return bool(self.summarizer_token)

    def validate(self) -> "Settings":
        """
        Check the settings for values no run could work with.

        Raises:
            ConfigError: On the first invalid value found

        Returns:
            self, so the call can be chained
        """
        if not 0 <= self.schedule_hour <= 23:
            raise ConfigError(f"scheduler.hour must be 0-23, got {self.schedule_hour}")
        if not 0 <= self.schedule_minute <= 59:
            raise ConfigError(f"scheduler.minute must be 0-59, got {self.schedule_minute}")
        try:
            ZoneInfo(self.schedule_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown scheduler.timezone {self.schedule_timezone!r}") from e
        for name in ("max_posts_per_day", "min_article_length", "max_per_source",
                     "post_max_length", "feed_max_tries"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("feed_timeout", "scrape_timeout", "summarizer_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be a positive number of seconds")
        if self.post_min_length > self.post_max_length:
            raise ConfigError("posts.min_length must not exceed posts.max_length")
        if self.min_article_length > self.max_article_length:
            raise ConfigError("posts.min_article_length must not exceed posts.max_article_length")
        if self.summarizer_provider not in ("huggingface", "openai"):
            raise ConfigError(f"Unknown summarizer.provider {self.summarizer_provider!r}")
        if not self.sources:
            raise ConfigError("At least one feed source must be configured")
        return self


class Config:
    """
    Configuration manager for LinkPost.
    """
    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the Config.

        Args:
            config_path: Path to a YAML or JSON configuration file
            environ: Environment mapping to read overrides from (defaults to os.environ)
        """
        self.config_path = config_path
        self.environ = os.environ if environ is None else environ
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """
        Load configuration from defaults, file and environment.

        Returns:
            Configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            path = Path(self.config_path)
            if path.exists():
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        if path.suffix.lower() in ['.yaml', '.yml']:
                            user_config = yaml.safe_load(f) or {}
                        elif path.suffix.lower() == '.json':
                            user_config = json.load(f)
                        else:
                            raise ConfigError(f"Unsupported config file format: {path.suffix}")
                except (yaml.YAMLError, json.JSONDecodeError, OSError) as e:
                    raise ConfigError(f"Error loading config from {self.config_path}: {e}") from e
                if not isinstance(user_config, dict):
                    raise ConfigError(f"Config file {self.config_path} must contain a mapping")
                self._update_dict(config, user_config)
            else:
                logger.warning("Config file %s not found, using defaults", self.config_path)

        self._override_from_legacy_env(config)
        self._override_from_env(config)

        return config

    def _update_dict(self, target: Dict, source: Dict) -> None:
        """
        Recursively update a dictionary.

        Args:
            target: Target dictionary to update
            source: Source dictionary with new values
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _set(self, config: Dict, dotted: str, value: Any) -> None:
        parts = dotted.split('.')
        current = config
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def _override_from_legacy_env(self, config: Dict) -> None:
        for name, (dotted, convert) in LEGACY_ENV.items():
            raw = self.environ.get(name)
            if raw is None or not raw.strip():
                continue
            try:
                self._set(config, dotted, convert(raw.strip()))
            except ValueError as e:
                raise ConfigError(f"Invalid value for {name}: {raw!r}") from e

    def _override_from_env(self, config: Dict, prefix: str = 'LINKPOST_') -> None:
        """
        Override configuration with prefixed environment variables.

        Sections are separated by a double underscore, so
        LINKPOST_POSTS__MAX_PER_DAY=5 sets posts.max_per_day.

        Args:
            config: Configuration dictionary to update
            prefix: Prefix for environment variables
        """
        for key, value in self.environ.items():
            if not key.startswith(prefix) or key == f"{prefix}CONFIG_PATH":
                continue
            dotted = key[len(prefix):].lower().replace('__', '.')
            try:
                # Try to parse as JSON
                parsed = json.loads(value)
            except json.JSONDecodeError:
                # If not valid JSON, use as string
                parsed = value
            self._set(config, dotted, parsed)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'posts.max_per_day')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self.config
        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def _sources(self) -> List[Source]:
        entries = self.get('sources')
        if not entries:
            return list(DEFAULT_SOURCES)
        try:
            return sources_from_config(entries)
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Invalid sources entry: {e}") from e

    def settings(self) -> Settings:
        """
        Build and validate the Settings handed to the components.

        Raises:
            ConfigError: If a value has the wrong type or is out of range

        Returns:
            Validated Settings
        """
        get = self.get
        try:
            settings = Settings(
                max_posts_per_day=int(get('posts.max_per_day')),
                min_article_length=int(get('posts.min_article_length')),
                max_article_length=int(get('posts.max_article_length')),
                min_summary_length=int(get('posts.min_summary_length')),
                summary_window=int(get('posts.summary_window')),
                post_min_length=int(get('posts.min_length')),
                post_max_length=int(get('posts.max_length')),
                generation_delay=float(get('posts.generation_delay')),
                max_per_source=int(get('rss.max_per_source')),
                feed_timeout=float(get('rss.timeout_seconds')),
                feed_max_tries=int(get('rss.max_tries')),
                user_agent=str(get('rss.user_agent')),
                scrape_timeout=float(get('scrape.timeout_seconds')),
                scrape_rate_limit=float(get('scrape.requests_per_second')),
                summarizer_provider=str(get('summarizer.provider')).lower(),
                summarizer_token=str(get('summarizer.token') or ''),
                summarizer_model=str(get('summarizer.model')),
                summarizer_endpoint=str(get('summarizer.endpoint')).rstrip('/'),
                summarizer_timeout=float(get('summarizer.timeout_seconds')),
                openai_api_key=str(get('summarizer.openai_api_key') or ''),
                openai_model=str(get('summarizer.openai_model')),
                temperature=float(get('summarizer.temperature')),
                visuals_enabled=bool(get('visuals.enabled')),
                image_model=str(get('visuals.image_model')),
                image_timeout=float(get('visuals.timeout_seconds')),
                images_dir=str(get('visuals.images_dir')),
                infographics_dir=str(get('visuals.infographics_dir')),
                schedule_hour=int(get('scheduler.hour')),
                schedule_minute=int(get('scheduler.minute')),
                schedule_timezone=str(get('scheduler.timezone')),
                db_path=str(get('storage.db_path')),
                drafts_path=str(get('storage.drafts_path')),
                sources=tuple(self._sources()),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid configuration value: {e}") from e
        return settings.validate()

    def save(self, path: Optional[str] = None) -> bool:
        """
        Save the current configuration to a file.

        Args:
            path: Path to save the configuration to

        Returns:
            True if successful, False otherwise
        """
        save_path = path or self.config_path
        if not save_path:
            logger.error("No path specified for saving configuration")
            return False

        target = Path(save_path)
        try:
            if target.suffix.lower() in ['.yaml', '.yml']:
                with open(target, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(self.config, f, default_flow_style=False)
            elif target.suffix.lower() == '.json':
                with open(target, 'w', encoding='utf-8') as f:
                    json.dump(self.config, f, indent=2)
            else:
                raise ValueError(f"Unsupported config file format: {target.suffix}")
            return True
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error("Error saving config to %s: %s", save_path, e)
            return False


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load .env, read the configuration and return validated Settings.

    Args:
        config_path: Optional YAML/JSON file; defaults to $LINKPOST_CONFIG_PATH

    Returns:
        Validated Settings
    """
    load_dotenv()
    path = config_path or os.getenv('LINKPOST_CONFIG_PATH')
    settings = Config(path).settings()
    if not settings.summarizer_enabled:
        logger.warning(
            "No summarizer credential configured; drafts will use the templated fallback"
        )
    return settings
