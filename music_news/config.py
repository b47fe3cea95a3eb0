"""Configuration management for the music news aggregator."""

import os
from dataclasses import dataclass
from datetime import timedelta


@dataclass
class FetchConfig:
    """Configuration for feed downloads."""

    timeout: int = 15
    user_agent: str = "music-news-24h/1.0 (+lambda)"
    max_workers: int = 8


@dataclass
class TranslationConfig:
    """Configuration for the DeepL translation stage."""

    auth_key: str = ""
    api_base: str = "https://api-free.deepl.com"  # Pro accounts use https://api.deepl.com
    target_lang: str = "JA"
    limit: int = 40
    summary_max_chars: int = 400
    cache_ttl: timedelta = timedelta(hours=6)
    timeout: int = 15


@dataclass
class FeedSourceConfig:
    """Configuration for the feed list loader."""

    csv_url: str = ""
    cache_ttl: timedelta = timedelta(minutes=10)


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.deepl_auth_key = os.getenv("DEEPL_AUTH_KEY", "")
        self.deepl_secret_name = os.getenv("DEEPL_SECRET_NAME", "")
        self.deepl_api_base = os.getenv(
            "DEEPL_API_BASE", "https://api-free.deepl.com"
        ).rstrip("/")
        self.feeds_csv_url = os.getenv("FEEDS_CSV_URL", "")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.metrics_enabled = os.getenv("CLOUDWATCH_METRICS", "").lower() == "true"
        self.metrics_namespace = os.getenv("METRICS_NAMESPACE", "Music-News")
        self.feed_timeout = _int_env("FEED_TIMEOUT_SECONDS", 15)
        self.feed_max_workers = _int_env("FEED_MAX_WORKERS", 8)
        self.translate_limit = _int_env("TRANSLATE_LIMIT", 40)

    def get_fetch_config(self) -> FetchConfig:
        """Get feed download configuration."""
        return FetchConfig(timeout=self.feed_timeout, max_workers=self.feed_max_workers)

    def get_translation_config(self, auth_key: str | None = None) -> TranslationConfig:
        """Get translation configuration.

        Args:
            auth_key: Key resolved at runtime (e.g. from Secrets Manager);
                overrides DEEPL_AUTH_KEY when given
        """
        return TranslationConfig(
            auth_key=auth_key if auth_key is not None else self.deepl_auth_key,
            api_base=self.deepl_api_base,
            limit=self.translate_limit,
        )

    def get_feed_source_config(self) -> FeedSourceConfig:
        """Get feed list configuration."""
        return FeedSourceConfig(csv_url=self.feeds_csv_url)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default
