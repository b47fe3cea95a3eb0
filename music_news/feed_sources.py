"""Feed list loading: static defaults or a remotely published CSV."""

import csv
import io
from datetime import UTC, datetime

import requests

from .cache import TTLCache
from .config import FeedSourceConfig
from .errors import FeedSourceLoadFailed
from .logging_config import create_execution_logger
from .models import FeedDescriptor

DEFAULT_FEEDS: list[FeedDescriptor] = [
    FeedDescriptor("Pitchfork (News)", "https://pitchfork.com/feed/feed-news/rss", "Pop"),
    FeedDescriptor(
        "Pitchfork (Album Reviews)",
        "https://pitchfork.com/feed/feed-album-reviews/rss",
        "Pop",
    ),
    FeedDescriptor("Mixmag", "https://mixmag.net/rss.xml", "Techno"),
    FeedDescriptor("The Quietus", "https://thequietus.com/feed", "Experimental"),
    FeedDescriptor("Stereogum", "https://www.stereogum.com/feed", "Rock"),
    FeedDescriptor("Consequence", "http://consequenceofsound.net/feed", "Rock"),
    FeedDescriptor("EDM.com", "https://edm.com/.rss/full/", "House"),
    FeedDescriptor("音楽ナタリー", "http://natalie.mu/music/feed/news", "Japan"),
]

_CACHE_KEY = "feeds"


def parse_feed_csv(text: str) -> list[FeedDescriptor]:
    """Parse a feed list with columns ``enabled,source,url,defaultGenre``.

    Only an ``enabled`` cell reading FALSE disables a row; blank counts as
    enabled. Rows without a source or url are dropped.
    """
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

    feeds = []
    for row in reader:
        cells = {key: (value or "").strip() for key, value in row.items() if key}
        if not any(cells.values()):
            continue
        if cells.get("enabled", "").upper() == "FALSE":
            continue
        source = cells.get("source", "")
        url = cells.get("url", "")
        if not source or not url:
            continue
        feeds.append(
            FeedDescriptor(
                source=source,
                url=url,
                default_genre=cells.get("defaultGenre", "") or "Other",
            )
        )
    return feeds


class FeedSourceProvider:
    """Supplies the feed list, caching remote results for a fixed interval."""

    def __init__(
        self,
        config: FeedSourceConfig,
        cache: TTLCache | None = None,
        fallback: list[FeedDescriptor] | None = None,
        session: requests.Session | None = None,
        timeout: int = 15,
        execution_id: str | None = None,
    ):
        self.config = config
        self.cache = cache if cache is not None else TTLCache(config.cache_ttl)
        self.fallback = list(fallback) if fallback is not None else list(DEFAULT_FEEDS)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = create_execution_logger("feed_sources", execution_id)
        self._last_good: list[FeedDescriptor] | None = None

    def load(self, now: datetime | None = None) -> list[FeedDescriptor]:
        """Return the current feed list. Never raises."""
        now = now or datetime.now(UTC)
        cached = self.cache.get(_CACHE_KEY, now)
        if cached:
            return cached

        if not self.config.csv_url:
            self.cache.put(_CACHE_KEY, self.fallback, now)
            return self.fallback

        try:
            feeds = self._fetch_remote()
        except FeedSourceLoadFailed as e:
            self.logger.warning(f"Loading feed list failed: {e}", error=str(e))
            feeds = self._last_good or self.fallback
        else:
            if feeds:
                self._last_good = feeds
                self.logger.info(
                    f"Loaded {len(feeds)} feeds from CSV", feed_url=self.config.csv_url
                )
            else:
                self.logger.warning(
                    "Feed list CSV has no enabled rows, using fallback",
                    feed_url=self.config.csv_url,
                )
                feeds = self._last_good or self.fallback

        self.cache.put(_CACHE_KEY, feeds, now)
        return feeds

    def _fetch_remote(self) -> list[FeedDescriptor]:
        try:
            response = self.session.get(self.config.csv_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedSourceLoadFailed(f"feed list CSV download failed: {e}") from e

        text = response.content.decode("utf-8-sig", errors="replace")
        try:
            return parse_feed_csv(text)
        except csv.Error as e:
            raise FeedSourceLoadFailed(f"feed list CSV is malformed: {e}") from e
