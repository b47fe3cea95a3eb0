"""RSS/Atom feed fetching and item normalization."""

import threading
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .config import FetchConfig
from .errors import FeedUnavailable
from .logging_config import create_execution_logger
from .models import FeedDescriptor, Item, to_iso

SUMMARY_MAX_CHARS = 240

# Structured date first, then the string forms feedparser keeps verbatim
_DATE_FIELDS = ("published_parsed", "published", "updated_parsed", "updated")


def resolve_published(candidates: Iterable[Any]) -> datetime | None:
    """Return the first candidate that parses to a valid instant.

    Candidates may be datetimes, ``time.struct_time`` values (as produced by
    feedparser, always UTC) or date strings. Naive values are taken as UTC.
    """
    for candidate in candidates:
        if not candidate:
            continue
        try:
            if isinstance(candidate, datetime):
                parsed = candidate
            elif isinstance(candidate, time.struct_time):
                parsed = datetime(*candidate[:6], tzinfo=UTC)
            else:
                parsed = date_parser.parse(str(candidate))
        except (ValueError, OverflowError, TypeError):
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    return None


def clean_html_content(content: str | None) -> str:
    """Remove HTML tags from content and collapse whitespace."""
    if not content:
        return ""

    if "<" in content or ">" in content:
        soup = BeautifulSoup(content, "html.parser")
        for script in soup(["script", "style"]):
            script.decompose()
        content = soup.get_text(separator=" ")

    return " ".join(content.split())


class FeedProcessor:
    """Downloads feeds and normalizes their entries into Items."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        """Initialize FeedProcessor.

        Args:
            config: Timeout and User-Agent settings
            session: HTTP session used by every fetch. When omitted, each
                calling thread gets its own session
            execution_id: Execution ID for logging context
        """
        self.config = config or FetchConfig()
        self.logger = create_execution_logger("feed_processor", execution_id)
        self._session = session
        self._local = threading.local()
        if session is not None:
            session.headers.update({"User-Agent": self.config.user_agent})

    @property
    def session(self) -> requests.Session:
        """HTTP session for the calling thread."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.config.user_agent})
            self._local.session = session
        return session

    def fetch(self, descriptor: FeedDescriptor) -> list[dict]:
        """Download and parse one feed.

        Returns:
            Raw feedparser entries

        Raises:
            FeedUnavailable: On network errors, HTTP errors or unparseable feeds
        """
        try:
            response = self.session.get(descriptor.url, timeout=self.config.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedUnavailable(descriptor.source, descriptor.url, str(e)) from e

        feed = feedparser.parse(response.content)

        if feed.bozo:
            reason = str(getattr(feed, "bozo_exception", "malformed feed"))
            if not feed.entries:
                raise FeedUnavailable(descriptor.source, descriptor.url, reason)
            self.logger.warning(
                f"Feed parsing warning for {descriptor.source}: {reason}",
                source=descriptor.source,
                feed_url=descriptor.url,
            )

        return list(feed.entries)

    def fetch_items(self, descriptor: FeedDescriptor, since: datetime) -> list[Item]:
        """Fetch one feed and keep the entries that normalize inside the window."""
        entries = self.fetch(descriptor)

        items = []
        for entry in entries:
            try:
                item = self.normalize_item(entry, descriptor, since)
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize entry from {descriptor.source}: {e}",
                    source=descriptor.source,
                    error=str(e),
                )
                continue
            if item is not None:
                items.append(item)

        self.logger.log_feed_processing(descriptor.source, descriptor.url, len(items))
        return items

    def normalize_item(
        self, entry: dict, descriptor: FeedDescriptor, since: datetime
    ) -> Item | None:
        """Convert a raw entry into an Item, or None if it must be discarded.

        Entries are discarded when their date is missing or unparseable,
        older than ``since``, or when they lack a title or url.
        """
        published = resolve_published(entry.get(name) for name in _DATE_FIELDS)
        if published is None or published < since:
            return None

        title = (entry.get("title") or "").strip()
        url = (entry.get("link") or "").strip() or (entry.get("id") or "").strip()
        if not title or not url:
            return None

        summary = entry.get("summary")
        if not summary and entry.get("content"):
            summary = entry["content"][0].get("value", "")
        summary = clean_html_content(summary)[:SUMMARY_MAX_CHARS] or None

        return Item(
            id=f"{descriptor.source}::{url}",
            title=title,
            url=url,
            source=descriptor.source,
            published_at=to_iso(published),
            summary=summary,
            fallback_genre=descriptor.default_genre,
        )
