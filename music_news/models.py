"""Data models for the music news aggregator."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def to_iso(value: datetime) -> str:
    """Format a datetime as a fixed-width UTC ISO-8601 string (``...000Z``)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass(frozen=True)
class FeedDescriptor:
    """A configured RSS/Atom source."""

    source: str
    url: str
    default_genre: str = "Other"


@dataclass(frozen=True)
class GenreRule:
    """Ordered keyword set mapping matched text to a genre label."""

    name: str
    keywords: tuple[str, ...]


@dataclass
class Item:
    """Represents a single normalized news entry."""

    id: str
    title: str
    url: str
    source: str
    published_at: str
    summary: str | None = None
    title_ja: str | None = None
    summary_ja: str | None = None
    fallback_genre: str = field(default="", repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON response; internal fields are left out."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "publishedAt": self.published_at,
            "summary": self.summary,
        }
        if self.title_ja is not None:
            data["titleJa"] = self.title_ja
        if self.summary_ja is not None:
            data["summaryJa"] = self.summary_ja
        return data


@dataclass
class ResponseDocument:
    """Represents the document served to the front-end."""

    generated_at: datetime
    hours: int
    genres: dict[str, list[Item]]
    feed_count: int = 0
    total_items: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": to_iso(self.generated_at),
            "hours": self.hours,
            "feedCount": self.feed_count,
            "totalItems": self.total_items,
            "genres": {
                name: [item.to_dict() for item in items]
                for name, items in self.genres.items()
            },
        }
