"""Assembly of the JSON response document."""

from collections.abc import Callable
from datetime import datetime

from .genres import classify
from .models import Item, ResponseDocument


def group_by_genre(
    items: list[Item], classifier: Callable[[Item], str] = classify
) -> dict[str, list[Item]]:
    """Group items by genre; genres appear in the order they are first seen."""
    genres: dict[str, list[Item]] = {}
    for item in items:
        genres.setdefault(classifier(item), []).append(item)
    return genres


def assemble_response(
    items: list[Item],
    hours: int,
    now: datetime,
    feed_count: int = 0,
    classifier: Callable[[Item], str] = classify,
) -> ResponseDocument:
    return ResponseDocument(
        generated_at=now,
        hours=hours,
        genres=group_by_genre(items, classifier),
        feed_count=feed_count,
        total_items=len(items),
    )
