"""Concurrent multi-feed aggregation with de-duplication."""

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime

from .errors import FeedUnavailable
from .logging_config import create_execution_logger
from .models import FeedDescriptor, Item
from .rss import FeedProcessor


@dataclass
class FeedOutcome:
    """Settled result of fetching one feed: items, or the error that stopped it."""

    descriptor: FeedDescriptor
    items: list[Item] = field(default_factory=list)
    error: FeedUnavailable | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def dedupe_and_sort(items: list[Item]) -> list[Item]:
    """Sort newest first and keep the first occurrence of each url.

    Items with the same ``published_at`` are ordered by source, then url,
    so repeated runs over the same input give the same result.
    """
    ordered = sorted(items, key=lambda item: (item.source, item.url))
    ordered.sort(key=lambda item: item.published_at, reverse=True)

    seen: set[str] = set()
    deduped = []
    for item in ordered:
        if item.url in seen:
            continue
        seen.add(item.url)
        deduped.append(item)
    return deduped


class FeedAggregator:
    """Fetches every feed concurrently and merges the results."""

    def __init__(
        self,
        processor: FeedProcessor,
        max_workers: int = 8,
        execution_id: str | None = None,
    ):
        self.processor = processor
        self.max_workers = max_workers
        self.logger = create_execution_logger("aggregator", execution_id)

    def fetch_all(
        self, descriptors: list[FeedDescriptor], since: datetime
    ) -> list[FeedOutcome]:
        """Fetch all feeds and wait until every one has succeeded or failed.

        Returns:
            One FeedOutcome per descriptor, in descriptor order
        """
        if not descriptors:
            return []

        workers = max(1, min(self.max_workers, len(descriptors)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures: list[Future[list[Item]]] = [
                executor.submit(self.processor.fetch_items, descriptor, since)
                for descriptor in descriptors
            ]
            wait(futures)

        outcomes = []
        for descriptor, future in zip(descriptors, futures):
            try:
                outcomes.append(FeedOutcome(descriptor, items=future.result()))
            except FeedUnavailable as e:
                self.logger.warning(
                    f"Feed fetch failed [{descriptor.source}]: {e.reason}",
                    source=descriptor.source,
                    feed_url=descriptor.url,
                    error=e.reason,
                )
                outcomes.append(FeedOutcome(descriptor, error=e))
            except Exception as e:
                self.logger.error(
                    f"Unexpected error fetching {descriptor.source}: {e}",
                    source=descriptor.source,
                    feed_url=descriptor.url,
                    error=str(e),
                )
                outcomes.append(
                    FeedOutcome(
                        descriptor,
                        error=FeedUnavailable(descriptor.source, descriptor.url, str(e)),
                    )
                )
        return outcomes

    def merge_items(self, outcomes: list[FeedOutcome]) -> list[Item]:
        """Concatenate the items of all outcomes, then dedupe and sort."""
        items = [item for outcome in outcomes for item in outcome.items]
        merged = dedupe_and_sort(items)
        self.logger.info(
            f"Merged {len(items)} items into {len(merged)} unique items",
            items_found=len(items),
            items_unique=len(merged),
        )
        return merged

    def aggregate(self, descriptors: list[FeedDescriptor], since: datetime) -> list[Item]:
        """Fetch every feed and return deduplicated items, newest first."""
        return self.merge_items(self.fetch_all(descriptors, since))
