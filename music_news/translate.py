"""Translation of foreign-language items through DeepL, with a TTL cache."""

import re
from dataclasses import dataclass
from datetime import UTC, datetime

import requests

from .cache import TTLCache
from .config import TranslationConfig
from .errors import TranslationUnavailable
from .logging_config import create_execution_logger
from .models import Item

_ASCII_LETTER = re.compile(r"[A-Za-z]")
_NON_SPACE = re.compile(r"\S")


def looks_english(text: str | None) -> bool:
    """Cheap language guess: more than 45% of visible characters are ASCII letters."""
    text = text or ""
    letters = len(_ASCII_LETTER.findall(text))
    non_space = len(_NON_SPACE.findall(text)) or 1
    return letters / non_space > 0.45


def cache_key(title: str, summary: str | None) -> str:
    return f"{title}|||{summary or ''}"


class DeepLClient:
    """Minimal client for the DeepL v2 translate endpoint."""

    def __init__(
        self, config: TranslationConfig, session: requests.Session | None = None
    ):
        self.config = config
        self.session = session or requests.Session()

    def translate(self, texts: list[str]) -> list[str]:
        """Translate ``texts`` in one request, preserving order and count.

        Raises:
            TranslationUnavailable: If no key is configured, the request fails
                or the response does not match the input
        """
        if not self.config.auth_key:
            raise TranslationUnavailable("DeepL auth key is not configured")
        if not texts:
            return []

        data = [("text", text) for text in texts]
        data.append(("target_lang", self.config.target_lang))

        try:
            response = self.session.post(
                f"{self.config.api_base}/v2/translate",
                data=data,
                headers={"Authorization": f"DeepL-Auth-Key {self.config.auth_key}"},
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise TranslationUnavailable(f"DeepL request failed: {e}") from e

        if not response.ok:
            raise TranslationUnavailable(
                f"DeepL HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            translations = response.json().get("translations") or []
            result = [entry.get("text") or "" for entry in translations]
        except (ValueError, AttributeError) as e:
            raise TranslationUnavailable(f"DeepL returned malformed JSON: {e}") from e

        if len(result) != len(texts):
            raise TranslationUnavailable(
                f"DeepL returned {len(result)} translations for {len(texts)} texts"
            )
        return result


@dataclass
class TranslationStats:
    """Counters describing one run of the translation stage."""

    candidates: int = 0
    cache_hits: int = 0
    translated: int = 0
    failed: bool = False


class TranslationStage:
    """Adds ``title_ja``/``summary_ja`` to items whose titles look English.

    At most ``config.limit`` candidates are considered per run. Cached
    translations are reused; the remaining candidates go to the provider in
    a single batched call.
    """

    def __init__(
        self,
        config: TranslationConfig,
        cache: TTLCache,
        client: DeepLClient | None = None,
        execution_id: str | None = None,
    ):
        self.config = config
        self.cache = cache
        self.client = client
        self.logger = create_execution_logger("translator", execution_id)

    def apply(self, items: list[Item], now: datetime | None = None) -> TranslationStats:
        """Translate eligible items in place. Never raises."""
        now = now or datetime.now(UTC)
        stats = TranslationStats()
        try:
            self._apply(items, now, stats)
        except Exception as e:
            stats.failed = True
            self.logger.warning(f"Translation failed: {e}", error=str(e))
        return stats

    def _apply(self, items: list[Item], now: datetime, stats: TranslationStats) -> None:
        candidates = [item for item in items if looks_english(item.title)]
        candidates = candidates[: self.config.limit]
        stats.candidates = len(candidates)

        pending: list[tuple[Item, str]] = []
        texts: list[str] = []
        for item in candidates:
            key = cache_key(item.title, item.summary)
            hit = self.cache.get(key, now)
            if hit is not None:
                item.title_ja, item.summary_ja = hit
                stats.cache_hits += 1
                continue
            pending.append((item, key))
            texts.append(item.title)
            texts.append((item.summary or "")[: self.config.summary_max_chars])

        if not pending or self.client is None:
            return

        self.logger.info(
            f"Translating {len(pending)} items ({stats.cache_hits} cached)",
            pending=len(pending),
        )
        translations = self.client.translate(texts)

        for index, (item, key) in enumerate(pending):
            title_ja = translations[index * 2] or None
            summary_ja = translations[index * 2 + 1] or None
            item.title_ja = title_ja
            item.summary_ja = summary_ja
            self.cache.put(key, (title_ja, summary_ja), now)
            stats.translated += 1
