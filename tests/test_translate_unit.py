"""Unit tests for the translation cache and DeepL gateway."""

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest
import requests

from music_news.cache import TTLCache
from music_news.config import TranslationConfig
from music_news.errors import TranslationUnavailable
from music_news.models import Item
from music_news.translate import (
    DeepLClient,
    TranslationStage,
    cache_key,
    looks_english,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def _item(n: int, title: str | None = None, summary: str | None = "Summary text") -> Item:
    url = f"https://example.com/{n}"
    return Item(
        id=f"Blog::{url}",
        title=title or f"English headline number {n}",
        url=url,
        source="Blog",
        published_at="2024-01-01T10:00:00.000Z",
        summary=summary,
    )


class FakeClient:
    """Test double returning predictable translations and counting calls."""

    def __init__(self, error: Exception | None = None):
        self.calls: list[list[str]] = []
        self.error = error

    def translate(self, texts: list[str]) -> list[str]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [f"JA:{text}" if text else "" for text in texts]


def _stage(client=None, cache: TTLCache | None = None, limit: int = 40) -> TranslationStage:
    config = TranslationConfig(auth_key="key", limit=limit)
    if cache is None:
        cache = TTLCache(config.cache_ttl)
    return TranslationStage(config, cache, client)


class TestLooksEnglish:
    """Unit tests for the language heuristic."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("New Techno EP", True),
            ("新しいシングル発売", False),
            ("新曲「MV」公開", False),
            ("BTS、新アルバム『Proof』を発表", False),
            ("", False),
            ("   ", False),
            ("12345", False),
        ],
    )
    def test_ratio(self, text, expected):
        assert looks_english(text) is expected

    def test_none_is_not_english(self):
        assert looks_english(None) is False


class TestTranslationStage:
    """Unit tests for TranslationStage.apply."""

    def test_translates_eligible_items_in_one_batch(self):
        client = FakeClient()
        items = [_item(1), _item(2, title="日本語のニュース"), _item(3, summary=None)]

        stats = _stage(client).apply(items, NOW)

        assert len(client.calls) == 1
        assert client.calls[0] == [
            "English headline number 1",
            "Summary text",
            "English headline number 3",
            "",
        ]
        assert items[0].title_ja == "JA:English headline number 1"
        assert items[0].summary_ja == "JA:Summary text"
        assert items[1].title_ja is None
        assert items[2].title_ja == "JA:English headline number 3"
        assert items[2].summary_ja is None
        assert stats.candidates == 2
        assert stats.translated == 2
        assert stats.cache_hits == 0

    def test_summary_truncated_to_400_chars_for_provider(self):
        client = FakeClient()
        items = [_item(1, summary="x" * 1000)]

        _stage(client).apply(items, NOW)

        assert client.calls[0][1] == "x" * 400

    def test_cache_prevents_second_provider_call(self):
        client = FakeClient()
        cache = TTLCache(timedelta(hours=6))

        first = [_item(1)]
        _stage(client, cache).apply(first, NOW)
        second = [_item(1)]
        stats = _stage(client, cache).apply(second, NOW + timedelta(hours=5))

        assert len(client.calls) == 1
        assert stats.cache_hits == 1
        assert second[0].title_ja == first[0].title_ja
        assert second[0].summary_ja == first[0].summary_ja

    def test_expired_cache_entry_triggers_fresh_call(self):
        client = FakeClient()
        cache = TTLCache(timedelta(hours=6))

        _stage(client, cache).apply([_item(1)], NOW)
        _stage(client, cache).apply([_item(1)], NOW + timedelta(hours=6))

        assert len(client.calls) == 2

    def test_cache_key_includes_summary(self):
        client = FakeClient()
        cache = TTLCache(timedelta(hours=6))

        _stage(client, cache).apply([_item(1, summary="one")], NOW)
        _stage(client, cache).apply([_item(1, summary="two")], NOW)

        assert len(client.calls) == 2
        assert cache.get(cache_key("English headline number 1", "one"), NOW) is not None

    def test_at_most_forty_candidates(self):
        client = FakeClient()
        items = [_item(n) for n in range(55)]

        stats = _stage(client).apply(items, NOW)

        assert stats.candidates == 40
        assert len(client.calls[0]) == 80
        assert all(item.title_ja for item in items[:40])
        assert all(item.title_ja is None for item in items[40:])

    def test_limit_counts_cache_hits(self):
        client = FakeClient()
        cache = TTLCache(timedelta(hours=6))
        _stage(client, cache).apply([_item(0)], NOW)

        items = [_item(n) for n in range(45)]
        stats = _stage(client, cache).apply(items, NOW)

        assert stats.cache_hits == 1
        assert stats.translated == 39
        assert sum(1 for item in items if item.title_ja) == 40

    def test_provider_failure_is_isolated(self):
        client = FakeClient(error=TranslationUnavailable("DeepL HTTP 456"))
        items = [_item(1), _item(2)]

        stats = _stage(client).apply(items, NOW)

        assert stats.failed is True
        assert all(item.title_ja is None and item.summary_ja is None for item in items)

    def test_cache_hits_survive_provider_failure(self):
        cache = TTLCache(timedelta(hours=6))
        _stage(FakeClient(), cache).apply([_item(1)], NOW)

        items = [_item(1), _item(2)]
        stats = _stage(FakeClient(error=RuntimeError("down")), cache).apply(items, NOW)

        assert stats.failed is True
        assert items[0].title_ja == "JA:English headline number 1"
        assert items[1].title_ja is None

    def test_no_client_is_a_noop(self):
        items = [_item(1)]

        stats = _stage(client=None).apply(items, NOW)

        assert items[0].title_ja is None
        assert stats.translated == 0
        assert stats.failed is False

    def test_empty_translation_becomes_none(self):
        client = Mock()
        client.translate.return_value = ["", "要約"]
        items = [_item(1)]

        _stage(client).apply(items, NOW)

        assert items[0].title_ja is None
        assert items[0].summary_ja == "要約"


class TestDeepLClient:
    """Unit tests for the DeepL HTTP client."""

    def _client(self, response=None, error=None, auth_key="secret-key"):
        session = Mock()
        if error is not None:
            session.post.side_effect = error
        else:
            session.post.return_value = response
        config = TranslationConfig(auth_key=auth_key, api_base="https://api-free.deepl.com")
        return DeepLClient(config, session=session), session

    def test_request_format(self):
        response = Mock(ok=True)
        response.json.return_value = {
            "translations": [{"text": "新しいテクノEP"}, {"text": "要約"}]
        }
        client, session = self._client(response)

        result = client.translate(["New Techno EP", "Summary"])

        assert result == ["新しいテクノEP", "要約"]
        session.post.assert_called_once_with(
            "https://api-free.deepl.com/v2/translate",
            data=[("text", "New Techno EP"), ("text", "Summary"), ("target_lang", "JA")],
            headers={"Authorization": "DeepL-Auth-Key secret-key"},
            timeout=15,
        )

    def test_missing_key(self):
        client, session = self._client(auth_key="")

        with pytest.raises(TranslationUnavailable):
            client.translate(["Hello"])
        session.post.assert_not_called()

    def test_http_error(self):
        response = Mock(ok=False, status_code=456, text="Quota exceeded")
        client, _ = self._client(response)

        with pytest.raises(TranslationUnavailable, match="456"):
            client.translate(["Hello"])

    def test_network_error(self):
        client, _ = self._client(error=requests.ConnectionError("refused"))

        with pytest.raises(TranslationUnavailable):
            client.translate(["Hello"])

    def test_count_mismatch(self):
        response = Mock(ok=True)
        response.json.return_value = {"translations": [{"text": "こんにちは"}]}
        client, _ = self._client(response)

        with pytest.raises(TranslationUnavailable, match="1 translations for 2"):
            client.translate(["Hello", "World"])

    def test_malformed_json(self):
        response = Mock(ok=True)
        response.json.side_effect = ValueError("Expecting value")
        client, _ = self._client(response)

        with pytest.raises(TranslationUnavailable):
            client.translate(["Hello"])
