"""Keyword-based genre classification."""

from .models import GenreRule, Item

DEFAULT_GENRE = "Other"

# First match wins: the order of rules and of keywords within a rule matters.
GENRES: tuple[GenreRule, ...] = (
    GenreRule("Techno", ("techno", "テクノ")),
    GenreRule("House", ("house", "ハウス", "deep house", "ディープハウス")),
    GenreRule("Drum & Bass", ("drum & bass", "dnb", "drum and bass", "ドラムンベース")),
    GenreRule("Dubstep", ("dubstep", "ダブステップ")),
    GenreRule(
        "UK Garage",
        ("ukg", "garage", "uk garage", "2-step", "2step", "ガラージ", "ツーステップ"),
    ),
    GenreRule("Ambient", ("ambient", "アンビエント")),
    GenreRule("Experimental", ("experimental", "avant", "アヴァン", "実験", "noise", "ノイズ")),
    GenreRule("Hip-Hop", ("hip-hop", "hip hop", "rap", "ラップ", "ヒップホップ")),
    GenreRule("Metal", ("metal", "hardcore", "ハードコア", "メタル")),
    GenreRule("Rock", ("rock", "indie", "punk", "ロック", "パンク")),
    GenreRule("Pop", ("pop", "アイドル", "シングル", "mv", "music video")),
    GenreRule("Japan", ("日本", "東京", "渋谷", "j-pop", "邦楽")),
)


def pick_genre(
    title: str,
    source: str,
    fallback: str | None = None,
    rules: tuple[GenreRule, ...] = GENRES,
) -> str:
    """Return the first rule whose keyword occurs in the title or source.

    Matching is a case-insensitive substring test with no word boundaries.
    """
    text = f"{title} {source}".lower()
    for rule in rules:
        for keyword in rule.keywords:
            if keyword.lower() in text:
                return rule.name
    return fallback or DEFAULT_GENRE


def classify(item: Item, rules: tuple[GenreRule, ...] = GENRES) -> str:
    return pick_genre(item.title, item.source, item.fallback_genre, rules)
