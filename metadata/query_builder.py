"""Deterministic search-query builders for provider track lookups."""

from __future__ import annotations

import re

from metadata.types import BasicGuess

_NOISE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\s*\(official\s*(?:audio|video|music\s*video?)\)", re.IGNORECASE),
    re.compile(r"\s*\(lyrics?\)", re.IGNORECASE),
    re.compile(r"\s*\(audio\)", re.IGNORECASE),
    re.compile(r"\s*\(official\)", re.IGNORECASE),
    re.compile(r"\s*\(music\s*video\)", re.IGNORECASE),
)
_FIELD_RE = re.compile(r'(\w+):"([^"]*)"')
_WS_RE = re.compile(r"\s+")

_MIN_ARTIST_TOKEN_LENGTH = 3


def clean_search_title(title: str | None) -> str:
    """Strip video-type parentheticals such as ``(Official Video)`` or ``(Lyrics)``."""
    text = str(title or "")
    for pattern in _NOISE_PATTERNS:
        text = pattern.sub("", text)
    return _WS_RE.sub(" ", text).strip()


def field_query(*, track: str, artist: str | None = None) -> str:
    if artist:
        return f'artist:"{artist}" track:"{track}"'
    return f'track:"{track}"'


def parse_field_query(query: str) -> tuple[dict[str, str], str]:
    """Split ``artist:"X" track:"Y"`` style queries into fields and leftover free text.

    Example: ``parse_field_query('artist:"Queen" track:"Bohemian Rhapsody"')``
    -> ``({"artist": "Queen", "track": "Bohemian Rhapsody"}, "")``
    """
    text = str(query or "")
    fields = {name.lower(): value.strip() for name, value in _FIELD_RE.findall(text)}
    free_text = _WS_RE.sub(" ", _FIELD_RE.sub(" ", text)).strip()
    return fields, free_text


def build_queries(guess: BasicGuess) -> list[str]:
    """Build search queries for a guess, most specific first.

    With a known artist the list starts with artist+title variants, then
    variants using only the first and only the last word of the artist name.
    It always ends with title-only variants, plus a two-word title prefix
    when the title is longer than two words.
    """
    clean_title = clean_search_title(guess.title)
    queries: list[str] = []

    if guess.has_artist:
        artist = guess.artist.strip()
        queries.append(field_query(track=clean_title, artist=artist))
        queries.append(f"{artist} {clean_title}")
        queries.append(f"{clean_title} {artist}")

        artist_words = artist.split()
        used_tokens = {artist.lower()}
        for token in (artist_words[0], artist_words[-1]) if artist_words else ():
            if len(token) < _MIN_ARTIST_TOKEN_LENGTH or token.lower() in used_tokens:
                continue
            used_tokens.add(token.lower())
            queries.append(field_query(track=clean_title, artist=token))
            queries.append(f"{token} {clean_title}")

    queries.append(field_query(track=clean_title))
    queries.append(clean_title)

    title_words = clean_title.split()
    if len(title_words) > 2:
        short_title = " ".join(title_words[:2])
        queries.append(field_query(track=short_title))
        queries.append(short_title)

    deduped: list[str] = []
    for query in queries:
        query = query.strip()
        if query and query not in deduped:
            deduped.append(query)
    return deduped


__all__ = ["build_queries", "clean_search_title", "field_query", "parse_field_query"]
