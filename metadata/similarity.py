"""Similarity scoring between provider candidates and a basic song guess."""

from __future__ import annotations

import re
from typing import Iterable

from config.settings import (
    ARTIST_EXACT_WEIGHT,
    ARTIST_SUBSTRING_WEIGHT,
    MATCH_ACCEPT_THRESHOLD,
    POPULARITY_BONUS,
    POPULARITY_BONUS_MIN,
    TITLE_EXACT_WEIGHT,
    TITLE_SUBSTRING_WEIGHT,
    TITLE_TOKEN_WEIGHT,
)
from metadata.types import BasicGuess, CandidateRecord, ScoredCandidate

_COMPARISON_STRIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\s*\(official\s*(?:audio|video|music\s*video?)\)", re.IGNORECASE),
    re.compile(r"\s*\(lyrics?\)", re.IGNORECASE),
    re.compile(r"\s*\(audio\)", re.IGNORECASE),
    re.compile(r"\s*\(official\)", re.IGNORECASE),
    re.compile(r"\s*\(music\s*video\)", re.IGNORECASE),
    re.compile(r"\s*\(feat\.?\s*[^)]+\)", re.IGNORECASE),
    re.compile(r"\s*\(ft\.?\s*[^)]+\)", re.IGNORECASE),
    re.compile(r"\s*\(featuring\s*[^)]+\)", re.IGNORECASE),
    re.compile(r"\s*\[[^\]]+\]"),
)
_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def clamp01(value: float) -> float:
    if value < 0:
        return 0.0
    if value > 1:
        return 1.0
    return float(value)


def normalize_for_comparison(value: str | None) -> str:
    text = str(value or "").lower()
    for pattern in _COMPARISON_STRIP_PATTERNS:
        text = pattern.sub("", text)
    text = _PUNCT_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def _contains_either(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return a in b or b in a


def title_score(candidate_title: str | None, guess_title: str | None) -> float:
    candidate = normalize_for_comparison(candidate_title)
    guess = normalize_for_comparison(guess_title)
    if not candidate or not guess:
        return 0.0
    if candidate == guess:
        return TITLE_EXACT_WEIGHT
    if _contains_either(candidate, guess):
        return TITLE_SUBSTRING_WEIGHT
    guess_words = guess.split()
    candidate_words = candidate.split()
    candidate_vocab = set(candidate_words)
    common = [word for word in guess_words if word in candidate_vocab]
    ratio = len(common) / max(len(guess_words), len(candidate_words))
    return TITLE_TOKEN_WEIGHT * clamp01(ratio)


def artist_score(candidate_artist: str | None, guess: BasicGuess) -> float:
    if not guess.has_artist:
        return 0.0
    candidate = str(candidate_artist or "").strip().lower()
    expected = guess.artist.strip().lower()
    if not candidate or not expected:
        return 0.0
    if candidate == expected:
        return ARTIST_EXACT_WEIGHT
    if _contains_either(candidate, expected):
        return ARTIST_SUBSTRING_WEIGHT
    return 0.0


def popularity_score(popularity: int | None) -> float:
    if popularity is None:
        return 0.0
    try:
        return POPULARITY_BONUS if int(popularity) > POPULARITY_BONUS_MIN else 0.0
    except (TypeError, ValueError):
        return 0.0


def score_candidate(candidate: CandidateRecord, guess: BasicGuess) -> float:
    """Score a candidate against the guess in ``[0, 1]``.

    Title agreement contributes up to 0.6, artist agreement up to 0.3 (only
    when the guess has a real artist) and popularity above 50 adds 0.1.
    """
    total = (
        clamp01(title_score(candidate.title, guess.title))
        + clamp01(artist_score(candidate.artist_name, guess))
        + clamp01(popularity_score(candidate.popularity))
    )
    # Rounded so 0.4 + 0.3 compares equal to the 0.7 threshold.
    return round(min(total, 1.0), 6)


def is_acceptable(score: float, threshold: float = MATCH_ACCEPT_THRESHOLD) -> bool:
    return score > threshold


def best_candidate(candidates: Iterable[CandidateRecord], guess: BasicGuess) -> ScoredCandidate | None:
    best: ScoredCandidate | None = None
    for candidate in candidates:
        score = score_candidate(candidate, guess)
        if best is None or score > best.score:
            best = ScoredCandidate(candidate=candidate, score=score)
    return best


def titles_agree(a: str | None, b: str | None) -> bool:
    return _contains_either(normalize_for_comparison(a), normalize_for_comparison(b))


def artists_agree(a: str | None, b: str | None) -> bool:
    return _contains_either(normalize_for_comparison(a), normalize_for_comparison(b))


__all__ = [
    "artist_score",
    "artists_agree",
    "best_candidate",
    "clamp01",
    "is_acceptable",
    "normalize_for_comparison",
    "popularity_score",
    "score_candidate",
    "title_score",
    "titles_agree",
]
