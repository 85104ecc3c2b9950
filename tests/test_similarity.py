from __future__ import annotations

import pytest

from metadata.similarity import (
    artists_agree,
    best_candidate,
    is_acceptable,
    normalize_for_comparison,
    score_candidate,
    title_score,
    titles_agree,
)
from metadata.types import BasicGuess, CandidateRecord


def _candidate(title, artist, popularity=None, provider="spotify") -> CandidateRecord:
    return CandidateRecord(provider=provider, candidate_id=f"{artist}-{title}", title=title, artist_name=artist, popularity=popularity)


def test_normalize_strips_credits_brackets_and_punctuation() -> None:
    assert normalize_for_comparison("Big Smoke (feat. Someone) [Live]") == "big smoke"
    assert normalize_for_comparison("Don't Stop Me Now!") == "don t stop me now"
    assert normalize_for_comparison("Hello (Official Music Video)") == "hello"


@pytest.mark.parametrize("popularity, expected", [(None, 0.9), (40, 0.9), (50, 0.9), (51, 1.0), (99, 1.0)])
def test_identical_title_and_artist_is_always_accepted(popularity, expected) -> None:
    guess = BasicGuess(title="Bohemian Rhapsody", artist="Queen")

    score = score_candidate(_candidate("Bohemian Rhapsody", "Queen", popularity), guess)

    assert score == pytest.approx(expected)
    assert is_acceptable(score)


def test_unrelated_candidate_is_rejected() -> None:
    guess = BasicGuess(title="Big Smoke", artist="Tash Sultana")

    score = score_candidate(_candidate("Dreams", "Packaday", popularity=90), guess)

    assert 0 <= score <= 0.1
    assert not is_acceptable(score)


def test_threshold_is_strict() -> None:
    guess = BasicGuess(title="Bohemian Rhapsody", artist="Queen")

    score = score_candidate(_candidate("Bohemian Rhapsody - Remastered 2011", "Queen"), guess)

    assert score == 0.7
    assert not is_acceptable(score)


def test_token_overlap_ratio_uses_longer_side() -> None:
    assert title_score("Jungle Is Massive", "Massive Jungle Tonight Party") == pytest.approx(0.15)


def test_empty_titles_score_zero() -> None:
    assert title_score("", "Something") == 0.0
    assert title_score("(Official Video)", "(Lyrics)") == 0.0


def test_unknown_artist_skips_artist_component() -> None:
    guess = BasicGuess(title="Imagine")

    score = score_candidate(_candidate("Imagine", "Unknown Artist"), guess)

    assert score == pytest.approx(0.6)


def test_artist_substring_scores_partial() -> None:
    guess = BasicGuess(title="Midnight", artist="Shadow")

    score = score_candidate(_candidate("Midnight", "DJ Shadow"), guess)

    assert score == pytest.approx(0.8)


def test_best_candidate_keeps_first_on_ties() -> None:
    guess = BasicGuess(title="Imagine", artist="John Lennon")
    first = _candidate("Imagine", "John Lennon")
    second = _candidate("Imagine", "John Lennon", provider="lastfm")

    best = best_candidate([first, second], guess)

    assert best is not None
    assert best.candidate is first


def test_agreement_checks_are_normalized_substrings() -> None:
    assert titles_agree("Big Smoke (feat. X)", "big smoke")
    assert artists_agree("Tash Sultana", "tash")
    assert not titles_agree("Dreams", "Big Smoke")
    assert not artists_agree("", "Tash Sultana")
