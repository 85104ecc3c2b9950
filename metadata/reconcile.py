"""Cross-provider reconciliation of a parsed title guess.

Providers are tried strictly in priority order. Within one provider the
shared query list is consumed most-specific first while the best-scoring
candidate is tracked; as soon as that candidate clears the acceptance
threshold its details are fetched and no further provider is consulted.

An accepted match is then checked a second time: if the provider's title or
artist does not agree with the guess, the record is demoted to a hybrid that
keeps the guess's title/artist/album and only imports the supplementary
fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Sequence

from config.settings import MATCH_ACCEPT_THRESHOLD, UNKNOWN_ALBUM, UNKNOWN_ARTIST
from metadata.providers.base import MetadataProvider
from metadata.query_builder import build_queries
from metadata.similarity import artists_agree, best_candidate, is_acceptable, titles_agree
from metadata.title_parser import parse_title
from metadata.types import BasicGuess, CandidateRecord, EnrichedMetadata, ScoredCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    guess: BasicGuess
    metadata: EnrichedMetadata | None

    @property
    def title(self) -> str:
        return self.metadata.title if self.metadata else self.guess.title

    @property
    def artist(self) -> str:
        return self.metadata.artist if self.metadata else self.guess.artist

    @property
    def album(self) -> str:
        return self.metadata.album if self.metadata else self.guess.album


class MetadataReconciler:
    def __init__(
        self,
        providers: Sequence[MetadataProvider],
        *,
        threshold: float = MATCH_ACCEPT_THRESHOLD,
        query_builder: Callable[[BasicGuess], list[str]] = build_queries,
    ) -> None:
        self.providers = list(providers)
        self.threshold = float(threshold)
        self._build_queries = query_builder

    def _search(self, provider: MetadataProvider, query: str) -> list[CandidateRecord]:
        try:
            return list(provider.search_candidates(query) or [])
        except Exception:
            logger.exception("provider_search_failed provider=%s query=%r", provider.name, query)
            return []

    def _fetch_details(self, provider: MetadataProvider, candidate: CandidateRecord) -> CandidateRecord:
        try:
            detailed = provider.fetch_details(candidate)
        except Exception:
            logger.exception("provider_details_failed provider=%s id=%s", provider.name, candidate.candidate_id)
            detailed = None
        if detailed is None:
            logger.info("provider_details_unavailable provider=%s id=%s", provider.name, candidate.candidate_id)
            return candidate
        return detailed

    def best_for_provider(
        self,
        provider: MetadataProvider,
        queries: Sequence[str],
        guess: BasicGuess,
    ) -> ScoredCandidate | None:
        limit = getattr(provider, "max_queries", None)
        best: ScoredCandidate | None = None
        for query in queries[:limit] if limit else queries:
            candidates = self._search(provider, query)
            logger.info("provider_query provider=%s query=%r results=%d", provider.name, query, len(candidates))
            batch_best = best_candidate(candidates, guess)
            if batch_best is not None and (best is None or batch_best.score > best.score):
                best = batch_best
            if best is not None and is_acceptable(best.score, self.threshold):
                break
        return best

    def find_match(self, guess: BasicGuess) -> EnrichedMetadata | None:
        """Return the first provider match above the threshold, without validation."""
        queries = self._build_queries(guess)
        for provider in self.providers:
            best = self.best_for_provider(provider, queries, guess)
            if best is None:
                logger.info("provider_skip provider=%s reason=no_candidates", provider.name)
                continue
            if not is_acceptable(best.score, self.threshold):
                logger.info(
                    "provider_skip provider=%s reason=low_score best=%r score=%.2f",
                    provider.name,
                    best.candidate.title,
                    best.score,
                )
                continue
            logger.info(
                "provider_accept provider=%s title=%r artist=%r score=%.2f",
                provider.name,
                best.candidate.title,
                best.candidate.artist_name,
                best.score,
            )
            detailed = self._fetch_details(provider, best.candidate)
            return EnrichedMetadata.from_candidate(detailed)
        return None

    def validate(self, metadata: EnrichedMetadata, guess: BasicGuess) -> EnrichedMetadata:
        if titles_agree(metadata.title, guess.title) and artists_agree(metadata.artist, guess.artist):
            return metadata
        logger.info(
            "metadata_demoted_to_hybrid expected=%r/%r got=%r/%r",
            guess.title,
            guess.artist,
            metadata.title,
            metadata.artist,
        )
        return metadata.as_hybrid(guess)

    def enrich(self, guess: BasicGuess) -> EnrichedMetadata | None:
        metadata = self.find_match(guess)
        if metadata is None:
            logger.info("no_provider_match title=%r artist=%r", guess.title, guess.artist)
            return None
        return self.validate(metadata, guess)

    def reconcile(self, label: str, *, artist: str | None = None, album: str | None = None) -> ReconciliationResult:
        """Parse ``label`` and reconcile it against the providers.

        ``artist`` and ``album`` are optional known hints; they replace the
        parsed values unless they are empty or the unknown sentinels.
        """
        guess = parse_title(label)
        if artist and artist.strip() and artist != UNKNOWN_ARTIST:
            guess = replace(guess, artist=artist.strip())
        if album and album.strip() and album != UNKNOWN_ALBUM:
            guess = replace(guess, album=album.strip())
        logger.info("basic_guess title=%r artist=%r album=%r", guess.title, guess.artist, guess.album)
        return ReconciliationResult(guess=guess, metadata=self.enrich(guess))


__all__ = ["MetadataReconciler", "ReconciliationResult"]
