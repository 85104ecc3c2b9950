"""Structured metadata types for song import and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from config.settings import UNKNOWN_ALBUM, UNKNOWN_ARTIST


@dataclass(frozen=True)
class BasicGuess:
    """Title/artist/album inferred from a raw video label."""

    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM

    @property
    def has_artist(self) -> bool:
        return bool(self.artist) and self.artist != UNKNOWN_ARTIST

    @property
    def has_album(self) -> bool:
        return bool(self.album) and self.album != UNKNOWN_ALBUM


@dataclass(frozen=True)
class CandidateRecord:
    """One provider search hit, normalized to a provider-neutral shape."""

    provider: str
    candidate_id: str | None
    title: str
    artist_name: str
    album_name: str | None = None
    popularity: int | None = None
    duration_seconds: int | None = None
    release_date: str | None = None
    genres: tuple[str, ...] = ()
    cover_url: str | None = None
    artist_id: str | None = None
    album_id: str | None = None
    external_ids: Mapping[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: CandidateRecord
    score: float


@dataclass(frozen=True)
class EnrichedMetadata:
    """Accepted metadata ready for persistence.

    ``hybrid`` is set when the provider match could not be confirmed: the
    title/artist/album then come from the parsed guess and only the
    supplementary fields come from the provider.
    """

    title: str
    artist: str
    album: str
    provider: str
    release_date: str | None = None
    duration_seconds: int | None = None
    genres: tuple[str, ...] = ()
    popularity: int | None = None
    cover_url: str | None = None
    external_id: str | None = None
    artist_id: str | None = None
    album_id: str | None = None
    external_ids: Mapping[str, str | None] = field(default_factory=dict)
    hybrid: bool = False

    @classmethod
    def from_candidate(cls, candidate: CandidateRecord) -> "EnrichedMetadata":
        return cls(
            title=candidate.title,
            artist=candidate.artist_name or UNKNOWN_ARTIST,
            album=candidate.album_name or UNKNOWN_ALBUM,
            provider=candidate.provider,
            release_date=candidate.release_date,
            duration_seconds=candidate.duration_seconds,
            genres=tuple(candidate.genres),
            popularity=candidate.popularity,
            cover_url=candidate.cover_url,
            external_id=candidate.candidate_id,
            artist_id=candidate.artist_id,
            album_id=candidate.album_id,
            external_ids=dict(candidate.external_ids),
        )

    def as_hybrid(self, guess: BasicGuess) -> "EnrichedMetadata":
        """Keep the guess's identity fields and only the supplementary enrichment."""
        return replace(
            self,
            title=guess.title,
            artist=guess.artist,
            album=guess.album,
            duration_seconds=None,
            hybrid=True,
        )

    def to_record(self) -> dict[str, Any]:
        """Return the field table handed to the metadata store."""
        return {
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "release_date": self.release_date,
            "duration": self.duration_seconds,
            "genres": list(self.genres),
            "popularity": self.popularity,
            "spotify_id": self.external_id if self.provider == "spotify" else None,
            "album_cover_url": self.cover_url,
            "artist_id": self.artist_id,
            "album_id": self.album_id,
        }


# A reconciled record is either a provider match or its hybrid demotion.
ReconciledMetadata = EnrichedMetadata

__all__ = [
    "BasicGuess",
    "CandidateRecord",
    "EnrichedMetadata",
    "ReconciledMetadata",
    "ScoredCandidate",
]
