import logging
import threading
from dataclasses import replace

import musicbrainzngs

from metadata.providers.base import MetadataProvider, dedupe, first_text
from metadata.query_builder import parse_field_query
from metadata.types import CandidateRecord

logger = logging.getLogger(__name__)

_COVER_ART_URL = "https://coverartarchive.org/release/{release_id}/front"
_RECORDING_INCLUDES = ["artists", "releases", "tags"]

_INIT_LOCK = threading.Lock()
_INITIALIZED = False


def _ensure_initialized(app_name, app_version, contact):
    global _INITIALIZED
    if _INITIALIZED:
        return
    with _INIT_LOCK:
        if _INITIALIZED:
            return
        logging.getLogger("musicbrainzngs").setLevel(logging.WARNING)
        musicbrainzngs.set_useragent(app_name, app_version, contact)
        _INITIALIZED = True


def cover_art_url(release_id):
    rid = str(release_id or "").strip()
    if not rid:
        return None
    return _COVER_ART_URL.format(release_id=rid)


def _parse_duration(value):
    try:
        if value is None:
            return None
        return int(round(int(value) / 1000))
    except (TypeError, ValueError):
        return None


def _first_artist(rec):
    for credit in rec.get("artist-credit") or []:
        if isinstance(credit, dict):
            artist = credit.get("artist") or {}
            return first_text(artist.get("name"), credit.get("name")), artist.get("id")
    return first_text(rec.get("artist-credit-phrase")), None


def _first_release(rec):
    for release in rec.get("release-list") or []:
        if isinstance(release, dict):
            return release
    return {}


def _tag_names(rec):
    tags = [tag for tag in rec.get("tag-list") or [] if isinstance(tag, dict) and tag.get("name")]
    tags.sort(key=lambda tag: int(tag.get("count") or 0), reverse=True)
    return dedupe(tag["name"] for tag in tags)


def recording_to_candidate(rec):
    """Map a musicbrainzngs recording dict to a ``CandidateRecord``."""
    if not isinstance(rec, dict) or not rec.get("title"):
        return None
    artist_name, artist_id = _first_artist(rec)
    release = _first_release(rec)
    release_id = release.get("id")
    return CandidateRecord(
        provider="musicbrainz",
        candidate_id=rec.get("id"),
        title=rec["title"],
        artist_name=artist_name or "",
        album_name=first_text(release.get("title")),
        duration_seconds=_parse_duration(rec.get("length")),
        release_date=first_text(release.get("date")),
        genres=_tag_names(rec),
        cover_url=cover_art_url(release_id),
        artist_id=artist_id,
        album_id=release_id,
        external_ids={
            "musicbrainz_recording_id": rec.get("id"),
            "musicbrainz_artist_id": artist_id,
            "musicbrainz_release_id": release_id,
        },
    )


class MusicBrainzMetadataProvider(MetadataProvider):
    """Tertiary provider: free-text recording search on MusicBrainz."""

    name = "musicbrainz"

    def __init__(self, *, app_name="songimport", app_version="1.0", contact=None, search_limit=5, max_queries=3):
        self.app_name = app_name
        self.app_version = app_version
        self.contact = contact
        self.search_limit = int(search_limit)
        self.max_queries = max_queries

    def search_candidates(self, query):
        fields, free_text = parse_field_query(query)
        params = {}
        if fields.get("track"):
            params["recording"] = fields["track"]
        if fields.get("artist"):
            params["artist"] = fields["artist"]
        if free_text:
            params["query"] = free_text
        if not params:
            return []
        _ensure_initialized(self.app_name, self.app_version, self.contact)
        try:
            result = musicbrainzngs.search_recordings(limit=self.search_limit, **params)
        except musicbrainzngs.MusicBrainzError:
            logger.warning("MusicBrainz search failed query=%r", query, exc_info=True)
            return []
        candidates = []
        for rec in (result or {}).get("recording-list") or []:
            candidate = recording_to_candidate(rec)
            if candidate:
                candidates.append(candidate)
        return candidates

    def fetch_details(self, candidate):
        if not candidate.candidate_id:
            return None
        _ensure_initialized(self.app_name, self.app_version, self.contact)
        try:
            payload = musicbrainzngs.get_recording_by_id(candidate.candidate_id, includes=_RECORDING_INCLUDES)
        except musicbrainzngs.MusicBrainzError:
            logger.warning("MusicBrainz recording lookup failed id=%s", candidate.candidate_id, exc_info=True)
            return None
        detailed = recording_to_candidate((payload or {}).get("recording"))
        if detailed is None:
            return None
        return replace(
            detailed,
            album_name=detailed.album_name or candidate.album_name,
            release_date=detailed.release_date or candidate.release_date,
            duration_seconds=detailed.duration_seconds or candidate.duration_seconds,
            cover_url=detailed.cover_url or candidate.cover_url,
        )
