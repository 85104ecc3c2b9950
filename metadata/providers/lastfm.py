import logging
from dataclasses import replace

import requests

from config.settings import PROVIDER_TIMEOUT_SECONDS
from metadata.providers.base import MetadataProvider, dedupe, first_text, request_json
from metadata.query_builder import parse_field_query
from metadata.types import CandidateRecord

logger = logging.getLogger(__name__)

_LASTFM_API_URL = "https://ws.audioscrobbler.com/2.0/"
_IMAGE_SIZE_ORDER = ("mega", "extralarge", "large", "medium", "small")


def _pick_image(images):
    """Return the largest non-empty image URL from a Last.fm image list."""
    by_size = {}
    for image in images or []:
        if not isinstance(image, dict):
            continue
        url = first_text(image.get("#text"))
        if url:
            by_size[image.get("size") or ""] = url
    for size in _IMAGE_SIZE_ORDER:
        if size in by_size:
            return by_size[size]
    return next(iter(by_size.values()), None)


def _parse_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_list(value):
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return [value]
    return []


class LastFmMetadataProvider(MetadataProvider):
    """Secondary provider: keyed track search against the Last.fm API."""

    name = "lastfm"

    def __init__(self, *, api_key, session=None, search_limit=5, max_queries=3, timeout=PROVIDER_TIMEOUT_SECONDS):
        self.api_key = (api_key or "").strip() or None
        self.search_limit = int(search_limit)
        self.max_queries = max_queries
        self.timeout = timeout
        self._session = session or requests.Session()

    def _call(self, method, **params):
        query = {
            "method": method,
            "api_key": self.api_key,
            "format": "json",
            **{key: value for key, value in params.items() if value},
        }
        payload = request_json(self._session, _LASTFM_API_URL, params=query, timeout=self.timeout, label="Last.fm")
        if payload and "error" in payload:
            logger.warning("Last.fm %s failed error=%s message=%s", method, payload.get("error"), payload.get("message"))
            return None
        return payload

    def search_candidates(self, query):
        if not self.api_key:
            logger.debug("Last.fm API key not configured; skipping search")
            return []
        fields, free_text = parse_field_query(query)
        track = fields.get("track") or free_text
        if not track:
            return []
        payload = self._call("track.search", track=track, artist=fields.get("artist"), limit=self.search_limit)
        matches = (((payload or {}).get("results") or {}).get("trackmatches") or {}).get("track")
        candidates = []
        for item in _as_list(matches):
            if not isinstance(item, dict) or not item.get("name"):
                continue
            mbid = first_text(item.get("mbid"))
            candidates.append(
                CandidateRecord(
                    provider=self.name,
                    candidate_id=mbid,
                    title=item["name"],
                    artist_name=first_text(item.get("artist")) or "",
                    cover_url=_pick_image(item.get("image")),
                    external_ids={"lastfm_url": item.get("url"), "musicbrainz_recording_id": mbid},
                )
            )
        return candidates

    def fetch_details(self, candidate):
        if not self.api_key:
            return None
        payload = self._call("track.getInfo", track=candidate.title, artist=candidate.artist_name, autocorrect=1)
        track = (payload or {}).get("track")
        if not isinstance(track, dict):
            return None
        artist = track.get("artist") or {}
        album = track.get("album") or {}
        tags = ((track.get("toptags") or {}).get("tag")) or []
        duration_ms = _parse_int(track.get("duration"))
        artist_mbid = first_text(artist.get("mbid")) if isinstance(artist, dict) else None
        album_mbid = first_text(album.get("mbid"))
        return replace(
            candidate,
            candidate_id=first_text(track.get("mbid")) or candidate.candidate_id,
            title=first_text(track.get("name")) or candidate.title,
            artist_name=(first_text(artist.get("name")) if isinstance(artist, dict) else first_text(artist)) or candidate.artist_name,
            album_name=first_text(album.get("title")) or candidate.album_name,
            duration_seconds=int(round(duration_ms / 1000)) if duration_ms else None,
            release_date=first_text((track.get("wiki") or {}).get("published")),
            genres=dedupe(tag.get("name") for tag in _as_list(tags) if isinstance(tag, dict)),
            cover_url=_pick_image(album.get("image")) or candidate.cover_url,
            artist_id=artist_mbid,
            album_id=album_mbid,
            external_ids={
                **dict(candidate.external_ids),
                "lastfm_url": first_text(track.get("url")) or candidate.external_ids.get("lastfm_url"),
                "musicbrainz_artist_id": artist_mbid,
                "musicbrainz_release_id": album_mbid,
            },
        )
