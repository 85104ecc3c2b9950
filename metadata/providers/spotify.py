import base64
import logging
import time
import urllib.parse
from dataclasses import dataclass, replace

import requests

from config.settings import PROVIDER_TIMEOUT_SECONDS, TOKEN_EXPIRY_SKEW_SECONDS
from metadata.providers.base import MetadataProvider, dedupe, first_text
from metadata.types import CandidateRecord

logger = logging.getLogger(__name__)

_SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
_SPOTIFY_SEARCH_URL = "https://api.spotify.com/v1/search"
_SPOTIFY_ARTIST_URL = "https://api.spotify.com/v1/artists/{artist_id}"
_SPOTIFY_ALBUM_URL = "https://api.spotify.com/v1/albums/{album_id}"
_SPOTIFY_TOP_TRACKS_URL = "https://api.spotify.com/v1/artists/{artist_id}/top-tracks"


@dataclass
class TokenCache:
    """Access token with its expiry, refreshed lazily by its owning provider."""

    token: str | None = None
    expires_at: float = 0.0

    def get(self, now=None):
        now = time.time() if now is None else now
        if self.token and now < self.expires_at:
            return self.token
        return None

    def store(self, token, expires_in, *, now=None, skew=TOKEN_EXPIRY_SKEW_SECONDS):
        now = time.time() if now is None else now
        self.token = token
        self.expires_at = now + max(0, int(expires_in or 0) - skew)

    def clear(self):
        self.token = None
        self.expires_at = 0.0


def _quote(value):
    return urllib.parse.quote(str(value), safe="")


def _duration_seconds(duration_ms):
    if not duration_ms:
        return None
    try:
        return int(round(int(duration_ms) / 1000))
    except (TypeError, ValueError):
        return None


def track_to_candidate(item):
    """Map a Spotify track object to a ``CandidateRecord``."""
    if not isinstance(item, dict) or not item.get("name"):
        return None
    artists = [entry for entry in item.get("artists") or [] if isinstance(entry, dict)]
    first_artist = artists[0] if artists else {}
    album = item.get("album") or {}
    images = [img for img in album.get("images") or [] if isinstance(img, dict) and img.get("url")]
    return CandidateRecord(
        provider="spotify",
        candidate_id=item.get("id"),
        title=item.get("name"),
        artist_name=first_text(first_artist.get("name")) or "",
        album_name=first_text(album.get("name")),
        popularity=item.get("popularity"),
        duration_seconds=_duration_seconds(item.get("duration_ms")),
        release_date=first_text(album.get("release_date")),
        genres=dedupe(first_artist.get("genres") or []),
        cover_url=images[0]["url"] if images else None,
        artist_id=first_artist.get("id"),
        album_id=album.get("id"),
        external_ids={
            "spotify_id": item.get("id"),
            "spotify_artist_id": first_artist.get("id"),
            "spotify_album_id": album.get("id"),
            "isrc": (item.get("external_ids") or {}).get("isrc"),
        },
    )


class SpotifyMetadataProvider(MetadataProvider):
    """Primary provider backed by the Spotify Web API (client-credentials flow)."""

    name = "spotify"
    max_queries = None

    def __init__(self, *, client_id, client_secret, session=None, search_limit=5, market="US", timeout=PROVIDER_TIMEOUT_SECONDS):
        self.client_id = (client_id or "").strip() or None
        self.client_secret = (client_secret or "").strip() or None
        self.search_limit = int(search_limit)
        self.market = market
        self.timeout = timeout
        self.token_cache = TokenCache()
        self._session = session or requests.Session()

    def _has_credentials(self):
        return bool(self.client_id and self.client_secret)

    def _get_token(self):
        if not self._has_credentials():
            return None
        cached = self.token_cache.get()
        if cached:
            return cached
        auth = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode("utf-8")).decode("ascii")
        headers = {"Authorization": f"Basic {auth}"}
        try:
            response = self._session.post(
                _SPOTIFY_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException:
            logger.exception("Spotify token request failed")
            return None
        if response.status_code != 200:
            logger.warning("Spotify token request failed status=%s", response.status_code)
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Spotify token response was not JSON")
            return None
        if not isinstance(payload, dict):
            logger.warning("Spotify token response was not an object")
            return None
        token = payload.get("access_token")
        if not token:
            logger.warning("Spotify token response missing access_token")
            return None
        self.token_cache.store(token, payload.get("expires_in"))
        return token

    def _get(self, url, params, token):
        return self._session.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )

    def _request(self, url, params=None):
        token = self._get_token()
        if not token:
            return None
        try:
            response = self._get(url, params, token)
            if response.status_code == 401:
                self.token_cache.clear()
                token = self._get_token()
                if not token:
                    return None
                response = self._get(url, params, token)
        except requests.RequestException:
            logger.exception("Spotify request failed url=%s", url)
            return None
        if response.status_code == 429:
            logger.warning("Spotify rate limited url=%s retry_after=%s", url, response.headers.get("Retry-After"))
            return None
        if response.status_code != 200:
            logger.debug("Spotify request failed url=%s status=%s", url, response.status_code)
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Spotify returned malformed JSON url=%s", url)
            return None
        return payload if isinstance(payload, dict) else None

    def search_candidates(self, query):
        if not self._has_credentials():
            logger.debug("Spotify credentials not configured; skipping search")
            return []
        if not str(query or "").strip():
            return []
        payload = self._request(
            _SPOTIFY_SEARCH_URL,
            params={"q": query, "type": "track", "limit": self.search_limit},
        )
        items = ((payload or {}).get("tracks") or {}).get("items") or []
        candidates = []
        for item in items:
            candidate = track_to_candidate(item)
            if candidate:
                candidates.append(candidate)
        return candidates

    def fetch_details(self, candidate):
        """Fill in genres from the matched artist and album."""
        artist_genres = []
        album_genres = []
        if candidate.artist_id:
            artist = self._request(_SPOTIFY_ARTIST_URL.format(artist_id=_quote(candidate.artist_id)))
            artist_genres = (artist or {}).get("genres") or []
        if candidate.album_id:
            album = self._request(_SPOTIFY_ALBUM_URL.format(album_id=_quote(candidate.album_id)))
            album_genres = (album or {}).get("genres") or []
        genres = dedupe([*artist_genres, *album_genres, *candidate.genres])
        return replace(candidate, genres=genres)

    def search_artist(self, name):
        """Return the best Spotify artist object for ``name`` (with images), or None."""
        if not self._has_credentials() or not str(name or "").strip():
            return None
        payload = self._request(
            _SPOTIFY_SEARCH_URL,
            params={"q": f'artist:"{name}"', "type": "artist", "limit": 1},
        )
        artists = (payload or {}).get("artists")
        items = (artists.get("items") or []) if isinstance(artists, dict) else []
        return items[0] if items and isinstance(items[0], dict) else None

    def get_artist_top_tracks(self, artist_id):
        if not self._has_credentials() or not artist_id:
            return []
        payload = self._request(
            _SPOTIFY_TOP_TRACKS_URL.format(artist_id=_quote(artist_id)),
            params={"market": self.market},
        )
        tracks = []
        for item in (payload or {}).get("tracks") or []:
            candidate = track_to_candidate(item)
            if candidate:
                tracks.append(candidate)
        return tracks
