import io
import logging
import re
import uuid

from PIL import Image
import requests

from config.settings import ARTWORK_MAX_SIZE_PX, ARTWORK_TIMEOUT_SECONDS, UNKNOWN_ALBUM, UNKNOWN_ARTIST
from storage.local import StorageError

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"[^a-z0-9\-_ ]", re.IGNORECASE)


def _normalize_artwork_blob(data, content_type, *, context):
    if not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        max_size_px = context.get("max_size_px")
        if max_size_px:
            image.thumbnail((max_size_px, max_size_px))
        output = io.BytesIO()
        fmt = "PNG" if "png" in str(content_type or "").lower() else "JPEG"
        if fmt == "JPEG" and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(output, format=fmt)
        return {
            "data": output.getvalue(),
            "mime": "image/jpeg" if fmt == "JPEG" else "image/png",
            "ext": "jpg" if fmt == "JPEG" else "png",
        }
    except Exception:
        logger.debug("Artwork processing failed for %s", context.get("label"), exc_info=True)
        return None


def fetch_artwork_from_url(artwork_url, *, session=None, max_size_px=ARTWORK_MAX_SIZE_PX, timeout=ARTWORK_TIMEOUT_SECONDS):
    url = str(artwork_url or "").strip()
    if not url:
        return None
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, timeout=timeout)
    except requests.RequestException:
        logger.debug("Artwork URL download failed for %s", url)
        return None
    if not resp.ok or not resp.content:
        return None
    return _normalize_artwork_blob(
        resp.content,
        resp.headers.get("Content-Type") or "image/jpeg",
        context={"label": url, "max_size_px": max_size_px},
    )


def artwork_identifier(*parts):
    return _IDENTIFIER_RE.sub("_", "_".join(str(part or "") for part in parts))


def store_artwork(storage, artwork, *, user_id, kind, identifier):
    """Store a normalised image blob; return its storage path or None."""
    if not artwork or not artwork.get("data"):
        return None
    path = f"{user_id}/images/{kind}_{identifier}_{uuid.uuid4()}.{artwork['ext']}"
    try:
        storage.put(path, artwork["data"], artwork["mime"])
    except StorageError:
        logger.warning("Failed to store %s image at %s", kind, path, exc_info=True)
        return None
    logger.info("Stored %s image at %s", kind, path)
    return path


class ArtworkResolver:
    """Looks up album covers and artist images for a reconciled song."""

    def __init__(self, spotify=None):
        self.spotify = spotify

    def album_cover_url(self, artist, album, *, metadata=None):
        if metadata is not None and metadata.cover_url:
            return metadata.cover_url
        if self.spotify is None or artist in (None, "", UNKNOWN_ARTIST) or album in (None, "", UNKNOWN_ALBUM):
            return None
        found = self.spotify.search_artist(artist)
        if not found or not found.get("id"):
            return None
        wanted = album.lower()
        for track in self.spotify.get_artist_top_tracks(found["id"]):
            name = (track.album_name or "").lower()
            if name and (wanted in name or name in wanted) and track.cover_url:
                return track.cover_url
        return None

    def artist_image_url(self, artist):
        if self.spotify is None or artist in (None, "", UNKNOWN_ARTIST):
            return None
        found = self.spotify.search_artist(artist)
        images = [img for img in (found or {}).get("images") or [] if isinstance(img, dict) and img.get("url")]
        return images[0]["url"] if images else None
