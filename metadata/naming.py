"""Storage file naming for imported songs."""

from __future__ import annotations

import re
import uuid
from typing import Any

from config.settings import UNKNOWN_ALBUM, UNKNOWN_ARTIST

_UNSAFE_CHARS_RE = re.compile(r"[^a-z0-9\-_ ]", re.IGNORECASE)


def _get_field(metadata: Any, field: str, default: Any = None) -> Any:
    if isinstance(metadata, dict):
        return metadata.get(field, default)
    return getattr(metadata, field, default)


def sanitize_component(text: Any) -> str:
    """Replace every character outside ``[A-Za-z0-9-_ ]`` with an underscore."""
    return _UNSAFE_CHARS_RE.sub("_", str(text or ""))


def build_audio_filename(metadata: Any, *, file_id: str | None = None, ext: str = "mp3") -> str:
    """Build ``<artist>_<album>_<title>_<id>.<ext>``."""
    artist = sanitize_component(_get_field(metadata, "artist") or UNKNOWN_ARTIST)
    album = sanitize_component(_get_field(metadata, "album") or UNKNOWN_ALBUM)
    title = sanitize_component(_get_field(metadata, "title") or "Unknown Title")
    return f"{artist}_{album}_{title}_{file_id or uuid.uuid4()}.{ext.lstrip('.')}"


def user_object_path(user_id: str, file_name: str) -> str:
    return f"{user_id}/{file_name}"
