"""Audio tagging helpers for imported songs."""

from __future__ import annotations

import logging
import os
from typing import Any

from mutagen.id3 import APIC, ID3, TALB, TCON, TDRC, TIT2, TPE1, TXXX

_LOG = logging.getLogger(__name__)


def _add_text_frame(audio: Any, frame_cls: Any, value: str | int | None) -> None:
    if value is None:
        return
    text = str(value).strip()
    if not text:
        return
    audio.add(frame_cls(encoding=3, text=[text]))


def tag_file(path: str, result: Any, *, artwork: dict | None = None) -> None:
    """Write ID3v2.4 tags for a reconciliation result to an MP3 file."""
    ext = os.path.splitext(path)[1].lower()
    if ext != ".mp3":
        raise ValueError(f"Unsupported file format for tagging: {ext or '(none)'}")

    metadata = result.metadata
    audio = ID3()
    _add_text_frame(audio, TIT2, result.title)
    _add_text_frame(audio, TPE1, result.artist)
    _add_text_frame(audio, TALB, result.album)
    if metadata is not None:
        _add_text_frame(audio, TDRC, metadata.release_date)
        if metadata.genres:
            audio.add(TCON(encoding=3, text=list(metadata.genres)))
        if metadata.external_id:
            audio.add(TXXX(encoding=3, desc=f"{metadata.provider}_id", text=[metadata.external_id]))

    if artwork and artwork.get("data"):
        audio.add(APIC(encoding=3, mime=artwork.get("mime") or "image/jpeg", type=3, desc="cover", data=artwork["data"]))

    audio.save(path, v2_version=4)
