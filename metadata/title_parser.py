"""Rule-based parsing of free-text video titles into a basic song guess.

Rules are tried in a fixed order and the first one that matches wins:

1. ``Title (Qualifier) - Artist`` when the qualifier is a year or a
   remaster/edition marker.
2. ``Artist - Title`` or ``Artist - Album - Title``.
3. ``Title (Qualifier)`` when the qualifier names a video type
   (official, video, audio, lyrics, remaster). The qualifier is dropped.
4. ``Artist : Title``.
5. The whole label is the title.

Rule 1 has to run before rule 2, otherwise ``Hurt (2009 Remaster) - Nine
Inch Nails`` would be split with ``Hurt (2009 Remaster)`` as the artist.
"""

from __future__ import annotations

import logging
import re

from config.settings import UNKNOWN_ALBUM, UNKNOWN_ARTIST
from metadata.types import BasicGuess

logger = logging.getLogger(__name__)

_TITLE_QUALIFIER_ARTIST_RE = re.compile(r"^(.+?)\s*\(([^)]+)\)\s*-\s*(.+)$")
_DASH_RE = re.compile(r"^(.+?)\s*-\s*(.+?)(?:\s*-\s*(.+))?$")
_TITLE_QUALIFIER_RE = re.compile(r"^(.+?)\s*\(([^)]+)\)$")
_COLON_RE = re.compile(r"^(.+?)\s*:\s*(.+)$")
_YEAR_RE = re.compile(r"^\d{4}$")

_EDITION_MARKERS = ("remaster", "edition")
_VIDEO_MARKERS = ("official", "video", "audio", "lyrics", "remaster")


def _is_edition_qualifier(qualifier: str) -> bool:
    lowered = qualifier.lower()
    return bool(_YEAR_RE.match(qualifier)) or any(marker in lowered for marker in _EDITION_MARKERS)


def _is_video_qualifier(qualifier: str) -> bool:
    lowered = qualifier.lower()
    return any(marker in lowered for marker in _VIDEO_MARKERS)


def parse_title(label: str | None) -> BasicGuess:
    """Parse a raw label into a ``BasicGuess``. Never raises."""
    text = str(label or "").strip()

    match = _TITLE_QUALIFIER_ARTIST_RE.match(text)
    if match and _is_edition_qualifier(match.group(2).strip()):
        guess = BasicGuess(title=match.group(1).strip(), artist=match.group(3).strip())
        logger.debug("title_parse rule=title_qualifier_artist label=%r guess=%s", text, guess)
        return guess

    match = _DASH_RE.match(text)
    if match:
        if match.group(3):
            guess = BasicGuess(
                title=match.group(3).strip(),
                artist=match.group(1).strip(),
                album=match.group(2).strip(),
            )
        else:
            guess = BasicGuess(title=match.group(2).strip(), artist=match.group(1).strip())
        logger.debug("title_parse rule=dash label=%r guess=%s", text, guess)
        return guess

    match = _TITLE_QUALIFIER_RE.match(text)
    if match and _is_video_qualifier(match.group(2).strip()):
        guess = BasicGuess(title=match.group(1).strip())
        logger.debug("title_parse rule=title_qualifier label=%r guess=%s", text, guess)
        return guess

    match = _COLON_RE.match(text)
    if match:
        guess = BasicGuess(title=match.group(2).strip(), artist=match.group(1).strip())
        logger.debug("title_parse rule=colon label=%r guess=%s", text, guess)
        return guess

    logger.debug("title_parse rule=fallback label=%r", text)
    return BasicGuess(title=text, artist=UNKNOWN_ARTIST, album=UNKNOWN_ALBUM)


__all__ = ["parse_title"]
