"""Application settings constants."""

from __future__ import annotations

# Sentinels used when a label does not reveal the artist or album.
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

# Candidates must score strictly above this to be accepted.
MATCH_ACCEPT_THRESHOLD = 0.7

TITLE_EXACT_WEIGHT = 0.6
TITLE_SUBSTRING_WEIGHT = 0.4
TITLE_TOKEN_WEIGHT = 0.3
ARTIST_EXACT_WEIGHT = 0.3
ARTIST_SUBSTRING_WEIGHT = 0.2
POPULARITY_BONUS = 0.1
POPULARITY_BONUS_MIN = 50

# Cached provider tokens are treated as expired this many seconds early.
TOKEN_EXPIRY_SKEW_SECONDS = 30

PROVIDER_TIMEOUT_SECONDS = 15
ARTWORK_TIMEOUT_SECONDS = 10
ARTWORK_MAX_SIZE_PX = 1500

# Signed storage URLs.
AUDIO_URL_TTL_SECONDS = 5 * 60 * 60
IMAGE_URL_TTL_SECONDS = 24 * 60 * 60

DEFAULT_USER_ID = "local"
