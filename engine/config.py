"""File + environment configuration and service wiring."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from config.settings import DEFAULT_USER_ID, MATCH_ACCEPT_THRESHOLD
from metadata.providers.lastfm import LastFmMetadataProvider
from metadata.providers.musicbrainz import MusicBrainzMetadataProvider
from metadata.providers.spotify import SpotifyMetadataProvider
from metadata.reconcile import MetadataReconciler

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Settings field -> environment variable; environment wins over the file.
_ENV_OVERRIDES = {
    "spotify_client_id": "SPOTIFY_CLIENT_ID",
    "spotify_client_secret": "SPOTIFY_CLIENT_SECRET",
    "lastfm_api_key": "LASTFM_API_KEY",
    "musicbrainz_user_agent": "MUSICBRAINZ_USER_AGENT",
    "data_dir": "SONGIMPORT_DATA_DIR",
    "db_path": "SONGIMPORT_DB_PATH",
    "storage_dir": "SONGIMPORT_STORAGE_DIR",
    "log_dir": "SONGIMPORT_LOG_DIR",
    "signing_secret": "SONGIMPORT_SIGNING_SECRET",
    "default_user_id": "SONGIMPORT_DEFAULT_USER",
}
_STRING_KEYS = tuple(_ENV_OVERRIDES) + ("yt_dlp_cookies",)


@dataclass(frozen=True)
class Settings:
    data_dir: str
    db_path: str
    storage_dir: str
    log_dir: str
    signing_secret: str
    default_user_id: str = DEFAULT_USER_ID
    spotify_client_id: str | None = None
    spotify_client_secret: str | None = None
    lastfm_api_key: str | None = None
    musicbrainz_user_agent: str | None = None
    yt_dlp_cookies: str | None = None
    match_threshold: float = MATCH_ACCEPT_THRESHOLD
    signing_secret_generated: bool = False

    @property
    def temp_dir(self):
        return os.path.join(self.data_dir, "tmp")

    def credential_status(self):
        return {
            "spotify": bool(self.spotify_client_id and self.spotify_client_secret),
            "lastfm": bool(self.lastfm_api_key),
            "musicbrainz": True,
        }


def resolve_config_path(path=None):
    path = path or os.environ.get("SONGIMPORT_CONFIG")
    if not path:
        return None
    return os.path.abspath(path)


def load_config(path):
    with open(path, "r") as f:
        return json.load(f)


def validate_config(config):
    errors = []
    if not isinstance(config, dict):
        return ["config must be a JSON object"]

    for key in _STRING_KEYS:
        value = config.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{key} must be a string")

    threshold = config.get("match_threshold")
    if threshold is not None:
        try:
            value = float(threshold)
        except (TypeError, ValueError):
            errors.append("match_threshold must be a number")
        else:
            if not (0 <= value <= 1):
                errors.append("match_threshold must be between 0 and 1")

    user_agent = config.get("musicbrainz_user_agent")
    if isinstance(user_agent, str) and user_agent and "/" not in user_agent:
        errors.append("musicbrainz_user_agent must look like 'app/version (contact)'")

    return errors


def _env_or_file(config, key):
    env_value = os.environ.get(_ENV_OVERRIDES[key]) if key in _ENV_OVERRIDES else None
    if env_value:
        return env_value
    value = config.get(key)
    return value if value not in ("", None) else None


def build_settings(config=None):
    """Merge a config mapping with environment overrides into ``Settings``."""
    config = config or {}
    data_dir = _env_or_file(config, "data_dir") or str(PROJECT_ROOT / "data")
    signing_secret = _env_or_file(config, "signing_secret")
    secret_generated = not signing_secret
    if secret_generated:
        signing_secret = os.urandom(32).hex()
    return Settings(
        data_dir=os.path.abspath(data_dir),
        db_path=os.path.abspath(_env_or_file(config, "db_path") or os.path.join(data_dir, "songimport.sqlite3")),
        storage_dir=os.path.abspath(_env_or_file(config, "storage_dir") or os.path.join(data_dir, "storage")),
        log_dir=os.path.abspath(_env_or_file(config, "log_dir") or os.path.join(data_dir, "logs")),
        signing_secret=signing_secret,
        default_user_id=_env_or_file(config, "default_user_id") or DEFAULT_USER_ID,
        spotify_client_id=_env_or_file(config, "spotify_client_id"),
        spotify_client_secret=_env_or_file(config, "spotify_client_secret"),
        lastfm_api_key=_env_or_file(config, "lastfm_api_key"),
        musicbrainz_user_agent=_env_or_file(config, "musicbrainz_user_agent"),
        yt_dlp_cookies=config.get("yt_dlp_cookies") or None,
        match_threshold=float(config.get("match_threshold", MATCH_ACCEPT_THRESHOLD)),
        signing_secret_generated=secret_generated,
    )


def load_settings(path=None):
    """Load, validate and merge the config file named by ``path`` or ``SONGIMPORT_CONFIG``."""
    resolved = resolve_config_path(path)
    if resolved is None or not os.path.exists(resolved):
        if resolved:
            logging.warning("Config file not found: %s; using environment only", resolved)
        return build_settings({})
    config = load_config(resolved)
    errors = validate_config(config)
    if errors:
        raise ValueError("Invalid config: " + "; ".join(errors))
    return build_settings(config)


def parse_user_agent(value):
    """Split ``app/version (contact)`` into its parts."""
    text = str(value or "").strip()
    if not text:
        return "songimport", "1.0", None
    contact = None
    if "(" in text and text.endswith(")"):
        text, _, contact = text[:-1].partition("(")
        text = text.strip()
        contact = contact.strip() or None
    app, _, version = text.partition("/")
    return app.strip() or "songimport", version.strip() or "1.0", contact


def build_spotify_provider(settings, *, session=None):
    return SpotifyMetadataProvider(
        client_id=settings.spotify_client_id,
        client_secret=settings.spotify_client_secret,
        session=session,
    )


def build_reconciler(settings, *, session=None, spotify=None):
    """Wire providers in fixed priority order: Spotify, Last.fm, MusicBrainz."""
    app, version, contact = parse_user_agent(settings.musicbrainz_user_agent)
    providers = [
        spotify or build_spotify_provider(settings, session=session),
        LastFmMetadataProvider(api_key=settings.lastfm_api_key, session=session),
        MusicBrainzMetadataProvider(app_name=app, app_version=version, contact=contact),
    ]
    return MetadataReconciler(providers, threshold=settings.match_threshold)
