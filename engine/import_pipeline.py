"""Import a single video URL into a user's song library.

Download and audio upload are the only fatal steps. Reconciliation, artwork,
tagging and persistence all degrade to the parsed guess or are skipped.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable

from mutagen import MutagenError

from engine.errors import StorageError
from metadata.artwork import ArtworkResolver, artwork_identifier, fetch_artwork_from_url, store_artwork
from metadata.naming import build_audio_filename, user_object_path
from metadata.reconcile import MetadataReconciler, ReconciliationResult
from metadata.tagging import tag_file
from storage.local import ObjectStorage

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPE = "audio/mpeg"


@dataclass(frozen=True)
class ImportResult:
    file_name: str
    storage_path: str
    title: str
    artist: str
    album: str
    song_id: int | None = None
    album_cover_path: str | None = None
    artist_image_path: str | None = None
    enrichment: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def enrichment_summary(result: ReconciliationResult) -> dict[str, Any] | None:
    metadata = result.metadata
    if metadata is None:
        return None
    summary = metadata.to_record()
    summary["provider"] = metadata.provider
    summary["hybrid"] = metadata.hybrid
    summary["external_id"] = metadata.external_id
    return summary


class ImportPipeline:
    def __init__(
        self,
        *,
        downloader,
        storage: ObjectStorage,
        store,
        reconciler: MetadataReconciler,
        artwork_resolver: ArtworkResolver | None = None,
        artwork_fetcher: Callable[[str], dict | None] = fetch_artwork_from_url,
    ) -> None:
        self.downloader = downloader
        self.storage = storage
        self.store = store
        self.reconciler = reconciler
        self.artwork_resolver = artwork_resolver
        self._fetch_artwork = artwork_fetcher

    def import_url(self, url: str, user_id: str) -> ImportResult:
        download = self.downloader.download(url)
        try:
            return self._import_downloaded(url, user_id, download)
        finally:
            download.cleanup()

    def _import_downloaded(self, url: str, user_id: str, download) -> ImportResult:
        logger.info("Import started user=%s url=%s title=%r", user_id, url, download.title)
        result = self.reconciler.reconcile(download.title)
        title, artist, album = result.title, result.artist, result.album

        cover_art, cover_path, artist_path = self._store_artwork(result, user_id)

        try:
            tag_file(download.file_path, result, artwork=cover_art)
        except (MutagenError, OSError, ValueError):
            logger.warning("Tagging failed for %s", download.file_path, exc_info=True)

        file_name = build_audio_filename(
            {"title": title, "artist": artist, "album": album},
            file_id=str(uuid.uuid4()),
        )
        storage_path = user_object_path(user_id, file_name)
        try:
            with open(download.file_path, "rb") as handle:
                audio = handle.read()
        except OSError as exc:
            raise StorageError(f"failed to read downloaded audio: {exc}") from exc
        self.storage.put(storage_path, audio, AUDIO_CONTENT_TYPE)

        record = result.metadata.to_record() if result.metadata is not None else {}
        record.update(
            {
                "user_id": user_id,
                "file_name": file_name,
                "title": title,
                "artist": artist,
                "album": album,
                "album_cover_url": cover_path,
                "artist_image_url": artist_path,
                "youtube_url": url,
            }
        )
        song_id = None
        try:
            song_id = self.store.insert(record)
        except (sqlite3.Error, ValueError):
            logger.exception("Failed to persist metadata for %s", file_name)

        logger.info(
            "Import finished user=%s file=%s title=%r artist=%r album=%r enriched=%s",
            user_id,
            file_name,
            title,
            artist,
            album,
            result.metadata is not None,
        )
        return ImportResult(
            file_name=file_name,
            storage_path=storage_path,
            title=title,
            artist=artist,
            album=album,
            song_id=song_id,
            album_cover_path=cover_path,
            artist_image_path=artist_path,
            enrichment=enrichment_summary(result),
        )

    def _store_artwork(self, result: ReconciliationResult, user_id: str) -> tuple[dict | None, str | None, str | None]:
        """Fetch and store album and artist images; any failure leaves them unset."""
        artist, album = result.artist, result.album
        try:
            cover_art = self._album_cover(result)
            cover_path = store_artwork(
                self.storage,
                cover_art,
                user_id=user_id,
                kind="album",
                identifier=artwork_identifier(artist, album),
            )
            artist_path = store_artwork(
                self.storage,
                self._artist_image(artist),
                user_id=user_id,
                kind="artist",
                identifier=artwork_identifier(artist),
            )
        except Exception:
            logger.exception("Artwork lookup failed for %r / %r", artist, album)
            return None, None, None
        return cover_art, cover_path, artist_path

    def _album_cover(self, result: ReconciliationResult) -> dict | None:
        if self.artwork_resolver is not None:
            url = self.artwork_resolver.album_cover_url(result.artist, result.album, metadata=result.metadata)
        else:
            url = result.metadata.cover_url if result.metadata is not None else None
        return self._fetch_artwork(url) if url else None

    def _artist_image(self, artist: str) -> dict | None:
        if self.artwork_resolver is None:
            return None
        url = self.artwork_resolver.artist_image_url(artist)
        return self._fetch_artwork(url) if url else None
