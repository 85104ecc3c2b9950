#!/usr/bin/env python3
import functools
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

import anyio
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel

from config.settings import AUDIO_URL_TTL_SECONDS, IMAGE_URL_TTL_SECONDS
from db.song_metadata import SongMetadataStore
from download.youtube import YoutubeDownloader
from engine.config import build_reconciler, build_spotify_provider, load_settings
from engine.errors import DownloadError, ImportPipelineError, StorageError
from engine.import_pipeline import ImportPipeline
from metadata.artwork import ArtworkResolver
from storage.local import LocalObjectStorage

APP_NAME = "Song Import API"
LOG_FILE_NAME = "songimport.log"
_URL_TTLS = {"audio": AUDIO_URL_TTL_SECONDS, "image": IMAGE_URL_TTL_SECONDS}


@dataclass
class Services:
    settings: object
    storage: object
    store: object
    pipeline: object


def build_services(settings):
    if settings.signing_secret_generated:
        logging.warning("No signing secret configured; generated URLs will not survive a restart")
    os.makedirs(settings.temp_dir, exist_ok=True)
    storage = LocalObjectStorage(settings.storage_dir, secret=settings.signing_secret)
    store = SongMetadataStore(settings.db_path)
    spotify = build_spotify_provider(settings)
    pipeline = ImportPipeline(
        downloader=YoutubeDownloader(temp_root=settings.temp_dir, cookie_file=settings.yt_dlp_cookies),
        storage=storage,
        store=store,
        reconciler=build_reconciler(settings, spotify=spotify),
        artwork_resolver=ArtworkResolver(spotify=spotify),
    )
    return Services(settings=settings, storage=storage, store=store, pipeline=pipeline)


def _setup_logging(log_dir):
    os.makedirs(log_dir, exist_ok=True)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, LOG_FILE_NAME)
    root.setLevel(logging.INFO)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            if os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path):
                return
    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    file_handler.setLevel(logging.INFO)
    root.addHandler(file_handler)


class ImportRequest(BaseModel):
    url: Optional[str] = None


class SongUpdateRequest(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None


app = FastAPI(
    title=APP_NAME,
    description="Import songs from video URLs into a per-user library with reconciled metadata.",
)
app.state.services = None


@app.on_event("startup")
async def startup():
    if app.state.services is None:
        settings = load_settings()
        _setup_logging(settings.log_dir)
        app.state.services = build_services(settings)
    else:
        _setup_logging(app.state.services.settings.log_dir)
    logging.info("%s started storage=%s db=%s", APP_NAME, app.state.services.settings.storage_dir,
                 app.state.services.settings.db_path)


def _services(request: Request) -> Services:
    services = request.app.state.services
    if services is None:
        raise HTTPException(status_code=503, detail="service not initialised")
    return services


def _user_id(services: Services, header_value):
    value = (header_value or "").strip()
    return value or services.settings.default_user_id


def _require_owned_path(user_id, path):
    normalized = (path or "").strip().lstrip("/")
    if not normalized:
        raise HTTPException(status_code=400, detail="path is required")
    if ".." in normalized.split("/") or not normalized.startswith(f"{user_id}/"):
        logging.warning("Signed URL blocked: user=%s path=%s", user_id, path)
        raise HTTPException(status_code=403, detail="path not allowed")
    return normalized


@app.post("/api/import-youtube")
async def import_youtube(
    request: Request,
    payload: ImportRequest,
    x_user_id: Optional[str] = Header(default=None),
):
    services = _services(request)
    url = (payload.url or "").strip()
    if not url:
        raise HTTPException(status_code=400, detail="url is required")
    user_id = _user_id(services, x_user_id)
    try:
        result = await anyio.to_thread.run_sync(
            functools.partial(services.pipeline.import_url, url, user_id)
        )
    except DownloadError as exc:
        logging.warning("Import download failed url=%s: %s", url, exc)
        raise HTTPException(status_code=502, detail=f"Download failed: {exc}") from exc
    except StorageError as exc:
        logging.error("Import storage failed url=%s: %s", url, exc)
        raise HTTPException(status_code=500, detail=f"Storage failed: {exc}") from exc
    except ImportPipelineError as exc:
        logging.error("Import failed url=%s: %s", url, exc)
        raise HTTPException(status_code=500, detail=f"Import failed: {exc}") from exc
    return {"success": True, **result.to_dict()}


@app.get("/api/audio-url")
async def audio_url(
    request: Request,
    path: str = Query(...),
    type: str = Query("audio"),
    x_user_id: Optional[str] = Header(default=None),
):
    services = _services(request)
    ttl = _URL_TTLS.get(type)
    if ttl is None:
        raise HTTPException(status_code=400, detail="type must be 'audio' or 'image'")
    normalized = _require_owned_path(_user_id(services, x_user_id), path)
    now = time.time()
    try:
        signed = services.storage.sign(normalized, ttl, now=now)
    except StorageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"signedUrl": signed, "expiresAt": int(now + ttl)}


@app.get("/api/files/{path:path}")
async def get_file(
    request: Request,
    path: str,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
):
    services = _services(request)
    if not services.storage.verify(path, expires, signature):
        raise HTTPException(status_code=403, detail="invalid or expired signature")
    try:
        data = await anyio.to_thread.run_sync(services.storage.get, path)
    except StorageError as exc:
        raise HTTPException(status_code=404, detail="file not found") from exc
    return Response(content=data, media_type=services.storage.content_type(path))


@app.get("/api/songs")
async def list_songs(request: Request, x_user_id: Optional[str] = Header(default=None)):
    services = _services(request)
    user_id = _user_id(services, x_user_id)
    songs = await anyio.to_thread.run_sync(services.store.list_for_user, user_id)
    return {"songs": songs}


@app.patch("/api/songs/{song_id}")
async def update_song(
    request: Request,
    song_id: int,
    payload: SongUpdateRequest,
    x_user_id: Optional[str] = Header(default=None),
):
    services = _services(request)
    changes = {key: value for key, value in payload.model_dump().items() if value is not None}
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    user_id = _user_id(services, x_user_id)
    try:
        updated = await anyio.to_thread.run_sync(
            functools.partial(services.store.update, song_id, changes, user_id=user_id)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if updated is None:
        raise HTTPException(status_code=404, detail="song not found")
    return updated


@app.get("/api/env-check")
async def env_check(request: Request):
    services = _services(request)
    return {"providers": services.settings.credential_status()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=os.environ.get("SONGIMPORT_HOST", "0.0.0.0"), port=int(os.environ.get("SONGIMPORT_PORT", "8090")))
