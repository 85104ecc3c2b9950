from __future__ import annotations

import importlib
import urllib.parse

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from db.song_metadata import SongMetadataStore
from engine.config import build_settings
from engine.errors import DownloadError, StorageError
from engine.import_pipeline import ImportResult
from storage.local import LocalObjectStorage


class _FakePipeline:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def import_url(self, url, user_id):
        self.calls.append((url, user_id))
        if self.error is not None:
            raise self.error
        return self.result


def _build_client(tmp_path, pipeline=None):
    module = importlib.import_module("api.main")
    settings = build_settings({"data_dir": str(tmp_path), "signing_secret": "k", "lastfm_api_key": "lf"})
    storage = LocalObjectStorage(settings.storage_dir, secret=settings.signing_secret)
    store = SongMetadataStore(settings.db_path)
    module.app.state.services = module.Services(
        settings=settings,
        storage=storage,
        store=store,
        pipeline=pipeline or _FakePipeline(),
    )
    return TestClient(module.app), module.app.state.services


@pytest.fixture(autouse=True)
def _reset_services():
    yield
    module = importlib.import_module("api.main")
    module.app.state.services = None


def test_import_returns_pipeline_result(tmp_path) -> None:
    result = ImportResult(
        file_name="Tash Sultana_Flow State_Big Smoke_x.mp3",
        storage_path="alice/Tash Sultana_Flow State_Big Smoke_x.mp3",
        title="Big Smoke",
        artist="Tash Sultana",
        album="Flow State",
        song_id=1,
    )
    pipeline = _FakePipeline(result=result)
    client, _ = _build_client(tmp_path, pipeline)

    response = client.post("/api/import-youtube", json={"url": "https://youtu.be/abc"}, headers={"X-User-Id": "alice"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["title"] == "Big Smoke"
    assert body["enrichment"] is None
    assert pipeline.calls == [("https://youtu.be/abc", "alice")]


def test_import_defaults_to_configured_user(tmp_path) -> None:
    pipeline = _FakePipeline(result=ImportResult(file_name="f.mp3", storage_path="local/f.mp3", title="t", artist="a", album="b"))
    client, _ = _build_client(tmp_path, pipeline)

    client.post("/api/import-youtube", json={"url": "https://youtu.be/abc"})

    assert pipeline.calls == [("https://youtu.be/abc", "local")]


def test_import_requires_url(tmp_path) -> None:
    client, _ = _build_client(tmp_path)

    assert client.post("/api/import-youtube", json={"url": "  "}).status_code == 400
    assert client.post("/api/import-youtube", json={}).status_code == 400


@pytest.mark.parametrize("error, status", [(DownloadError("gone"), 502), (StorageError("full"), 500)])
def test_import_maps_pipeline_errors(tmp_path, error, status) -> None:
    client, _ = _build_client(tmp_path, _FakePipeline(error=error))

    response = client.post("/api/import-youtube", json={"url": "https://youtu.be/abc"})

    assert response.status_code == status


def test_signed_url_round_trip(tmp_path) -> None:
    client, services = _build_client(tmp_path)
    services.storage.put("alice/song.mp3", b"ID3audio", "audio/mpeg")

    response = client.get("/api/audio-url", params={"path": "alice/song.mp3", "type": "audio"}, headers={"X-User-Id": "alice"})

    assert response.status_code == 200
    signed = response.json()["signedUrl"]
    assert response.json()["expiresAt"] > 0
    download = client.get(signed)
    assert download.status_code == 200
    assert download.content == b"ID3audio"
    assert download.headers["content-type"] == "audio/mpeg"


def test_signed_url_rejects_foreign_paths(tmp_path) -> None:
    client, _ = _build_client(tmp_path)

    response = client.get("/api/audio-url", params={"path": "bob/song.mp3"}, headers={"X-User-Id": "alice"})

    assert response.status_code == 403


def test_tampered_signature_is_forbidden(tmp_path) -> None:
    client, services = _build_client(tmp_path)
    services.storage.put("alice/song.mp3", b"ID3audio", "audio/mpeg")
    signed = services.storage.sign("alice/song.mp3", 60)
    parsed = urllib.parse.urlparse(signed)
    query = dict(urllib.parse.parse_qsl(parsed.query))

    response = client.get(parsed.path, params={"expires": query["expires"], "signature": "0" * 64})

    assert response.status_code == 403


def test_songs_listing_and_edit(tmp_path) -> None:
    client, services = _build_client(tmp_path)
    song_id = services.store.insert(
        {"user_id": "alice", "file_name": "a.mp3", "title": "Big Smoke", "artist": "Tash Sultana", "album": "Unknown Album"}
    )

    listing = client.get("/api/songs", headers={"X-User-Id": "alice"})
    edited = client.patch(f"/api/songs/{song_id}", json={"album": "Flow State"}, headers={"X-User-Id": "alice"})
    foreign = client.patch(f"/api/songs/{song_id}", json={"album": "Nope"}, headers={"X-User-Id": "bob"})
    empty = client.patch(f"/api/songs/{song_id}", json={}, headers={"X-User-Id": "alice"})

    assert [song["title"] for song in listing.json()["songs"]] == ["Big Smoke"]
    assert edited.status_code == 200
    assert edited.json()["album"] == "Flow State"
    assert foreign.status_code == 404
    assert empty.status_code == 400


def test_env_check_reports_configured_providers(tmp_path, monkeypatch) -> None:
    for key in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "LASTFM_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    client, _ = _build_client(tmp_path)

    response = client.get("/api/env-check")

    assert response.json() == {"providers": {"spotify": False, "lastfm": True, "musicbrainz": True}}


def test_startup_logs_generated_secret_to_log_file(tmp_path, monkeypatch) -> None:
    import json
    import logging

    for key in ("SONGIMPORT_SIGNING_SECRET", "SONGIMPORT_DATA_DIR", "SONGIMPORT_LOG_DIR", "SONGIMPORT_DB_PATH",
                "SONGIMPORT_STORAGE_DIR", "SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET"):
        monkeypatch.delenv(key, raising=False)
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"data_dir": str(tmp_path / "data")}))
    monkeypatch.setenv("SONGIMPORT_CONFIG", str(config_path))
    module = importlib.import_module("api.main")
    root = logging.getLogger("")
    handlers_before = list(root.handlers)
    level_before = root.level

    try:
        with TestClient(module.app):
            pass
    finally:
        for handler in list(root.handlers):
            if handler not in handlers_before:
                handler.close()
                root.removeHandler(handler)
        root.setLevel(level_before)

    log_text = (tmp_path / "data" / "logs" / module.LOG_FILE_NAME).read_text()
    assert "No signing secret configured" in log_text
