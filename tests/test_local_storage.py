from __future__ import annotations

import urllib.parse

import pytest

from engine.errors import ImportPipelineError
from storage.local import LocalObjectStorage, StorageError


def _storage(tmp_path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "objects", secret="s3cret")


def test_put_and_get_round_trip(tmp_path) -> None:
    storage = _storage(tmp_path)

    stored = storage.put("local/song.mp3", b"ID3data", "audio/mpeg")

    assert stored == "local/song.mp3"
    assert storage.get("local/song.mp3") == b"ID3data"
    assert storage.exists("local/song.mp3")
    assert storage.content_type("local/song.mp3") == "audio/mpeg"


@pytest.mark.parametrize("path", ["../escape.mp3", "local/../../escape.mp3", ""])
def test_paths_outside_root_are_rejected(tmp_path, path) -> None:
    with pytest.raises(StorageError):
        _storage(tmp_path).put(path, b"x", "audio/mpeg")


def test_storage_error_is_a_pipeline_error() -> None:
    assert issubclass(StorageError, ImportPipelineError)


def test_missing_object_raises(tmp_path) -> None:
    with pytest.raises(StorageError):
        _storage(tmp_path).get("local/missing.mp3")


def test_signed_url_verifies_until_expiry(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.put("local/images/album_x.jpg", b"jpg", "image/jpeg")

    url = storage.sign("local/images/album_x.jpg", 60, now=1000)
    parsed = urllib.parse.urlparse(url)
    query = dict(urllib.parse.parse_qsl(parsed.query))

    assert parsed.path == "/api/files/local/images/album_x.jpg"
    assert query["expires"] == "1060"
    assert storage.verify("local/images/album_x.jpg", query["expires"], query["signature"], now=1059)
    assert not storage.verify("local/images/album_x.jpg", query["expires"], query["signature"], now=1061)
    assert not storage.verify("local/images/other.jpg", query["expires"], query["signature"], now=1059)
    assert not storage.verify("local/images/album_x.jpg", "1070", query["signature"], now=1059)
    assert not storage.verify("local/images/album_x.jpg", "soon", query["signature"], now=1059)


def test_secret_is_required(tmp_path) -> None:
    with pytest.raises(ValueError):
        LocalObjectStorage(tmp_path, secret="")
