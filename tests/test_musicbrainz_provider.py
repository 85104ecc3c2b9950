from __future__ import annotations

import pytest

musicbrainzngs = pytest.importorskip("musicbrainzngs")

from metadata.providers.musicbrainz import MusicBrainzMetadataProvider, cover_art_url
from metadata.types import CandidateRecord

_RECORDING = {
    "id": "rec-1",
    "title": "Big Smoke",
    "length": "254600",
    "artist-credit": [{"artist": {"id": "art-1", "name": "Tash Sultana"}}],
    "release-list": [{"id": "rel-1", "title": "Flow State", "date": "2018-08-31"}],
    "tag-list": [{"name": "rock", "count": "1"}, {"name": "indie", "count": "5"}],
}


@pytest.fixture(autouse=True)
def _no_useragent(monkeypatch):
    monkeypatch.setattr("metadata.providers.musicbrainz.musicbrainzngs.set_useragent", lambda *args, **kwargs: None)


def test_field_query_maps_to_recording_and_artist(monkeypatch) -> None:
    calls = []

    def _search_recordings(**kwargs):
        calls.append(kwargs)
        return {"recording-list": [_RECORDING]}

    monkeypatch.setattr("metadata.providers.musicbrainz.musicbrainzngs.search_recordings", _search_recordings)

    candidates = MusicBrainzMetadataProvider().search_candidates('artist:"Tash Sultana" track:"Big Smoke"')

    assert calls == [{"limit": 5, "recording": "Big Smoke", "artist": "Tash Sultana"}]
    candidate = candidates[0]
    assert candidate.artist_name == "Tash Sultana"
    assert candidate.album_name == "Flow State"
    assert candidate.duration_seconds == 255
    assert candidate.genres == ("indie", "rock")
    assert candidate.cover_url == cover_art_url("rel-1")


def test_free_text_query(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(
        "metadata.providers.musicbrainz.musicbrainzngs.search_recordings",
        lambda **kwargs: calls.append(kwargs) or {"recording-list": []},
    )

    assert MusicBrainzMetadataProvider().search_candidates("Tash Sultana Big Smoke") == []
    assert calls == [{"limit": 5, "query": "Tash Sultana Big Smoke"}]


def test_web_service_error_yields_empty(monkeypatch) -> None:
    def _fail(**kwargs):
        raise musicbrainzngs.WebServiceError("unavailable")

    monkeypatch.setattr("metadata.providers.musicbrainz.musicbrainzngs.search_recordings", _fail)

    assert MusicBrainzMetadataProvider().search_candidates("Big Smoke") == []


def test_fetch_details_uses_recording_lookup(monkeypatch) -> None:
    calls = []

    def _get_recording_by_id(recording_id, includes=None):
        calls.append((recording_id, includes))
        return {"recording": _RECORDING}

    monkeypatch.setattr("metadata.providers.musicbrainz.musicbrainzngs.get_recording_by_id", _get_recording_by_id)
    candidate = CandidateRecord(provider="musicbrainz", candidate_id="rec-1", title="Big Smoke", artist_name="Tash Sultana")

    detailed = MusicBrainzMetadataProvider().fetch_details(candidate)

    assert calls == [("rec-1", ["artists", "releases", "tags"])]
    assert detailed.album_id == "rel-1"
    assert detailed.release_date == "2018-08-31"


def test_fetch_details_failure_returns_none(monkeypatch) -> None:
    def _fail(recording_id, includes=None):
        raise musicbrainzngs.ResponseError("not found")

    monkeypatch.setattr("metadata.providers.musicbrainz.musicbrainzngs.get_recording_by_id", _fail)
    candidate = CandidateRecord(provider="musicbrainz", candidate_id="rec-x", title="X", artist_name="Y")

    assert MusicBrainzMetadataProvider().fetch_details(candidate) is None
