"""
Tests for the playback poller: snapshot caching, freshness metadata and
failure handling.
"""
import pytest
import requests

from pomofy.constants import SPOTIFY_API_BASE
from pomofy.core.interval_engine import IntervalEngine
from pomofy.core.playback_poller import PlaybackPoller

from conftest import START_TIME, FakeResponse

PLAYER_URL = f"{SPOTIFY_API_BASE}/me/player"

PLAYING = {
    "is_playing": True,
    "item": {"name": "Deep Focus", "artists": [{"name": "Someone"}]},
    "device": {"id": "dev-1", "name": "Desk", "volume_percent": 40},
    "context": {"uri": "spotify:playlist:abc"},
}


@pytest.fixture
def poller(logged_in_client, clock):
    return PlaybackPoller(logged_in_client, interval=5.0, clock=clock)


class TestSnapshotMeta:
    def test_empty_before_first_poll(self, poller):
        data, meta = poller.snapshot()

        assert data is None
        assert meta["has_data"] is False
        assert meta["fresh"] is False
        assert meta["age"] is None
        assert meta["last_refresh"] is None
        assert meta["last_error"] is None
        assert meta["interval"] == 5.0

    def test_poll_fills_snapshot(self, poller, http):
        http.add("GET", PLAYER_URL, FakeResponse(200, PLAYING))

        assert poller.poll() is True

        data, meta = poller.snapshot()
        assert data["track_name"] == "Deep Focus"
        assert data["device_id"] == "dev-1"
        assert data["fetched_at"] == START_TIME
        assert meta["has_data"] is True
        assert meta["last_refresh"] == START_TIME
        assert meta["age"] == 0.0
        assert meta["fresh"] is True

    def test_freshness_expires_after_two_intervals(self, poller, http, clock):
        http.add("GET", PLAYER_URL, FakeResponse(200, PLAYING))
        poller.poll()

        clock.advance(9)
        _, meta = poller.snapshot()
        assert meta["age"] == 9.0
        assert meta["fresh"] is True

        clock.advance(1)
        data, meta = poller.snapshot()
        assert meta["age"] == 10.0
        assert meta["fresh"] is False
        assert data["track_name"] == "Deep Focus"

    def test_nothing_playing(self, poller, http):
        http.add("GET", PLAYER_URL, FakeResponse(204))

        assert poller.poll() is True

        data, meta = poller.snapshot()
        assert data is None
        assert meta["has_data"] is False
        assert meta["fresh"] is True

    def test_invalidate_marks_stale(self, poller, http):
        http.add("GET", PLAYER_URL, FakeResponse(200, PLAYING))
        poller.poll()

        poller.invalidate()

        data, meta = poller.snapshot()
        assert meta["fresh"] is False
        assert meta["age"] is None
        assert data is not None


class TestPollFailures:
    def test_api_error_is_recorded_not_raised(self, poller, http, clock):
        engine = IntervalEngine()
        engine.start()
        engine.tick(30)
        before = engine.snapshot()
        http.add("GET", PLAYER_URL,
                 FakeResponse(200, PLAYING),
                 FakeResponse(500, {"error": {"status": 500, "message": "boom"}}))
        poller.poll()
        clock.advance(3)

        assert poller.poll() is False

        data, meta = poller.snapshot()
        assert meta["last_error"] == "[500] boom"
        assert meta["last_error_at"] == START_TIME + 3
        assert meta["last_refresh"] == START_TIME
        assert data["track_name"] == "Deep Focus"
        assert engine.snapshot() == before

    def test_transport_error_is_recorded(self, poller, http):
        def _offline(method, url, **kwargs):
            raise requests.ConnectionError("offline")

        http.on("GET", PLAYER_URL, _offline)

        assert poller.poll() is False
        assert "failed" in poller.snapshot()[1]["last_error"]

    def test_success_clears_previous_error(self, poller, http):
        http.add("GET", PLAYER_URL,
                 FakeResponse(502, {"error": {"status": 502, "message": "bad gateway"}}),
                 FakeResponse(200, PLAYING))
        poller.poll()

        assert poller.poll() is True

        _, meta = poller.snapshot()
        assert meta["last_error"] is None
        assert meta["last_error_at"] is None


class TestLoggedOut:
    def test_logout_clears_snapshot_without_request(self, poller, logged_in_client, http):
        http.add("GET", PLAYER_URL, FakeResponse(200, PLAYING))
        poller.poll()
        logged_in_client.logout()

        assert poller.poll() is False

        data, meta = poller.snapshot()
        assert data is None
        assert meta["has_data"] is False
        assert http.count("GET", PLAYER_URL) == 1

    def test_never_logged_in(self, spotify_client, clock, http):
        poller = PlaybackPoller(spotify_client, clock=clock)

        assert poller.poll() is False
        assert http.calls == []
