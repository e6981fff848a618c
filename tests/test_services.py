"""
🏗️ Service Layer Test Suite
===========================

Exercises the timer and Spotify services directly, including the playlist
switching triggered by engine transitions.
"""
import pytest

from pomofy.config_schema import AppConfig
from pomofy.constants import (KEY_DEVICE_ID, KEY_LONG_BREAK_INTERVAL,
                              KEY_PLAYLIST_PREFIX,
                              KEY_WORK_DURATION, SPOTIFY_API_BASE)
from pomofy.core.interval_engine import IntervalEngine
from pomofy.core.models import SessionKind
from pomofy.services.service_manager import ServiceManager
from pomofy.services.spotify_service import SpotifyService
from pomofy.services.timer_service import TimerService
from pomofy.utils.kv_store import MemoryStore

from conftest import FakeResponse

PLAY_URL = f"{SPOTIFY_API_BASE}/me/player/play"
PAUSE_URL = f"{SPOTIFY_API_BASE}/me/player/pause"


@pytest.fixture
def logged_in_manager(service_manager):
    service_manager.client.tokens.save_tokens("access-1", 3600, "refresh-1")
    return service_manager


class TestTimerService:
    def test_initialize_applies_stored_settings(self):
        storage = MemoryStore({KEY_WORK_DURATION: "50", KEY_LONG_BREAK_INTERVAL: "2"})
        service = TimerService(IntervalEngine(), storage)

        assert service.initialize().success

        settings = service.get_status().data["settings"]
        assert settings == {"work": 50, "short_break": 5, "long_break": 15, "long_break_interval": 2}
        assert service.get_status().data["remaining_seconds"] == 50 * 60

    def test_initialize_ignores_corrupt_settings(self):
        storage = MemoryStore({KEY_WORK_DURATION: "forever"})
        service = TimerService(IntervalEngine(), storage)

        assert service.initialize().success
        assert service.get_status().data["settings"]["work"] == 25

    def test_update_settings_persists(self):
        storage = MemoryStore()
        service = TimerService(IntervalEngine(), storage)
        service.initialize()

        result = service.update_settings({"work": "45", "short_break": "10", "long_break": "30"})

        assert result.success
        assert storage.get(KEY_WORK_DURATION) == "45"
        assert result.data["settings"]["long_break"] == 30

    def test_update_settings_rejects_out_of_range(self):
        storage = MemoryStore()
        service = TimerService(IntervalEngine(), storage)
        service.initialize()

        result = service.update_settings({"work": "0", "short_break": "5", "long_break": "15"})

        assert not result.success
        assert result.error_code == "config_error"
        assert result.data == {"field": "work"}
        assert storage.get(KEY_WORK_DURATION) is None

    def test_skip_reports_transition(self):
        service = TimerService(IntervalEngine(), MemoryStore())
        service.initialize()

        result = service.skip()

        assert result.data["transition"]["to_kind"] == "short_break"
        assert result.data["kind"] == "short_break"

    def test_health_check(self):
        service = TimerService(IntervalEngine(), MemoryStore())
        assert not service.health_check().success
        service.initialize()
        assert service.health_check().data["status"] == "healthy"


class TestSpotifyServiceWithoutClient:
    @pytest.fixture
    def service(self):
        service = SpotifyService(AppConfig(), MemoryStore())
        yield service
        service.shutdown()

    def test_not_configured(self, service):
        assert service.begin_authorization().error_code == "not_configured"
        assert service.get_devices().error_code == "not_configured"
        assert service.get_authentication_status().data == {"configured": False, "authenticated": False}

    def test_engine_hooks_are_noops(self, service):
        engine = IntervalEngine()
        future = service.on_session_changed(engine.skip())
        future.result(timeout=5)


class TestSpotifyService:
    def test_playback_requires_login(self, service_manager):
        assert service_manager.spotify.get_playback_status().error_code == "auth_required"

    def test_playlist_binding_accepts_links(self, service_manager, store):
        result = service_manager.spotify.set_playlist_binding(
            "work", "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=x"
        )

        assert result.success
        assert store.get(f"{KEY_PLAYLIST_PREFIX}work") == "37i9dQZF1DXcBWIGoYBM5M"
        assert result.data["work"] == "37i9dQZF1DXcBWIGoYBM5M"

    def test_playlist_binding_clear_and_errors(self, service_manager, store):
        spotify = service_manager.spotify
        spotify.set_playlist_binding("work", "abc")
        assert spotify.set_playlist_binding("work", "").success
        assert store.get(f"{KEY_PLAYLIST_PREFIX}work") is None

        assert spotify.set_playlist_binding("nap", "abc").error_code == "config_error"
        assert spotify.set_playlist_binding("work", "https://example.com/x").error_code == "config_error"

    def test_long_break_falls_back_to_short_break(self, service_manager):
        spotify = service_manager.spotify
        spotify.set_playlist_binding("short_break", "breakList")
        assert spotify.playlist_for(SessionKind.LONG_BREAK) == "breakList"
        spotify.set_playlist_binding("long_break", "longList")
        assert spotify.playlist_for(SessionKind.LONG_BREAK) == "longList"

    def test_device_selection(self, logged_in_manager, http, store):
        http.api("GET", "/me/player/devices", FakeResponse(200, {"devices": [
            {"id": "d1", "name": "Desk", "is_active": False},
            {"id": "d2", "name": "Phone", "is_active": True},
        ]}))
        spotify = logged_in_manager.spotify

        assert spotify.get_devices().data["selected_device_id"] == "d2"

        spotify.select_device("d1")
        assert store.get(KEY_DEVICE_ID) == "d1"
        assert spotify.get_devices().data["selected_device_id"] == "d1"

        spotify.select_device("")
        assert store.get(KEY_DEVICE_ID) is None

    def test_playlists_paging_is_clamped(self, logged_in_manager, http):
        http.api("GET", "/me/playlists", FakeResponse(200, {"items": [
            {"id": "p1", "uri": "spotify:playlist:p1", "name": "Focus",
             "tracks": {"total": 12}, "owner": {"display_name": "me"}},
        ], "total": 1}))

        result = logged_in_manager.spotify.get_playlists(limit="500", offset="-3")

        assert result.data["limit"] == 50
        assert result.data["offset"] == 0
        assert result.data["items"][0]["track_count"] == 12
        assert logged_in_manager.spotify.get_playlists(limit="lots").error_code == "invalid_paging"

    def test_unknown_action(self, logged_in_manager):
        assert logged_in_manager.spotify.control_playback("rewind").error_code == "invalid_action"

    def test_provider_error_becomes_api_error(self, logged_in_manager, http):
        http.add("PUT", PAUSE_URL, FakeResponse(403, {"error": {"status": 403, "message": "Premium required"}}))

        result = logged_in_manager.spotify.control_playback("pause")

        assert result.error_code == "api_error"
        assert result.message == "Premium required"
        assert result.data == {"status_code": 403}

    def test_volume_validation(self, logged_in_manager, http):
        http.api("PUT", "/me/player/volume", FakeResponse(204))
        spotify = logged_in_manager.spotify

        assert spotify.set_volume({"volume": "70"}).data == {"volume": 70}
        assert spotify.set_volume({"volume": "loud"}).error_code == "config_error"

    def test_logout_clears_credentials(self, logged_in_manager, store):
        store.set(KEY_DEVICE_ID, "dev-1")

        logged_in_manager.spotify.logout()

        status = logged_in_manager.spotify.get_authentication_status().data
        assert status["configured"] is True
        assert status["has_access_token"] is False
        assert store.get(KEY_DEVICE_ID) is None


class TestPlaylistSwitching:
    def test_transition_plays_bound_playlist(self, logged_in_manager, http, store):
        store.set(KEY_DEVICE_ID, "dev-1")
        logged_in_manager.spotify.set_playlist_binding("short_break", "breakList")
        http.add("PUT", PLAY_URL, FakeResponse(204))

        logged_in_manager.engine.skip()
        logged_in_manager.spotify.drain()

        plays = [kwargs for method, url, kwargs in http.calls if url == PLAY_URL]
        assert len(plays) == 1
        assert plays[0]["json"] == {"context_uri": "spotify:playlist:breakList"}
        assert plays[0]["params"] == {"device_id": "dev-1"}

    def test_unbound_kind_leaves_playback_alone(self, logged_in_manager, http):
        logged_in_manager.engine.skip()
        logged_in_manager.spotify.drain()
        assert http.calls == []

    def test_start_plays_current_kind(self, logged_in_manager, http):
        logged_in_manager.spotify.set_playlist_binding("work", "focusList")
        http.add("PUT", PLAY_URL, FakeResponse(204))

        logged_in_manager.timer.start()
        logged_in_manager.spotify.drain()

        assert http.count("PUT", PLAY_URL) == 1

    def test_pause_follows_timer(self, logged_in_manager, http):
        http.add("PUT", PAUSE_URL, FakeResponse(204))
        engine = logged_in_manager.engine
        engine.start()
        engine.pause()
        logged_in_manager.spotify.drain()

        assert http.count("PUT", PAUSE_URL) == 1

    def test_reset_pauses_music(self, logged_in_manager, http):
        http.add("PUT", PAUSE_URL, FakeResponse(204))
        logged_in_manager.timer.start()
        logged_in_manager.timer.reset()
        logged_in_manager.spotify.drain()

        assert http.count("PUT", PAUSE_URL) == 1

    def test_pause_can_be_decoupled(self, http, clock, store):
        config = AppConfig(client_id="test-client", pause_music_with_timer=False, encrypt_tokens=False)
        manager = ServiceManager(config, storage=store, http_session=http, clock=clock)
        try:
            manager.client.tokens.save_tokens("access-1", 3600, "refresh-1")
            manager.engine.start()
            manager.engine.pause()
            manager.spotify.drain()
        finally:
            manager.shutdown()

        assert http.count("PUT", PAUSE_URL) == 0

    def test_playback_failure_does_not_reach_engine(self, logged_in_manager, http):
        logged_in_manager.spotify.set_playlist_binding("short_break", "breakList")
        http.add("PUT", PLAY_URL, FakeResponse(404, {"error": {"status": 404, "message": "Device not found"}}))

        event = logged_in_manager.engine.skip()
        logged_in_manager.spotify.drain()

        assert event.to_kind is SessionKind.SHORT_BREAK
        assert logged_in_manager.engine.snapshot().session.kind is SessionKind.SHORT_BREAK


class TestServiceManager:
    def test_health_check_all(self, service_manager):
        result = service_manager.health_check_all()
        assert result.data["total_services"] == 2
        assert set(result.data["services"]) == {"timer", "spotify"}
        # Configured but not logged in
        assert result.data["services"]["spotify"]["healthy"] is False

    def test_unconfigured_manager_has_no_client(self, store):
        manager = ServiceManager(AppConfig(encrypt_tokens=False), storage=store)
        try:
            assert manager.client is None
            assert manager.get_service("spotify").get_playlist_bindings().success
        finally:
            manager.shutdown()
