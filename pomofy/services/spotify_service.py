"""
🎵 Spotify Service - Business Logic for Spotify Integration
==========================================================

Handles authentication, device selection, playlist bindings and playback
control, and reacts to interval-engine events by switching playlists.
Playback commands triggered by the engine are fire-and-forget: they run on
a single worker thread and failures are only logged.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import BaseService, ServiceResult
from ..api.spotify import SpotifyClient
from ..config_schema import AppConfig
from ..constants import KEY_DEVICE_ID, KEY_PLAYLIST_PREFIX
from ..core.models import EngineState, SessionKind, TransitionEvent
from ..core.playback_poller import PlaybackPoller
from ..errors import PomofyError
from ..utils.kv_store import KeyValueStore
from ..utils.validation import (InputValidator, ValidationError,
                                validate_volume_only)

PLAYBACK_ACTIONS = ("play", "pause")
MAX_PLAYLIST_PAGE = 50


class SpotifyService(BaseService):
    """Service for Spotify integration and playlist switching."""

    def __init__(
        self,
        config: AppConfig,
        storage: KeyValueStore,
        client: Optional[SpotifyClient] = None,
        poller: Optional[PlaybackPoller] = None,
    ):
        super().__init__("spotify")
        self.config = config
        self.client = client
        self.poller = poller
        self._storage = storage
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pomofy-playback")

    # 🔑 Authentication
    def _not_configured(self) -> ServiceResult:
        return self._error_result(
            "Spotify is not configured. Set SPOTIFY_CLIENT_ID to enable it.",
            error_code="not_configured"
        )

    def get_authentication_status(self) -> ServiceResult:
        if self.client is None:
            return self._success_result(data={"configured": False, "authenticated": False})
        data = {"configured": True}
        data.update(self.client.auth_snapshot())
        return self._success_result(data=data)

    def begin_authorization(self) -> ServiceResult:
        if self.client is None:
            return self._not_configured()
        return self._success_result(data={"authorize_url": self.client.authorize()})

    def complete_authorization(self, params: Mapping[str, Any]) -> ServiceResult:
        if self.client is None:
            return self._not_configured()
        try:
            if not self.client.complete_authorization(params):
                return self._error_result(
                    "Could not exchange the authorization code for a token",
                    error_code="auth_exchange_failed"
                )
        except PomofyError as exc:
            return self._handle_error(exc, "complete_authorization")

        self.logger.info("✅ Spotify account connected")
        if self.poller is not None:
            self._dispatch(self.poller.poll, "initial_poll")
        return self._success_result(message="Spotify account connected")

    def logout(self) -> ServiceResult:
        if self.client is not None:
            self.client.logout()
        self._storage.delete(KEY_DEVICE_ID)
        if self.poller is not None:
            self.poller.poll()
        return self._success_result(message="Logged out of Spotify")

    # 👤 Profile, devices, playlists
    def get_profile(self) -> ServiceResult:
        if self.client is None:
            return self._not_configured()
        try:
            profile = self.client.get_user_profile() or {}
        except PomofyError as exc:
            return self._handle_error(exc, "get_profile")
        return self._success_result(data={
            "id": profile.get("id"),
            "display_name": profile.get("display_name"),
            "product": profile.get("product"),
            "country": profile.get("country"),
            "images": profile.get("images", []),
        })

    def get_devices(self) -> ServiceResult:
        if self.client is None:
            return self._not_configured()
        try:
            devices = self.client.get_devices()
        except PomofyError as exc:
            return self._handle_error(exc, "get_devices")

        enhanced_devices = [
            {
                "id": device.get("id"),
                "name": device.get("name"),
                "type": device.get("type"),
                "is_active": device.get("is_active", False),
                "is_restricted": device.get("is_restricted", False),
                "volume_percent": device.get("volume_percent"),
            }
            for device in devices
        ]
        selected = self._storage.get(KEY_DEVICE_ID)
        if not selected:
            active = next((d for d in enhanced_devices if d["is_active"]), None)
            fallback = active or (enhanced_devices[0] if enhanced_devices else None)
            selected = fallback["id"] if fallback else None

        return self._success_result(
            data={"devices": enhanced_devices, "selected_device_id": selected},
            message=f"Found {len(enhanced_devices)} Spotify devices"
        )

    def select_device(self, device_id: Optional[str]) -> ServiceResult:
        """Remember the playback device; an empty value clears the choice."""
        if device_id is not None and not isinstance(device_id, str):
            return self._error_result("device_id must be a string", error_code="invalid_device")
        device_id = (device_id or "").strip()
        if device_id:
            self._storage.set(KEY_DEVICE_ID, device_id)
        else:
            self._storage.delete(KEY_DEVICE_ID)
        return self._success_result(data={"selected_device_id": device_id or None})

    def _selected_device(self) -> Optional[str]:
        return self._storage.get(KEY_DEVICE_ID) or None

    def get_playlists(self, limit: Any = 20, offset: Any = 0) -> ServiceResult:
        if self.client is None:
            return self._not_configured()
        try:
            limit_value = max(1, min(MAX_PLAYLIST_PAGE, int(limit)))
            offset_value = max(0, int(offset))
        except (TypeError, ValueError):
            return self._error_result("limit and offset must be whole numbers", error_code="invalid_paging")

        try:
            page = self.client.get_user_playlists(limit=limit_value, offset=offset_value) or {}
        except PomofyError as exc:
            return self._handle_error(exc, "get_playlists")

        items = [
            {
                "id": playlist.get("id"),
                "uri": playlist.get("uri"),
                "name": playlist.get("name"),
                "track_count": (playlist.get("tracks") or {}).get("total", 0),
                "owner": (playlist.get("owner") or {}).get("display_name", "Unknown"),
                "images": playlist.get("images", []),
            }
            for playlist in page.get("items") or []
            if playlist
        ]
        return self._success_result(data={
            "items": items,
            "total": page.get("total", len(items)),
            "limit": limit_value,
            "offset": offset_value,
        })

    # ▶️ Playback
    def get_playback_status(self) -> ServiceResult:
        if self.client is None or self.poller is None:
            return self._not_configured()
        if not self.client.has_credentials():
            return self._error_result("Spotify authentication required", error_code="auth_required")
        playback, meta = self.poller.snapshot()
        return self._success_result(data={"playback": playback, "meta": meta})

    def control_playback(self, action: str) -> ServiceResult:
        """Resume or pause playback on the selected device."""
        if self.client is None:
            return self._not_configured()
        if action not in PLAYBACK_ACTIONS:
            return self._error_result(f"Unknown playback action: {action}", error_code="invalid_action")

        try:
            if action == "play":
                self.client.play(device_id=self._selected_device())
            else:
                self.client.pause(device_id=self._selected_device())
        except PomofyError as exc:
            return self._handle_error(exc, "control_playback")
        finally:
            if self.poller is not None:
                self.poller.invalidate()

        return self._success_result(message=f"Playback {action} executed successfully")

    def set_volume(self, form: Mapping[str, Any]) -> ServiceResult:
        if self.client is None:
            return self._not_configured()
        try:
            volume = validate_volume_only(dict(form))
            self.client.set_volume(volume, device_id=self._selected_device())
        except PomofyError as exc:
            return self._handle_error(exc, "set_volume")
        return self._success_result(data={"volume": volume}, message=f"Volume set to {volume}%")

    # 🔗 Playlist bindings
    def playlist_for(self, kind: SessionKind) -> Optional[str]:
        """Playlist bound to ``kind``; long breaks fall back to the short-break one."""
        playlist_id = self._storage.get(f"{KEY_PLAYLIST_PREFIX}{kind.value}")
        if not playlist_id and kind is SessionKind.LONG_BREAK:
            playlist_id = self._storage.get(f"{KEY_PLAYLIST_PREFIX}{SessionKind.SHORT_BREAK.value}")
        return playlist_id or None

    def _bindings(self) -> Dict[str, Optional[str]]:
        return {
            kind.value: self._storage.get(f"{KEY_PLAYLIST_PREFIX}{kind.value}") or None
            for kind in SessionKind
        }

    def get_playlist_bindings(self) -> ServiceResult:
        return self._success_result(data=self._bindings())

    def set_playlist_binding(self, kind: Optional[str], value: Optional[str]) -> ServiceResult:
        """Bind a playlist (URL, URI or id) to a session kind; empty clears it."""
        try:
            kind_result = InputValidator.validate_session_kind(kind)
            if not kind_result.is_valid:
                raise ValidationError(kind_result.field_name, kind_result.error)
            ref_result = InputValidator.validate_playlist_reference(value)
            if not ref_result.is_valid:
                raise ValidationError(ref_result.field_name, ref_result.error)
        except ValidationError as exc:
            return self._handle_error(exc, "set_playlist_binding")

        key = f"{KEY_PLAYLIST_PREFIX}{kind_result.value}"
        if ref_result.value:
            self._storage.set(key, ref_result.value)
        else:
            self._storage.delete(key)
        self.logger.info(f"🔗 Playlist binding {kind_result.value} -> {ref_result.value or 'none'}")
        return self._success_result(data=self._bindings(), message="Playlist binding saved")

    # ⏱️ Engine hooks
    def _dispatch(self, func: Callable[..., Any], label: str, *args: Any) -> Optional[Future]:
        def runner() -> None:
            try:
                func(*args)
            except PomofyError as exc:
                self.logger.warning(f"⚠️ Playback command {label} failed: {exc}")
            except Exception:
                self.logger.exception(f"💥 Playback command {label} crashed")

        try:
            return self._executor.submit(runner)
        except RuntimeError:
            # Executor already shut down
            return None

    def _play_kind(self, kind: SessionKind) -> None:
        if self.client is None or not self.client.has_credentials():
            return
        playlist_id = self.playlist_for(kind)
        if not playlist_id:
            self.logger.debug(f"No playlist bound to {kind.value}; leaving playback alone")
            return
        self.client.play(
            device_id=self._selected_device(),
            context_uri=f"spotify:playlist:{playlist_id}",
        )
        self.logger.info(f"🎶 Switched playback to {kind.value} playlist")
        if self.poller is not None:
            self.poller.invalidate()

    def _pause(self) -> None:
        if self.client is None or not self.client.has_credentials():
            return
        self.client.pause(device_id=self._selected_device())
        if self.poller is not None:
            self.poller.invalidate()

    def on_session_changed(self, event: TransitionEvent) -> Optional[Future]:
        return self._dispatch(self._play_kind, "session_changed", event.to_kind)

    def on_session_started(self, state: EngineState) -> Optional[Future]:
        return self._dispatch(self._play_kind, "session_started", state.session.kind)

    def on_session_paused(self, state: EngineState) -> Optional[Future]:
        if not self.config.pause_music_with_timer:
            return None
        return self._dispatch(self._pause, "session_paused")

    def drain(self, timeout: float = 5.0) -> None:
        """Block until every queued playback command has run."""
        marker = self._dispatch(lambda: None, "drain")
        if marker is not None:
            marker.result(timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def health_check(self) -> ServiceResult:
        base_health = super().health_check()
        if not base_health.success:
            return base_health
        configured = self.client is not None
        authenticated = configured and self.client.has_credentials()
        data: Dict[str, Any] = {
            "service": "spotify",
            "status": "healthy" if authenticated or not configured else "degraded",
            "configured": configured,
            "authenticated": authenticated,
        }
        if self.poller is not None:
            _, meta = self.poller.snapshot()
            data["last_poll_error"] = meta["last_error"]
        return self._success_result(data=data)


__all__: List[str] = ["SpotifyService", "PLAYBACK_ACTIONS"]
