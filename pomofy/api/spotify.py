#!/usr/bin/env python3
"""
🎵 Spotify Web API client for Pomofy
Provides:
- PKCE authorization (no client secret)
- Token persistence with proactive, single-flight refresh
- Authenticated request layer with one refresh-and-retry on 401
- Playback, device, playlist and profile calls
"""

import logging
import re
import secrets
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import parse_qs

import requests

from ..constants import SPOTIFY_API_BASE, SPOTIFY_SCOPES, SPOTIFY_TOKEN_URL
from ..errors import (ApiError, AuthError, AuthFailedError, AuthRequiredError,
                      TransportError)
from ..utils.kv_store import KeyValueStore
from ..utils.token_store import TokenStore
from .http import get_http_session
from . import pkce

__all__ = ["SpotifyClient", "extract_playlist_id"]

logger = logging.getLogger('spotify')
auth_logger = logging.getLogger('spotify.auth')

_PLAYLIST_ID_RE = re.compile(r'playlist[/:]([A-Za-z0-9]+)')
_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def extract_playlist_id(url: Any) -> Optional[str]:
    """Pull the playlist id out of a share URL or ``spotify:playlist:`` URI.

    Returns None when the input is not a string or holds no playlist id.
    """
    if not isinstance(url, str):
        return None
    match = _PLAYLIST_ID_RE.search(url)
    return match.group(1) if match else None


class _RefreshFlight:
    """One in-flight token refresh shared by every concurrent caller."""

    __slots__ = ("event", "result")

    def __init__(self) -> None:
        self.event = threading.Event()
        self.result = False


class SpotifyClient:
    """Spotify Web API client bound to one user's credentials.

    Args:
        client_id: Spotify application client id
        redirect_uri: Registered OAuth redirect URI
        storage: Durable key-value store for tokens and PKCE values
        scopes: OAuth scopes requested during authorization
        clock: Wall clock returning epoch seconds
        session: Object with ``request(method, url, **kwargs)``; defaults to
            the shared ``requests`` session
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        storage: KeyValueStore,
        *,
        scopes: Iterable[str] = SPOTIFY_SCOPES,
        clock: Callable[[], float] = time.time,
        session: Optional[Any] = None,
    ):
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scopes = tuple(scopes)
        self._clock = clock
        self._session = session
        self.tokens = TokenStore(storage, clock)
        self._flight_lock = threading.Lock()
        self._flight: Optional[_RefreshFlight] = None

    @property
    def http(self) -> Any:
        if self._session is None:
            self._session = get_http_session()
        return self._session

    # 🔑 Authorization (PKCE)
    def authorize(self) -> str:
        """Start an authorization attempt.

        Generates and persists a fresh code verifier and state.

        Returns:
            str: Spotify authorize URL the user agent must be redirected to
        """
        verifier = pkce.generate_code_verifier()
        state = pkce.generate_state()
        self.tokens.begin_pkce(verifier, state)
        auth_logger.info("auth.authorize.start")
        return pkce.build_authorization_url(
            self.client_id,
            self.redirect_uri,
            self.scopes,
            pkce.generate_code_challenge(verifier),
            state,
        )

    build_authorization_url = authorize

    def complete_authorization(self, params: Mapping[str, Any]) -> bool:
        """Exchange the callback ``code`` for tokens.

        Raises:
            AuthError: Provider error, missing code/state or state mismatch.
                No token is persisted and the pending attempt is discarded.

        Returns:
            bool: True when tokens were stored, False if the exchange failed
        """
        pending = self.tokens.session
        error = params.get("error")
        code = params.get("code")
        state = params.get("state")

        if error:
            self.tokens.clear_pkce()
            auth_logger.warning("auth.callback.denied", extra={"error": str(error)})
            raise AuthError(f"Authorization denied: {error}")

        if not code or not state or not pending.state or not secrets.compare_digest(str(state), pending.state):
            self.tokens.clear_pkce()
            auth_logger.warning(
                "auth.callback.rejected",
                extra={"has_code": bool(code), "has_state": bool(state)},
            )
            raise AuthError("Invalid authorization callback")

        if not pending.code_verifier:
            self.tokens.clear_pkce()
            raise AuthError("No code verifier for this authorization attempt")

        data = {
            "client_id": self.client_id,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": pending.code_verifier,
        }
        # Authorization codes are single use
        self.tokens.clear_pkce()

        try:
            response = self.http.request("POST", SPOTIFY_TOKEN_URL, data=data, headers=_FORM_HEADERS)
        except requests.RequestException as exc:
            auth_logger.error("auth.exchange.request_error", extra={"error": exc.__class__.__name__})
            return False

        if not 200 <= response.status_code < 300:
            auth_logger.error("auth.exchange.http_error", extra={"status": response.status_code})
            return False

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as exc:
            auth_logger.error("auth.exchange.parse_error", extra={"cause": str(exc)})
            return False

        self.tokens.save_tokens(access_token, expires_in, payload.get("refresh_token"))
        auth_logger.info("auth.exchange.ok", extra={"expires_in": expires_in})
        return True

    def handle_callback(self, query_string: str) -> bool:
        """``complete_authorization`` for a raw callback query string."""
        parsed = parse_qs(query_string.lstrip("?"), keep_blank_values=False)
        return self.complete_authorization({key: values[0] for key, values in parsed.items() if values})

    # 🎟️ Token lifecycle
    def ensure_valid_token(self) -> bool:
        """True if a usable access token is present, refreshing near expiry."""
        session = self.tokens.session
        if not session.access_token:
            return False
        if session.needs_refresh(self._clock()):
            auth_logger.info("token.refresh.prewarm")
            return self.refresh_access_token(stale_token=session.access_token)
        return True

    def refresh_access_token(self, stale_token: Optional[str] = None) -> bool:
        """Refresh the access token.

        Concurrent callers share one in-flight refresh and its result. A
        caller passing ``stale_token`` returns True without a network call if
        that token has already been replaced.

        Any failure logs out.
        """
        with self._flight_lock:
            flight = self._flight
            leader = flight is None
            if leader:
                current = self.tokens.session.access_token
                if stale_token is not None and current and current != stale_token:
                    return True
                flight = self._flight = _RefreshFlight()

        if not leader:
            flight.event.wait()
            return flight.result

        try:
            flight.result = self._refresh_once()
        finally:
            with self._flight_lock:
                self._flight = None
            flight.event.set()
        return flight.result

    def _refresh_once(self) -> bool:
        refresh_token = self.tokens.session.refresh_token
        if not refresh_token:
            auth_logger.warning("token.refresh.no_refresh_token")
            self.logout()
            return False

        start = time.perf_counter()
        try:
            response = self.http.request(
                "POST",
                SPOTIFY_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
                headers=_FORM_HEADERS,
            )
        except requests.RequestException as exc:
            auth_logger.error("token.refresh.request_error", extra={"error": exc.__class__.__name__})
            self.logout()
            return False

        if not 200 <= response.status_code < 300:
            auth_logger.error("token.refresh.http_error", extra={"status": response.status_code})
            self.logout()
            return False

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as exc:
            auth_logger.error("token.refresh.parse_error", extra={"cause": str(exc)})
            self.logout()
            return False

        self.tokens.save_tokens(access_token, expires_in, payload.get("refresh_token"))
        auth_logger.info(
            "token.refresh.ok",
            extra={
                "elapsed": round(time.perf_counter() - start, 3),
                "rotated": bool(payload.get("refresh_token")),
            },
        )
        return True

    def is_authenticated(self) -> bool:
        return self.tokens.session.is_valid(self._clock())

    def has_credentials(self) -> bool:
        """True while logged in, even if the access token needs a refresh."""
        return bool(self.tokens.session.access_token)

    def logout(self) -> None:
        """Forget all credentials; safe to call repeatedly."""
        had_token = bool(self.tokens.session.access_token)
        self.tokens.clear()
        if had_token:
            auth_logger.info("auth.logout")

    def auth_snapshot(self) -> Dict[str, Any]:
        snapshot = self.tokens.snapshot()
        snapshot["authenticated"] = snapshot["is_valid"]
        return snapshot

    # 🌐 Request layer
    def _send(
        self,
        method: str,
        endpoint: str,
        token: str,
        params: Optional[Dict[str, Any]],
        json: Optional[Dict[str, Any]],
    ) -> Any:
        url = f"{SPOTIFY_API_BASE}{endpoint}"
        start = time.perf_counter()
        try:
            return self.http.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                params=params,
                json=json,
            )
        except requests.RequestException as exc:
            logger.warning(
                "spotify.request.error",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "elapsed": round(time.perf_counter() - start, 3),
                    "error": exc.__class__.__name__,
                },
            )
            raise TransportError(f"{method} {endpoint} failed: {exc.__class__.__name__}") from exc

    @staticmethod
    def _parse(response: Any) -> Any:
        status = response.status_code
        if not 200 <= status < 300:
            message = f"API request failed: {status}"
            try:
                body = response.json()
                provider_message = (body.get("error") or {}).get("message") if isinstance(body, dict) else None
                if provider_message:
                    message = provider_message
            except (ValueError, AttributeError):
                pass
            raise ApiError(status, message)

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(status, "Malformed JSON response") from exc

    def api_request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Perform an authenticated Web API call.

        Args:
            endpoint: Path below ``/v1`` (e.g. ``/me/player``)
            method: HTTP method

        Returns:
            Parsed JSON body, or None for 204/empty responses

        Raises:
            AuthRequiredError: No valid token (no request is sent)
            AuthFailedError: 401 that a refresh could not fix (logged out)
            ApiError: Any other non-2xx response
            TransportError: Network failure
        """
        method = method.upper()
        if not self.ensure_valid_token():
            raise AuthRequiredError("Authentication required")
        token = self.tokens.session.access_token
        if not token:
            raise AuthRequiredError("Authentication required")

        response = self._send(method, endpoint, token, params, json)
        if response.status_code == 401:
            logger.info("spotify.request.unauthorized", extra={"endpoint": endpoint})
            if not self.refresh_access_token(stale_token=token):
                raise AuthFailedError("Authentication failed")
            token = self.tokens.session.access_token
            if not token:
                raise AuthFailedError("Authentication failed")
            response = self._send(method, endpoint, token, params, json)
            if response.status_code == 401:
                self.logout()
                raise AuthFailedError("Authentication failed")

        return self._parse(response)

    # 🎵 Playback
    def get_current_playback(self) -> Optional[Dict[str, Any]]:
        """Current playback state, or None when nothing is active."""
        try:
            return self.api_request("/me/player")
        except ApiError as exc:
            if exc.status_code == 404:
                return None
            raise

    def get_devices(self) -> List[Dict[str, Any]]:
        data = self.api_request("/me/player/devices")
        return list((data or {}).get("devices") or [])

    def play(
        self,
        device_id: Optional[str] = None,
        context_uri: Optional[str] = None,
        track_uris: Optional[List[str]] = None,
    ) -> None:
        body: Dict[str, Any] = {}
        if context_uri:
            body["context_uri"] = context_uri
        if track_uris:
            body["uris"] = list(track_uris)
        params = {"device_id": device_id} if device_id else None
        self.api_request("/me/player/play", "PUT", params=params, json=body)

    def pause(self, device_id: Optional[str] = None) -> None:
        params = {"device_id": device_id} if device_id else None
        self.api_request("/me/player/pause", "PUT", params=params)

    def set_volume(self, percent: int, device_id: Optional[str] = None) -> None:
        """Set the volume; the value is passed through unchanged."""
        params: Dict[str, Any] = {"volume_percent": percent}
        if device_id:
            params["device_id"] = device_id
        self.api_request("/me/player/volume", "PUT", params=params)

    # 📚 Library
    def get_playlist(self, playlist_id: str) -> Dict[str, Any]:
        return self.api_request(f"/playlists/{playlist_id}")

    def get_user_playlists(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api_request("/me/playlists", params={"limit": limit, "offset": offset})

    def get_user_profile(self) -> Dict[str, Any]:
        return self.api_request("/me")

    extract_playlist_id = staticmethod(extract_playlist_id)
