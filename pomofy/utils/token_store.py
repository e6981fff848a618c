#!/usr/bin/env python3
"""
🎟️ Spotify token persistence for Pomofy
Keeps the current ``AuthSession`` in memory and mirrors it to the key-value
store so a restart (or the OAuth redirect round-trip) does not lose it.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from ..constants import (KEY_ACCESS_TOKEN, KEY_AUTH_STATE, KEY_CODE_VERIFIER,
                         KEY_REFRESH_TOKEN, KEY_TOKEN_EXPIRY,
                         TOKEN_REFRESH_MARGIN_SECONDS)
from .kv_store import KeyValueStore

logger = logging.getLogger('spotify.auth')


@dataclass(frozen=True)
class AuthSession:
    """Represents the stored Spotify credentials plus transient PKCE values."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: float = 0.0  # Unix timestamp
    code_verifier: Optional[str] = None
    state: Optional[str] = None

    def is_valid(self, now: float) -> bool:
        """Token present and not yet expired."""
        return bool(self.access_token) and now < self.expires_at

    def needs_refresh(self, now: float, margin: float = TOKEN_REFRESH_MARGIN_SECONDS) -> bool:
        """Check if the token expires within ``margin`` seconds."""
        return now >= self.expires_at - margin

    def time_until_expiry(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


class TokenStore:
    """Thread-safe holder of the ``AuthSession`` backed by a ``KeyValueStore``.

    Args:
        storage: Durable store used for persistence
        clock: Wall clock returning epoch seconds
    """

    def __init__(self, storage: KeyValueStore, clock: Callable[[], float] = time.time):
        self._storage = storage
        self._clock = clock
        self._lock = threading.RLock()
        self._session = self._load()

    def _load(self) -> AuthSession:
        raw_expiry = self._storage.get(KEY_TOKEN_EXPIRY)
        try:
            expires_at = float(raw_expiry) if raw_expiry else 0.0
        except ValueError:
            logger.warning("token.load.bad_expiry", extra={"value": raw_expiry})
            expires_at = 0.0

        session = AuthSession(
            access_token=self._storage.get(KEY_ACCESS_TOKEN) or None,
            refresh_token=self._storage.get(KEY_REFRESH_TOKEN) or None,
            expires_at=expires_at,
            code_verifier=self._storage.get(KEY_CODE_VERIFIER) or None,
            state=self._storage.get(KEY_AUTH_STATE) or None,
        )
        if session.access_token:
            logger.debug(
                "token.store.loaded",
                extra={"expires_in": session.time_until_expiry(self._clock())},
            )
        return session

    @property
    def session(self) -> AuthSession:
        with self._lock:
            return self._session

    def now(self) -> float:
        return self._clock()

    def save_tokens(self, access_token: str, expires_in: float, refresh_token: Optional[str] = None) -> AuthSession:
        """Store a fresh access token; keeps the old refresh token unless rotated."""
        with self._lock:
            expires_at = self._clock() + max(0.0, float(expires_in))
            session = replace(
                self._session,
                access_token=access_token,
                refresh_token=refresh_token or self._session.refresh_token,
                expires_at=expires_at,
            )
            # Storage first; memory only changes once the write succeeded
            self._storage.update({
                KEY_ACCESS_TOKEN: access_token,
                KEY_REFRESH_TOKEN: session.refresh_token,
                KEY_TOKEN_EXPIRY: str(expires_at),
            })
            self._session = session
            return session

    def begin_pkce(self, code_verifier: str, state: str) -> None:
        with self._lock:
            self._storage.update({KEY_CODE_VERIFIER: code_verifier, KEY_AUTH_STATE: state})
            self._session = replace(self._session, code_verifier=code_verifier, state=state)

    def clear_pkce(self) -> None:
        with self._lock:
            self._session = replace(self._session, code_verifier=None, state=None)
            self._storage.delete(KEY_CODE_VERIFIER, KEY_AUTH_STATE)

    def clear(self) -> None:
        """Forget everything, in memory and in storage."""
        with self._lock:
            self._session = AuthSession()
            self._storage.delete(
                KEY_ACCESS_TOKEN,
                KEY_REFRESH_TOKEN,
                KEY_TOKEN_EXPIRY,
                KEY_CODE_VERIFIER,
                KEY_AUTH_STATE,
            )

    def snapshot(self) -> Dict[str, Any]:
        """Presence and expiry information without secrets."""
        with self._lock:
            session = self._session
        now = self._clock()
        return {
            "has_access_token": bool(session.access_token),
            "has_refresh_token": bool(session.refresh_token),
            "expires_at": session.expires_at or None,
            "expires_in": session.time_until_expiry(now) if session.access_token else None,
            "is_valid": session.is_valid(now),
            "pending_authorization": bool(session.state),
        }
