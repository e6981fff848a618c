"""Shared pytest fixtures for the Pomofy test suite."""

from __future__ import annotations

import json
import os
import threading
from typing import Any, Callable, Dict, List, Tuple, Union

# Keep the suite from writing log files into the home directory
os.environ.setdefault("POMOFY_FILE_LOGS", "0")

import pytest

from pomofy.api.spotify import SpotifyClient
from pomofy.app import create_app
from pomofy.config_schema import AppConfig
from pomofy.constants import SPOTIFY_API_BASE
from pomofy.core.ticker import ManualClock
from pomofy.services.service_manager import ServiceManager
from pomofy.utils.kv_store import MemoryStore

CLIENT_ID = "test-client"
REDIRECT_URI = "http://127.0.0.1:5001/callback"
START_TIME = 1_700_000_000.0


class FakeResponse:
    """Just enough of ``requests.Response`` for the Spotify client."""

    def __init__(self, status_code: int = 200, payload: Any = None, body: bytes = None):
        self.status_code = status_code
        self._payload = payload
        if body is not None:
            self.content = body
        elif payload is not None:
            self.content = json.dumps(payload).encode("utf-8")
        else:
            self.content = b""
        self.text = self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.content.decode("utf-8"))
        return self._payload


Handler = Callable[..., FakeResponse]
Route = Union[Handler, List[FakeResponse]]


class FakeSession:
    """Records requests and answers them from canned responses or handlers.

    A queued list is consumed in order; its last response keeps answering.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._routes: Dict[Tuple[str, str], Route] = {}
        self._lock = threading.Lock()

    def add(self, method: str, url: str, *responses: FakeResponse) -> None:
        self._routes[(method.upper(), url)] = list(responses)

    def on(self, method: str, url: str, handler: Handler) -> None:
        self._routes[(method.upper(), url)] = handler

    def api(self, method: str, endpoint: str, *responses: FakeResponse) -> None:
        self.add(method, f"{SPOTIFY_API_BASE}{endpoint}", *responses)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        with self._lock:
            self.calls.append((method.upper(), url, kwargs))
            route = self._routes.get((method.upper(), url))
            if isinstance(route, list) and route:
                response = route.pop(0) if len(route) > 1 else route[0]
                return response
        if route is None or isinstance(route, list):
            raise AssertionError(f"Unexpected request: {method} {url}")
        return route(method, url, **kwargs)

    def count(self, method: str, url: str) -> int:
        with self._lock:
            return sum(1 for m, u, _ in self.calls if m == method.upper() and u == url)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_TIME)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def http() -> FakeSession:
    return FakeSession()


@pytest.fixture
def spotify_client(store, clock, http) -> SpotifyClient:
    return SpotifyClient(CLIENT_ID, REDIRECT_URI, store, clock=clock, session=http)


@pytest.fixture
def logged_in_client(spotify_client) -> SpotifyClient:
    """Client holding a token that is valid for another hour."""
    spotify_client.tokens.save_tokens("access-1", 3600, "refresh-1")
    return spotify_client


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(client_id=CLIENT_ID, redirect_uri=REDIRECT_URI, data_dir=tmp_path, encrypt_tokens=False)


@pytest.fixture
def service_manager(app_config, store, http, clock):
    manager = ServiceManager(
        app_config,
        storage=store,
        http_session=http,
        clock=clock,
        monotonic=ManualClock(0.0),
    )
    yield manager
    manager.shutdown()


@pytest.fixture
def app(app_config, service_manager):
    flask_app = create_app(app_config, service_manager=service_manager)
    flask_app.config.update({"TESTING": True})
    return flask_app


@pytest.fixture
def client(app):
    """Provide a fresh Flask test client for each test."""
    with app.test_client() as test_client:
        yield test_client
