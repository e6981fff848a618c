"""
Unit tests for the shared HTTP session (retry with backoff, timeouts)

Tests cover:
- Retry on transient errors (429, 500, 502, 503, 504)
- Respect for Retry-After header
- Max retry limits and environment overrides
- Default timeout injection
"""
from unittest.mock import Mock

import pytest
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from pomofy.api import http
from pomofy.api.http import (_with_default_timeout, build_retry_configuration,
                             build_session, default_timeout, get_http_session,
                             set_http_session)


class TestRetryConfiguration:
    """Tests for HTTP retry configuration"""

    def test_retry_config_includes_transient_errors(self):
        retry = build_retry_configuration()
        assert retry.status_forcelist == [429, 500, 502, 503, 504]

    def test_retry_config_respects_retry_after_header(self):
        assert build_retry_configuration().respect_retry_after_header is True

    def test_retry_config_has_bounded_attempts(self):
        retry = build_retry_configuration()
        assert retry.total == 3
        assert retry.connect == 2
        assert retry.read == 2
        assert 0.3 <= retry.backoff_factor <= 2.0

    def test_retry_config_covers_spotify_methods(self):
        retry = build_retry_configuration()
        assert set(retry.allowed_methods) == {"GET", "POST", "PUT", "DELETE"}

    def test_status_errors_are_returned_not_raised(self):
        """The client inspects the final response itself."""
        assert build_retry_configuration().raise_on_status is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("POMOFY_HTTP_RETRY_TOTAL", "5")
        monkeypatch.setenv("POMOFY_HTTP_BACKOFF_FACTOR", "1.5")
        retry = build_retry_configuration()
        assert retry.total == 5
        assert retry.backoff_factor == 1.5

    def test_invalid_override_uses_default(self, monkeypatch):
        monkeypatch.setenv("POMOFY_HTTP_RETRY_TOTAL", "many")
        assert build_retry_configuration().total == 3


class TestSessionConfiguration:
    def test_session_has_retry_adapter_for_https(self):
        session = build_session()
        adapter = session.get_adapter("https://api.spotify.com/v1/me")
        assert isinstance(adapter, HTTPAdapter)
        assert isinstance(adapter.max_retries, Retry)
        assert adapter.max_retries.total == 3

    def test_session_headers(self):
        session = build_session()
        assert session.headers["Accept"] == "application/json"
        assert session.headers["User-Agent"].startswith("Pomofy/")

    def test_default_timeouts(self, monkeypatch):
        monkeypatch.delenv("POMOFY_HTTP_CONNECT_TIMEOUT", raising=False)
        monkeypatch.setenv("POMOFY_HTTP_READ_TIMEOUT", "0.1")
        assert default_timeout() == (4.0, 1.0)


class TestTimeoutInjection:
    def test_missing_timeout_is_filled(self):
        request = Mock(return_value="ok")
        wrapped = _with_default_timeout(request, (4.0, 15.0))

        assert wrapped("GET", "https://example.com") == "ok"
        request.assert_called_once_with("GET", "https://example.com", timeout=(4.0, 15.0))

    def test_explicit_timeout_is_normalised(self):
        request = Mock()
        wrapped = _with_default_timeout(request, (4.0, 15.0))

        wrapped("GET", "https://example.com", timeout=0.1)

        assert request.call_args.kwargs["timeout"] == (0.5, 0.5)

    def test_bad_timeout_falls_back(self):
        request = Mock()
        wrapped = _with_default_timeout(request, (4.0, 15.0))

        wrapped("GET", "https://example.com", timeout=(1, 2, 3))

        assert request.call_args.kwargs["timeout"] == (4.0, 15.0)


class TestSharedSession:
    @pytest.fixture(autouse=True)
    def _reset_shared(self):
        set_http_session(None)
        yield
        set_http_session(None)

    def test_shared_session_is_reused(self):
        assert get_http_session() is get_http_session()

    def test_override(self):
        fake = Mock()
        set_http_session(fake)
        assert http.get_http_session() is fake
