"""
🔧 Service Manager - Central Service Coordination
===============================================

Builds storage, the Spotify client, the interval engine and its tick source,
wires engine events to the Spotify service and owns the background tasks.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from . import BaseService, ServiceResult
from ..api.spotify import SpotifyClient
from ..config_schema import AppConfig
from ..constants import SENSITIVE_KEYS
from ..core.interval_engine import (SESSION_CHANGED, SESSION_PAUSED,
                                    SESSION_STARTED, IntervalEngine)
from ..core.playback_poller import PlaybackPoller
from ..core.ticker import CountdownTicker, PeriodicTask
from ..utils.kv_store import JsonFileStore, KeyValueStore
from ..utils.logger import log_shutdown
from ..utils.token_encryption import TokenCipher
from .spotify_service import SpotifyService
from .timer_service import TimerService

STORE_FILENAME = "pomofy.json"
KEY_FILENAME = ".token_key"


def build_storage(config: AppConfig) -> KeyValueStore:
    """JSON store in the data directory, encrypting tokens when enabled."""
    cipher = TokenCipher(config.data_dir / KEY_FILENAME) if config.encrypt_tokens else None
    return JsonFileStore(
        config.data_dir / STORE_FILENAME,
        cipher=cipher,
        encrypted_keys=SENSITIVE_KEYS,
    )


class ServiceManager:
    """Central manager for all application services.

    Args:
        config: Validated application configuration
        storage: Key-value store; defaults to the JSON file in ``data_dir``
        http_session: Object with ``request(...)`` used by the Spotify client
        clock: Wall clock (token expiry, snapshot ages)
        monotonic: Clock driving the countdown
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        storage: Optional[KeyValueStore] = None,
        http_session: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.logger = logging.getLogger("service_manager")
        self.config = config
        self.storage = storage if storage is not None else build_storage(config)

        self.client: Optional[SpotifyClient] = None
        self.poller: Optional[PlaybackPoller] = None
        if config.spotify_configured:
            self.client = SpotifyClient(
                config.client_id,
                config.redirect_uri,
                self.storage,
                clock=clock,
                session=http_session,
            )
            self.poller = PlaybackPoller(self.client, config.playback_poll_seconds, clock=clock)
        else:
            self.logger.warning("⚠️ SPOTIFY_CLIENT_ID not set - Spotify features disabled")

        self.engine = IntervalEngine(auto_continue=config.auto_continue)
        self.ticker = CountdownTicker(self.engine, clock=monotonic)
        self._tick_task: PeriodicTask = self.ticker.create_task(config.tick_resolution)

        self.timer = TimerService(self.engine, self.storage)
        self.spotify = SpotifyService(config, self.storage, self.client, self.poller)

        # Service registry
        self.services: Dict[str, BaseService] = {
            "timer": self.timer,
            "spotify": self.spotify,
        }

        self._initialize_all()
        self._wire_engine_events()

    def _initialize_all(self) -> None:
        """Initialize all services."""
        self.logger.info("🚀 Initializing service manager...")
        for name, service in self.services.items():
            result = service.initialize()
            if result.success:
                self.logger.info(f"✅ {name} service initialized")
            else:
                self.logger.error(f"❌ {name} service initialization failed: {result.message}")
        self.logger.info("🎯 Service manager initialization completed")

    def _wire_engine_events(self) -> None:
        self.engine.add_listener(SESSION_CHANGED, self.spotify.on_session_changed)
        self.engine.add_listener(SESSION_STARTED, self.spotify.on_session_started)
        self.engine.add_listener(SESSION_PAUSED, self.spotify.on_session_paused)

    def start(self) -> None:
        """Start the tick source and the playback poller."""
        self._tick_task.start()
        if self.poller is not None:
            self.poller.start()
        self.logger.info("⏱️ Background tasks started")

    def shutdown(self) -> None:
        self._tick_task.stop()
        if self.poller is not None:
            self.poller.stop()
        self.spotify.shutdown()
        log_shutdown(self.logger, "service manager")

    def get_service(self, name: str) -> Optional[Any]:
        """Get a specific service by name."""
        return self.services.get(name)

    def health_check_all(self) -> ServiceResult:
        """Perform health check on all services."""
        results = {}
        overall_healthy = True
        for name, service in self.services.items():
            health = service.health_check()
            status_payload = health.data if isinstance(health.data, dict) else {"error": health.message}
            service_healthy = health.success and status_payload.get("status") != "degraded"
            results[name] = {"healthy": service_healthy, "status": status_payload}
            overall_healthy = overall_healthy and service_healthy

        return ServiceResult(
            success=True,
            data={
                "overall_healthy": overall_healthy,
                "services": results,
                "total_services": len(self.services),
                "healthy_services": sum(1 for r in results.values() if r["healthy"])
            },
            message="Health check completed for all services"
        )
