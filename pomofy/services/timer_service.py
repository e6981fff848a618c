"""
⏱️ Timer Service - Business Logic for the Interval Engine
========================================================

Forwards UI intents (start/pause/reset/skip/settings) to the engine and keeps
the user's timer settings in durable storage.
"""

from typing import Any, Dict

from . import BaseService, ServiceResult
from ..config_schema import validate_timer_settings
from ..constants import (KEY_LONG_BREAK_DURATION, KEY_LONG_BREAK_INTERVAL,
                         KEY_SHORT_BREAK_DURATION, KEY_WORK_DURATION)
from ..core.interval_engine import IntervalEngine
from ..errors import ConfigError
from ..utils.kv_store import KeyValueStore
from ..utils.validation import validate_timer_form

SETTINGS_KEYS = {
    "work_minutes": KEY_WORK_DURATION,
    "short_break_minutes": KEY_SHORT_BREAK_DURATION,
    "long_break_minutes": KEY_LONG_BREAK_DURATION,
    "long_break_interval": KEY_LONG_BREAK_INTERVAL,
}


class TimerService(BaseService):
    """Service wrapping the interval engine."""

    def __init__(self, engine: IntervalEngine, storage: KeyValueStore):
        super().__init__("timer")
        self.engine = engine
        self._storage = storage

    def initialize(self) -> ServiceResult:
        """Apply persisted settings; corrupt values fall back to defaults."""
        raw = {field: self._storage.get(key) for field, key in SETTINGS_KEYS.items()}
        settings, warnings = validate_timer_settings(raw)
        for warning in warnings:
            self.logger.warning(f"⚠️ {warning}")

        self.engine.set_durations(
            settings.work_minutes,
            settings.short_break_minutes,
            settings.long_break_minutes,
        )
        self.engine.set_long_break_interval(settings.long_break_interval)
        self.engine.reset()
        return super().initialize()

    def _settings_dict(self) -> Dict[str, int]:
        work, short_break, long_break, interval = self.engine.settings()
        return {
            "work": work,
            "short_break": short_break,
            "long_break": long_break,
            "long_break_interval": interval,
        }

    def _state_payload(self) -> Dict[str, Any]:
        payload = self.engine.snapshot().to_dict()
        payload["settings"] = self._settings_dict()
        payload["auto_continue"] = self.engine.auto_continue
        return payload

    def get_status(self) -> ServiceResult:
        return self._success_result(data=self._state_payload())

    def start(self) -> ServiceResult:
        self.engine.start()
        return self._success_result(data=self._state_payload(), message="Timer started")

    def pause(self) -> ServiceResult:
        self.engine.pause()
        return self._success_result(data=self._state_payload(), message="Timer paused")

    def reset(self) -> ServiceResult:
        self.engine.reset()
        return self._success_result(data=self._state_payload(), message="Timer reset")

    def skip(self) -> ServiceResult:
        event = self.engine.skip()
        data = self._state_payload()
        data["transition"] = event.to_dict()
        return self._success_result(data=data, message=f"Skipped to {event.to_kind.value}")

    def update_settings(self, form: Dict[str, Any]) -> ServiceResult:
        """Validate, apply and persist durations and optional cadence.

        Args:
            form: ``work``, ``short_break``, ``long_break`` (minutes) and
                optional ``long_break_interval``
        """
        try:
            values = validate_timer_form(form)
            self.engine.set_durations(values["work"], values["short_break"], values["long_break"])
            if "long_break_interval" in values:
                self.engine.set_long_break_interval(values["long_break_interval"])
        except ConfigError as exc:
            return self._handle_error(exc, "update_settings")

        work, short_break, long_break, interval = self.engine.settings()
        self._storage.update({
            KEY_WORK_DURATION: str(work),
            KEY_SHORT_BREAK_DURATION: str(short_break),
            KEY_LONG_BREAK_DURATION: str(long_break),
            KEY_LONG_BREAK_INTERVAL: str(interval),
        })
        self.logger.info(f"💾 Timer settings saved: {work}/{short_break}/{long_break} every {interval}")
        return self._success_result(data=self._state_payload(), message="Timer settings saved")

    def health_check(self) -> ServiceResult:
        base_health = super().health_check()
        if not base_health.success:
            return base_health
        state = self.engine.snapshot()
        return self._success_result(data={
            "service": "timer",
            "status": "healthy",
            "kind": state.session.kind.value,
            "is_running": state.is_running,
        })
