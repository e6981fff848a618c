"""
Pydantic models for Pomofy configuration validation

``AppConfig`` describes the deployment settings read from the environment.
``TimerSettings`` describes the user preferences persisted in the key-value
store (durations and long-break cadence).
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (DEFAULT_LONG_BREAK_INTERVAL, DEFAULT_LONG_BREAK_MINUTES,
                        DEFAULT_PLAYBACK_POLL_SECONDS,
                        DEFAULT_SHORT_BREAK_MINUTES,
                        DEFAULT_TICK_RESOLUTION_SECONDS, DEFAULT_WORK_MINUTES,
                        MAX_DURATION_MINUTES, MAX_LONG_BREAK_INTERVAL,
                        MIN_DURATION_MINUTES, MIN_LONG_BREAK_INTERVAL)


class AppConfig(BaseModel):
    """Complete Pomofy deployment configuration.

    Example:
        >>> cfg = AppConfig(client_id="abc", debug=True)
        >>> cfg.redirect_uri
        'http://127.0.0.1:5001/callback'
    """

    # Spotify application
    client_id: Optional[str] = Field(default=None, description="Spotify application client id (PKCE, no secret)")
    redirect_uri: str = Field(default="http://127.0.0.1:5001/callback", description="Registered OAuth redirect URI")

    # Runtime settings
    environment: str = Field(default="development", description="Runtime environment (development/production)")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Optional[str] = Field(default=None, pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$", description="Logging level; None keeps the environment default")
    host: str = Field(default="127.0.0.1", description="Bind address for the HTTP shell")
    port: int = Field(default=5001, ge=1, le=65535, description="Bind port for the HTTP shell")
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".pomofy", description="Durable storage directory")
    secret_key: Optional[str] = Field(default=None, description="Flask session secret")

    # Timing
    tick_resolution: float = Field(default=DEFAULT_TICK_RESOLUTION_SECONDS, gt=0, le=1.0, description="Tick source wake-up interval in seconds")
    playback_poll_seconds: float = Field(default=DEFAULT_PLAYBACK_POLL_SECONDS, ge=1.0, le=300.0, description="Playback snapshot poll interval")

    # Behaviour
    auto_continue: bool = Field(default=False, description="Keep running across session boundaries")
    pause_music_with_timer: bool = Field(default=True, description="Pause playback when the timer is paused")
    encrypt_tokens: bool = Field(default=True, description="Encrypt tokens at rest")

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @field_validator('client_id')
    @classmethod
    def blank_client_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator('data_dir')
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @property
    def spotify_configured(self) -> bool:
        return bool(self.client_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary without secrets."""
        return self.model_dump(mode='json', exclude={'secret_key'})


class TimerSettings(BaseModel):
    """User timer preferences (minutes)."""

    work_minutes: int = Field(default=DEFAULT_WORK_MINUTES, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    short_break_minutes: int = Field(default=DEFAULT_SHORT_BREAK_MINUTES, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    long_break_minutes: int = Field(default=DEFAULT_LONG_BREAK_MINUTES, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    long_break_interval: int = Field(default=DEFAULT_LONG_BREAK_INTERVAL, ge=MIN_LONG_BREAK_INTERVAL, le=MAX_LONG_BREAK_INTERVAL)


def validate_timer_settings(raw: Dict[str, Any]) -> tuple[TimerSettings, list[str]]:
    """Validate persisted timer settings, dropping invalid fields.

    Args:
        raw: Field name to raw value mapping (values may be strings)

    Returns:
        Tuple of (settings, warnings). Invalid fields fall back to defaults
        and produce one warning each.
    """
    warnings: list[str] = []
    clean = {k: v for k, v in raw.items() if v is not None}
    try:
        return TimerSettings(**clean), warnings
    except ValidationError as exc:
        bad_fields = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
        for name in sorted(bad_fields):
            warnings.append(f"Invalid {name}={clean.get(name)!r}, using default")
            clean.pop(name, None)
    return TimerSettings(**clean), warnings
