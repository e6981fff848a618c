"""
Centralized configuration management for Pomofy
Reads ``.env`` files and environment variables into a validated ``AppConfig``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .config_schema import AppConfig

logger = logging.getLogger(__name__)

# env var -> AppConfig field
ENV_FIELDS: Dict[str, str] = {
    "SPOTIFY_CLIENT_ID": "client_id",
    "SPOTIFY_REDIRECT_URI": "redirect_uri",
    "POMOFY_ENV": "environment",
    "POMOFY_DEBUG": "debug",
    "POMOFY_LOG_LEVEL": "log_level",
    "POMOFY_HOST": "host",
    "PORT": "port",
    "POMOFY_DATA_DIR": "data_dir",
    "FLASK_SECRET_KEY": "secret_key",
    "POMOFY_TICK_RESOLUTION": "tick_resolution",
    "POMOFY_PLAYBACK_POLL_SECONDS": "playback_poll_seconds",
    "POMOFY_AUTO_CONTINUE": "auto_continue",
    "POMOFY_PAUSE_MUSIC_WITH_TIMER": "pause_music_with_timer",
    "POMOFY_ENCRYPT_TOKENS": "encrypt_tokens",
}


def _get_app_config_dir() -> Path:
    """Get application configuration directory path-agnostically"""
    app_name = os.getenv("POMOFY_APP_NAME", "pomofy")
    return Path.home() / f".{app_name}"


def load_env_files() -> None:
    """Load ``~/.pomofy/.env`` and then the project-root ``.env``."""
    env_path = _get_app_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    # Also allow project-root .env to supply overrides (common in dev setups)
    load_dotenv()


def build_config(values: Mapping[str, Any]) -> AppConfig:
    """Validate raw values into an ``AppConfig``.

    Invalid fields are logged and replaced by their defaults instead of
    aborting start-up.
    """
    clean = {k: v for k, v in values.items() if v not in (None, "")}
    try:
        return AppConfig(**clean)
    except ValidationError as exc:
        for err in exc.errors():
            loc = err.get("loc") or ("?",)
            field = str(loc[0])
            logger.warning(
                "Invalid configuration value for %s=%r (%s) - falling back to default",
                field, clean.get(field), err.get("msg"),
            )
            clean.pop(field, None)
    return AppConfig(**clean)


def load_app_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load configuration from the environment.

    Args:
        environ: Mapping to read instead of ``os.environ``; ``.env`` files are
            only loaded when reading the real process environment.

    Returns:
        AppConfig: Validated configuration
    """
    if environ is None:
        load_env_files()
        environ = os.environ

    values = {field: environ.get(env_name) for env_name, field in ENV_FIELDS.items()}
    config = build_config(values)
    logger.debug(
        "Configuration loaded",
        extra={"environment": config.environment, "spotify_configured": config.spotify_configured},
    )
    return config
