"""
Pomofy Main Application
Flask JSON shell over the interval engine and the Spotify client.
"""

import logging
import os
import secrets
import time
from typing import Optional

from flask import Flask, Response, g, request
from flask_compress import Compress

from .config import load_app_config
from .config_schema import AppConfig
from .routes import auth_bp, main_bp, playback_bp, timer_bp
from .routes.errors import register_error_handlers
from .routes.helpers import EXTENSION_KEY
from .services.service_manager import ServiceManager
from .utils.logger import set_log_level, setup_logger, setup_logging
from .version import get_app_info

logger = logging.getLogger("pomofy")


def _configure_compression(app: Flask) -> None:
    app.config.setdefault('COMPRESS_REGISTER', True)
    app.config.setdefault('COMPRESS_ALGORITHM', os.getenv('POMOFY_COMPRESS_ALGO', 'gzip'))
    app.config.setdefault('COMPRESS_MIMETYPES', ('application/json',))
    try:
        app.config['COMPRESS_LEVEL'] = max(1, min(9, int(os.getenv('POMOFY_COMPRESS_LEVEL', '6'))))
    except ValueError:
        app.config['COMPRESS_LEVEL'] = 6
    try:
        app.config['COMPRESS_MIN_SIZE'] = max(256, int(os.getenv('POMOFY_COMPRESS_MIN_BYTES', '1024')))
    except ValueError:
        app.config['COMPRESS_MIN_SIZE'] = 1024
    Compress(app)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    service_manager: Optional[ServiceManager] = None,
    start_background: bool = False,
) -> Flask:
    """Build the Flask application.

    Args:
        config: Configuration; loaded from the environment when omitted
        service_manager: Prebuilt services (tests inject fakes this way)
        start_background: Start the tick source and playback poller

    Returns:
        Flask: Configured application
    """
    setup_logging()
    setup_logger("spotify")
    setup_logger("service")
    setup_logger("service_manager")

    if config is None:
        config = service_manager.config if service_manager is not None else load_app_config()
    if service_manager is None:
        service_manager = ServiceManager(config)
    if config.log_level:
        set_log_level(config.log_level)

    app = Flask(__name__)
    app.secret_key = config.secret_key or secrets.token_hex(32)
    app.json.sort_keys = False
    app.extensions[EXTENSION_KEY] = service_manager

    _configure_compression(app)

    app.register_blueprint(main_bp)
    app.register_blueprint(timer_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(playback_bp)
    register_error_handlers(app)

    @app.before_request
    def _request_started():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response: Response):
        started = getattr(g, 'request_started', None)
        if started is not None:
            logger.debug(
                "http.request",
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "elapsed": round(time.perf_counter() - started, 4),
                },
            )
        return response

    if start_background:
        service_manager.start()

    logger.info(f"🍅 {get_app_info()} ready (spotify configured: {config.spotify_configured})")
    return app


__all__ = ["create_app"]
