"""
🏠 Main Routes Blueprint
Handles the dashboard and health endpoints.
"""

from __future__ import annotations

import logging

from flask import Blueprint

from ..version import VERSION, get_app_info
from .helpers import (api_error_handler, api_response, get_service,
                      get_service_manager)

main_bp = Blueprint("main", __name__)
logger = logging.getLogger(__name__)


@main_bp.route("/")
@api_error_handler
def index():
    """Dashboard: timer state, auth presence, playback snapshot, bindings."""
    timer_service = get_service("timer")
    spotify_service = get_service("spotify")

    auth = spotify_service.get_authentication_status().data or {}
    playback = None
    if auth.get("authenticated") or auth.get("has_access_token"):
        playback_result = spotify_service.get_playback_status()
        playback = playback_result.data if playback_result.success else None

    return api_response(True, data={
        "app": get_app_info(),
        "version": VERSION,
        "timer": timer_service.get_status().data,
        "spotify": auth,
        "playback": playback,
        "playlist_bindings": spotify_service.get_playlist_bindings().data,
    })


@main_bp.route("/healthz")
@api_error_handler
def healthz():
    """Liveness and per-service health."""
    result = get_service_manager().health_check_all()
    data = dict(result.data or {})
    data["version"] = VERSION
    return api_response(True, data=data, message=result.message or "")
