"""
▶️ Spotify Routes Blueprint
Profile, devices, playlists, playback control and playlist bindings.
"""

import logging

from flask import Blueprint, request

from .helpers import (api_error_handler, get_service, request_payload,
                      service_response)

playback_bp = Blueprint("playback", __name__, url_prefix="/api")
logger = logging.getLogger(__name__)


@playback_bp.route("/spotify/profile", methods=["GET"])
@api_error_handler
def profile():
    return service_response(get_service("spotify").get_profile())


@playback_bp.route("/spotify/devices", methods=["GET"])
@api_error_handler
def devices():
    return service_response(get_service("spotify").get_devices())


@playback_bp.route("/spotify/device", methods=["POST"])
@api_error_handler
def select_device():
    payload = request_payload()
    return service_response(get_service("spotify").select_device(payload.get("device_id")))


@playback_bp.route("/spotify/playlists", methods=["GET"])
@api_error_handler
def playlists():
    return service_response(get_service("spotify").get_playlists(
        limit=request.args.get("limit", 20),
        offset=request.args.get("offset", 0),
    ))


@playback_bp.route("/playback", methods=["GET"])
@api_error_handler
def playback_status():
    return service_response(get_service("spotify").get_playback_status())


@playback_bp.route("/playback/<action>", methods=["POST"])
@api_error_handler
def playback_control(action: str):
    """Resume (``play``) or ``pause`` playback."""
    if action == "volume":
        return service_response(get_service("spotify").set_volume(request_payload()))
    return service_response(get_service("spotify").control_playback(action))


@playback_bp.route("/playlist-bindings", methods=["GET"])
@api_error_handler
def get_bindings():
    return service_response(get_service("spotify").get_playlist_bindings())


@playback_bp.route("/playlist-bindings", methods=["POST"])
@api_error_handler
def set_binding():
    payload = request_payload()
    return service_response(
        get_service("spotify").set_playlist_binding(payload.get("kind"), payload.get("playlist"))
    )
