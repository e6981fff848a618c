"""
🔑 Auth Routes Blueprint
Spotify PKCE login, callback and logout. The redirect mechanics live here;
the client only builds URLs and exchanges codes.
"""

import logging

from flask import Blueprint, redirect, request

from .helpers import (api_error_handler, api_response, get_service,
                      service_response)

auth_bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)


@auth_bp.route("/login", methods=["GET"])
@api_error_handler
def login():
    result = get_service("spotify").begin_authorization()
    if not result.success:
        return service_response(result)
    return redirect(result.data["authorize_url"], code=302)


@auth_bp.route("/callback", methods=["GET"])
@api_error_handler
def callback():
    """Finish authorization, then redirect to ``/`` so the code leaves the URL."""
    result = get_service("spotify").complete_authorization(request.args.to_dict())
    if not result.success:
        logger.warning("Spotify callback failed: %s", result.error_code)
        return service_response(result)
    return redirect("/", code=302)


@auth_bp.route("/logout", methods=["POST"])
@api_error_handler
def logout():
    return service_response(get_service("spotify").logout())


@auth_bp.route("/api/spotify/auth-status", methods=["GET"])
@api_error_handler
def auth_status():
    result = get_service("spotify").get_authentication_status()
    return api_response(True, data=result.data)
