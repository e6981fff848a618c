"""
⏱️ Timer Routes Blueprint
Forwards start/pause/reset/skip/settings intents to the timer service.
"""

import logging

from flask import Blueprint

from .helpers import (api_error_handler, get_service, request_payload,
                      service_response)

timer_bp = Blueprint("timer", __name__, url_prefix="/api/timer")
logger = logging.getLogger(__name__)


@timer_bp.route("", methods=["GET"])
@api_error_handler
def timer_status():
    return service_response(get_service("timer").get_status())


@timer_bp.route("/start", methods=["POST"])
@api_error_handler
def timer_start():
    return service_response(get_service("timer").start())


@timer_bp.route("/pause", methods=["POST"])
@api_error_handler
def timer_pause():
    return service_response(get_service("timer").pause())


@timer_bp.route("/reset", methods=["POST"])
@api_error_handler
def timer_reset():
    return service_response(get_service("timer").reset())


@timer_bp.route("/skip", methods=["POST"])
@api_error_handler
def timer_skip():
    return service_response(get_service("timer").skip())


@timer_bp.route("/settings", methods=["POST"])
@api_error_handler
def timer_settings():
    """Save durations (minutes) and optional long-break cadence."""
    result = get_service("timer").update_settings(request_payload())
    if not result.success:
        logger.info("Timer settings rejected: %s", result.message)
    return service_response(result)
