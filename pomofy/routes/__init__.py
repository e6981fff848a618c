"""
Pomofy Route Blueprints
Modular Flask blueprints for better code organization.
"""

from .auth import auth_bp
from .main import main_bp
from .playback import playback_bp
from .timer import timer_bp

__all__ = [
    "auth_bp",
    "main_bp",
    "playback_bp",
    "timer_bp",
]
