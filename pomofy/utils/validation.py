#!/usr/bin/env python3
"""
🛡️ Input Validation Module for Pomofy
Validates user input arriving from the HTTP shell:
- Session durations (1-180 minutes)
- Long-break cadence (1-12)
- Volume levels
- Session kinds
- Playlist references (share URL, URI or bare id)
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..constants import (MAX_DURATION_MINUTES, MAX_LONG_BREAK_INTERVAL,
                         MIN_DURATION_MINUTES, MIN_LONG_BREAK_INTERVAL)
from ..api.spotify import extract_playlist_id
from ..errors import ConfigError


@dataclass
class ValidationResult:
    """Result of input validation with value and error details."""
    is_valid: bool
    value: Any = None
    error: str = ""
    field_name: str = ""


class InputValidator:
    """Centralized input validation for all Pomofy user inputs."""

    MIN_DURATION = MIN_DURATION_MINUTES
    MAX_DURATION = MAX_DURATION_MINUTES
    MIN_INTERVAL = MIN_LONG_BREAK_INTERVAL
    MAX_INTERVAL = MAX_LONG_BREAK_INTERVAL
    MAX_URI_LENGTH = 200

    SESSION_KINDS = ("work", "short_break", "long_break")
    PLAYLIST_ID_PATTERN = re.compile(r'^[A-Za-z0-9]{1,64}$')

    @staticmethod
    def _parse_int(value: Union[str, int, float, None]) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None

    @classmethod
    def validate_duration(cls, value: Union[str, int, None], field_name: str = "duration") -> ValidationResult:
        """Validate a session duration in whole minutes.

        Args:
            value: Duration value to validate
            field_name: Name of the field for error messages

        Returns:
            ValidationResult: Validation result with cleaned value or error
        """
        if value is None or value == "":
            return ValidationResult(False, None, f"{field_name} is required", field_name)

        duration = cls._parse_int(value)
        if duration is None:
            return ValidationResult(
                False, None,
                f"{field_name} must be a whole number between {cls.MIN_DURATION} and {cls.MAX_DURATION}",
                field_name
            )
        if duration < cls.MIN_DURATION or duration > cls.MAX_DURATION:
            return ValidationResult(
                False, None,
                f"{field_name} must be between {cls.MIN_DURATION} and {cls.MAX_DURATION} minutes",
                field_name
            )
        return ValidationResult(True, duration, "", field_name)

    @classmethod
    def validate_long_break_interval(cls, value: Union[str, int, None], field_name: str = "long_break_interval") -> ValidationResult:
        if value is None or value == "":
            return ValidationResult(False, None, f"{field_name} is required", field_name)

        interval = cls._parse_int(value)
        if interval is None or interval < cls.MIN_INTERVAL or interval > cls.MAX_INTERVAL:
            return ValidationResult(
                False, None,
                f"{field_name} must be between {cls.MIN_INTERVAL} and {cls.MAX_INTERVAL}",
                field_name
            )
        return ValidationResult(True, interval, "", field_name)

    @classmethod
    def validate_volume(cls, value: Union[str, int, None], field_name: str = "volume") -> ValidationResult:
        """Validate volume input.

        Only checks that the value is an integer; the range is left to Spotify.
        """
        if value is None or value == "":
            return ValidationResult(False, None, f"{field_name} is required", field_name)

        volume = cls._parse_int(value)
        if volume is None:
            return ValidationResult(False, None, f"{field_name} must be a whole number", field_name)
        return ValidationResult(True, volume, "", field_name)

    @classmethod
    def validate_session_kind(cls, value: Optional[str], field_name: str = "kind") -> ValidationResult:
        if not isinstance(value, str) or value.strip().lower() not in cls.SESSION_KINDS:
            return ValidationResult(
                False, None,
                f"{field_name} must be one of: {', '.join(cls.SESSION_KINDS)}",
                field_name
            )
        return ValidationResult(True, value.strip().lower(), "", field_name)

    @classmethod
    def validate_playlist_reference(cls, value: Optional[str], field_name: str = "playlist") -> ValidationResult:
        """Validate a playlist share URL, ``spotify:playlist:`` URI or bare id.

        An empty value is valid and means "no playlist".

        Returns:
            ValidationResult: ``value`` is the bare playlist id ("" when empty)
        """
        if value is None:
            return ValidationResult(True, "", "", field_name)
        if not isinstance(value, str):
            return ValidationResult(False, None, f"{field_name} must be a string", field_name)

        value = value.strip()
        if not value:
            return ValidationResult(True, "", "", field_name)
        if len(value) > cls.MAX_URI_LENGTH:
            return ValidationResult(
                False, None,
                f"{field_name} is too long (max {cls.MAX_URI_LENGTH} characters)",
                field_name
            )

        playlist_id = extract_playlist_id(value)
        if playlist_id:
            return ValidationResult(True, playlist_id, "", field_name)
        if cls.PLAYLIST_ID_PATTERN.match(value):
            return ValidationResult(True, value, "", field_name)
        return ValidationResult(
            False, None,
            f"{field_name} must be a Spotify playlist link, URI or id",
            field_name
        )


class ValidationError(ConfigError):
    """Raised when user input fails validation."""


def validate_timer_form(form_data: Dict[str, Any]) -> Dict[str, int]:
    """Validate a timer settings form.

    Args:
        form_data: Mapping with ``work``, ``short_break``, ``long_break`` and
            optionally ``long_break_interval``

    Returns:
        Dict[str, int]: Validated values keyed like the form

    Raises:
        ValidationError: If any validation fails
    """
    validated: Dict[str, int] = {}

    for field in ("work", "short_break", "long_break"):
        result = InputValidator.validate_duration(form_data.get(field), field)
        if not result.is_valid:
            raise ValidationError(result.field_name, result.error)
        validated[field] = result.value

    interval = form_data.get("long_break_interval")
    if interval not in (None, ""):
        result = InputValidator.validate_long_break_interval(interval)
        if not result.is_valid:
            raise ValidationError(result.field_name, result.error)
        validated["long_break_interval"] = result.value

    return validated


def validate_volume_only(form_data: Dict[str, Any]) -> int:
    """Validate standalone volume input.

    Raises:
        ValidationError: If validation fails
    """
    volume_result = InputValidator.validate_volume(form_data.get('volume'), 'volume')
    if not volume_result.is_valid:
        raise ValidationError(volume_result.field_name, volume_result.error)
    return volume_result.value
