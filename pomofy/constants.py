"""Central constants for Pomofy (small, stable primitives only).

Runtime/config dependent values belong in ``config.py``.
"""

# Session durations (minutes)
DEFAULT_WORK_MINUTES: int = 25
DEFAULT_SHORT_BREAK_MINUTES: int = 5
DEFAULT_LONG_BREAK_MINUTES: int = 15
MIN_DURATION_MINUTES: int = 1
MAX_DURATION_MINUTES: int = 180

# Every Nth completed work session is followed by a long break
DEFAULT_LONG_BREAK_INTERVAL: int = 4
MIN_LONG_BREAK_INTERVAL: int = 1
MAX_LONG_BREAK_INTERVAL: int = 12

# Spotify endpoints
SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE = "https://api.spotify.com/v1"

SPOTIFY_SCOPES = (
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "playlist-read-private",
    "playlist-read-collaborative",
)

# Refresh this many seconds before the access token expires
TOKEN_REFRESH_MARGIN_SECONDS: int = 60

# PKCE code verifier length (RFC 7636 allows 43-128)
CODE_VERIFIER_LENGTH: int = 64
STATE_LENGTH: int = 16

DEFAULT_PLAYBACK_POLL_SECONDS: float = 5.0
DEFAULT_TICK_RESOLUTION_SECONDS: float = 0.25

# Durable key-value storage keys
KEY_ACCESS_TOKEN = "spotify_access_token"
KEY_REFRESH_TOKEN = "spotify_refresh_token"
KEY_TOKEN_EXPIRY = "spotify_token_expiry"
KEY_CODE_VERIFIER = "spotify_code_verifier"
KEY_AUTH_STATE = "spotify_state"
KEY_DEVICE_ID = "spotify_device_id"
KEY_WORK_DURATION = "pomodoro_work_duration"
KEY_SHORT_BREAK_DURATION = "pomodoro_short_break_duration"
KEY_LONG_BREAK_DURATION = "pomodoro_long_break_duration"
KEY_LONG_BREAK_INTERVAL = "pomodoro_long_break_interval"
KEY_PLAYLIST_PREFIX = "pomodoro_playlist_"

# Values under these keys are encrypted at rest when a cipher is configured
SENSITIVE_KEYS = frozenset({
    KEY_ACCESS_TOKEN,
    KEY_REFRESH_TOKEN,
    KEY_CODE_VERIFIER,
})
