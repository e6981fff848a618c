"""PKCE (RFC 7636) helpers for the Spotify authorization code flow."""

import base64
import hashlib
import secrets
import string
from typing import Iterable
from urllib.parse import urlencode

from ..constants import CODE_VERIFIER_LENGTH, SPOTIFY_AUTHORIZE_URL, STATE_LENGTH

# RFC 3986 unreserved characters
UNRESERVED_ALPHABET = string.ascii_letters + string.digits + "-._~"
STATE_ALPHABET = string.ascii_letters + string.digits


def _random_string(length: int, alphabet: str) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_code_verifier(length: int = CODE_VERIFIER_LENGTH) -> str:
    if not 43 <= length <= 128:
        raise ValueError("code verifier length must be between 43 and 128")
    return _random_string(length, UNRESERVED_ALPHABET)


def generate_code_challenge(verifier: str) -> str:
    """base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state(length: int = STATE_LENGTH) -> str:
    return _random_string(length, STATE_ALPHABET)


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str],
    code_challenge: str,
    state: str,
    authorize_url: str = SPOTIFY_AUTHORIZE_URL,
) -> str:
    query = urlencode({
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes),
        "code_challenge_method": "S256",
        "code_challenge": code_challenge,
        "state": state,
    })
    return f"{authorize_url}?{query}"
