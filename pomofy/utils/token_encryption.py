#!/usr/bin/env python3
"""
🔐 Token Encryption Module for Pomofy
Encrypts Spotify tokens at rest with Fernet, keyed from a machine-bound
secret so a copied storage file is useless on another host.
"""

import base64
import hashlib
import json
import logging
import os
import platform
import secrets
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "ENC:1:"
KDF_ITERATIONS = 200_000


def _get_machine_id() -> str:
    """Get a stable machine identifier for key derivation.

    Combines /etc/machine-id (Linux), the host name and the user name.
    """
    components = []

    machine_id_path = Path("/etc/machine-id")
    if machine_id_path.exists():
        try:
            components.append(machine_id_path.read_text().strip())
        except OSError:
            pass

    components.append(str(platform.node()))
    components.append(os.getenv("USER", os.getenv("USERNAME", "default")))

    combined = ":".join(components)
    return hashlib.sha256(combined.encode()).hexdigest()


def _derive_key(machine_id: str, salt: bytes) -> bytes:
    """Derive a Fernet key from the machine id and salt."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(machine_id.encode("utf-8")))


def _load_or_create_key(key_path: Path) -> bytes:
    """Get existing encryption key material or create a new one.

    Returns:
        bytes: Fernet-compatible encryption key
    """
    machine_id = _get_machine_id()
    machine_hash = hashlib.sha256(machine_id.encode()).hexdigest()[:16]

    if key_path.exists():
        try:
            key_data = json.loads(key_path.read_text())
            if key_data.get("machine_hash") != machine_hash:
                raise ValueError("machine changed")
            return _derive_key(machine_id, bytes.fromhex(key_data["salt"]))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            # Tokens encrypted with the old key become unreadable -> re-auth
            logger.warning(f"Invalid key file, regenerating: {e}")

    salt = secrets.token_bytes(32)
    key_data = {"salt": salt.hex(), "machine_hash": machine_hash, "version": 1}

    key_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = key_path.with_suffix(".tmp")
    try:
        tmp_path.write_text(json.dumps(key_data))
        os.replace(tmp_path, key_path)
        os.chmod(key_path, 0o600)
    except OSError as e:
        logger.error(f"Failed to write key file: {e}")
        tmp_path.unlink(missing_ok=True)

    return _derive_key(machine_id, salt)


class TokenCipher:
    """Encrypts and decrypts individual string values."""

    def __init__(self, key_path: Path, *, key: Optional[bytes] = None):
        self._fernet = Fernet(key if key is not None else _load_or_create_key(key_path))

    @classmethod
    def from_key(cls, key: bytes) -> "TokenCipher":
        """Build a cipher from a raw Fernet key (tests, key rotation)."""
        return cls(Path(os.devnull), key=key)

    def encrypt(self, value: str) -> str:
        token = self._fernet.encrypt(value.encode("utf-8"))
        return f"{ENCRYPTED_PREFIX}{token.decode('utf-8')}"

    def decrypt(self, stored: str) -> Optional[str]:
        """Decrypt a stored value.

        Plain values (written before encryption was enabled) are returned
        unchanged and get encrypted on their next write.

        Returns:
            The plain value, or None if the value cannot be decrypted
        """
        if not stored.startswith(ENCRYPTED_PREFIX):
            return stored
        try:
            return self._fernet.decrypt(stored[len(ENCRYPTED_PREFIX):].encode("utf-8")).decode("utf-8")
        except InvalidToken:
            logger.warning("Token decryption failed - stored value ignored")
            return None
