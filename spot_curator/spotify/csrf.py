"""
Anti-forgery state tokens for the OAuth authorization-code flow.

Each authentication attempt gets a fresh token. A token is a random
64-byte nonce followed by its HMAC-SHA256 under a per-generator random
key, encoded URL-safe base64 without padding. The key never leaves the
process, so a token cannot be forged or predicted from anything public.
"""

import base64
import hashlib
import hmac
import secrets

NONCE_BYTES = 64
KEY_BYTES = 32


class CsrfStateGenerator:
    """
    Generate and check OAuth `state` values.

    Args:
        key: HMAC key. A fresh random key is drawn when omitted, which is
             what production code wants; tests may pin it.
    """

    def __init__(self, key: bytes | None = None) -> None:
        self._key = key if key is not None else secrets.token_bytes(KEY_BYTES)

    def generate(self) -> str:
        nonce = secrets.token_bytes(NONCE_BYTES)
        mac = hmac.new(self._key, nonce, hashlib.sha256).digest()
        return base64.urlsafe_b64encode(nonce + mac).rstrip(b"=").decode("ascii")

    @staticmethod
    def validate(received: str | None, expected: str) -> bool:
        """Constant-time equality; a missing value never validates."""
        if not received or not expected:
            return False
        return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))
