"""HMAC-SHA256 signing for outbound webhook bodies."""
from __future__ import annotations

import hmac
import secrets
from hashlib import sha256


def sign(payload: bytes, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``payload`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, sha256).hexdigest()


def verify(payload: bytes, signature: str, secret: str) -> bool:
    """Check ``signature`` against ``payload`` in constant time.

    Malformed signatures (wrong length, non-ASCII) simply fail verification.
    """
    expected = sign(payload, secret).encode("ascii")
    try:
        supplied = signature.encode("ascii")
    except (AttributeError, UnicodeEncodeError):
        return False
    return hmac.compare_digest(expected, supplied)


def generate_secret() -> str:
    """Random signing secret in the format issued to tenants (64 hex chars)."""
    return secrets.token_hex(32)
