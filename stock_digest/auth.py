"""
Request authentication: the cron shared secret and Supabase session tokens.
"""

import hashlib
import hmac
from typing import Optional


BEARER_PREFIX = "Bearer "


def _digest(value: str) -> bytes:
    return hashlib.sha256(value.encode("utf-8")).digest()


def constant_time_equals(a: str, b: str) -> bool:
    """
    Compare two strings without an early exit on length or prefix.

    Both sides are hashed to fixed-length digests before ``hmac.compare_digest``.
    """
    return hmac.compare_digest(_digest(a), _digest(b))


def is_authorized_cron(authorization: Optional[str], cron_secret: str) -> bool:
    """True when the header is exactly ``Bearer <cron_secret>``."""
    if not authorization:
        return False
    return constant_time_equals(authorization, f"{BEARER_PREFIX}{cron_secret}")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None
