"""Counter key helpers."""

from __future__ import annotations

from hashlib import sha256


def build_throttle_key(prefix: str, key: str) -> str:
    """Build the store key for a subject within a namespace.

    Plain concatenation: prefixes are operator-controlled, so no escaping is
    applied. The same inputs always produce the same key.

    Args:
        prefix: Namespace shared by one throttle configuration (e.g. "api_").
        key: Subject identifier (e.g. an IP address).

    Returns:
        The derived key, e.g. "api_127.0.0.1".
    """

    return f"{prefix}{key}"


def hash_throttle_key(derived_key: str) -> str:
    """Hash a derived key for logging without exposing the subject."""
    return sha256(derived_key.encode()).hexdigest()[:16]
