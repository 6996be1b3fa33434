# =============================================================================
# Identity — API Keys and the Authenticated Caller
# =============================================================================
#
# Callers authenticate with `Authorization: Bearer sk-...`. The database
# stores only the SHA-256 of each key; a key resolves to the user id it
# was issued for. That user id scopes the knowledge context.
#
# Pure functions, no FastAPI dependency: shared by the auth dependency
# (app/api/deps.py), scripts/create_api_key.py and tests.
# =============================================================================

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity resolved from a valid API key."""

    user_id: str
    api_key_id: int


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new API key.

    Returns:
        (raw_key, key_prefix, key_hash):
        - raw_key: Full key to hand to the user (only visible once)
        - key_prefix: First 8 chars for identification in logs
        - key_hash: SHA-256 hex digest for storage in the database
    """
    raw_key = f"sk-{secrets.token_hex(32)}"
    return raw_key, raw_key[:8], hash_api_key(raw_key)


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hex digest (64 chars) of a raw key."""
    return hashlib.sha256(raw_key.encode()).hexdigest()
