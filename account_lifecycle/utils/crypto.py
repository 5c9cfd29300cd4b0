"""Token and credential primitives: random tokens, SHA-256 digests, bcrypt."""

import functools
import hashlib
import secrets
from dataclasses import dataclass

import bcrypt

from account_lifecycle.config import settings

# 32 bytes = 256 bits of entropy, 64 hex characters
TOKEN_BYTES = 32


@functools.lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(b"dummy-password-for-timing", bcrypt.gensalt(rounds=rounds))


def dummy_hash() -> bytes:
    """Hash compared against when an account is missing.

    Built at the configured cost so a missing account takes as long to check
    as a real one and the response time does not reveal which exist.
    """
    return _dummy_hash(settings.bcrypt_rounds)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly generated token.

    ``raw`` goes to the user exactly once (inside a link); ``digest`` is what
    gets persisted.
    """

    raw: str
    digest: str

    def __repr__(self) -> str:
        return "IssuedToken(raw=<redacted>, digest=<redacted>)"


def digest_token(raw: str) -> str:
    """One-way, deterministic hash of a raw token as hex."""
    return hashlib.sha256(raw.encode()).hexdigest()


def generate_token() -> IssuedToken:
    """Generate a cryptographically random token and its storable digest."""
    raw = secrets.token_hex(TOKEN_BYTES)
    return IssuedToken(raw=raw, digest=digest_token(raw))


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt. CPU-bound: call via ``asyncio.to_thread``."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a bcrypt hash.

    A missing hash still costs one bcrypt comparison.
    """
    try:
        if not password_hash:
            bcrypt.checkpw(password.encode(), dummy_hash())
            return False
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash or password longer than bcrypt accepts
        return False
