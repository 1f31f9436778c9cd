"""Password hashing utilities.

Learn: Uses bcrypt for one-way password hashing. bcrypt salts automatically
and produces hashes starting with "$2b$". Passwords are truncated to 72
bytes (bcrypt's limit) before hashing and verifying so both sides agree.

Hashing is CPU-bound (~100ms at 12 rounds), so async callers should use
hash_password_async / verify_password_async, which run it in a worker thread.
"""

import asyncio
from typing import Optional

import bcrypt

from vidtube.config import settings


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:72]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash.

    A malformed stored hash verifies as False rather than raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


async def hash_password_async(password: str) -> str:
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, password, password_hash)
