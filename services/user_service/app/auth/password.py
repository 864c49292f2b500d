"""Password hashing with bcrypt."""

import asyncio
from typing import Sequence

import bcrypt


def hash_password(password: str) -> str:
    """Hash a password with a random salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


async def hash_passwords(passwords: Sequence[str]) -> list[str]:
    """Hash a batch of passwords in the default thread pool."""
    # Run in thread pool to avoid blocking
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: [hash_password(p) for p in passwords])


async def hash_password_async(password: str) -> str:
    return (await hash_passwords([password]))[0]
