from __future__ import annotations

from bcrypt import checkpw, gensalt, hashpw

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return hashpw(password.encode(), gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed hash in the store (e.g. imported plaintext); never a match.
        return False
