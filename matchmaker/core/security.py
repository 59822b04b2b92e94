from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, cast

import jwt
from passlib.context import CryptContext

from matchmaker.core.config import settings

_ALGO: str = settings.jwt_algorithm

# argon2 for new hashes; bcrypt variants are still accepted on login
_pwd = CryptContext(
    schemes=["argon2", "bcrypt_sha256", "bcrypt"],
    default="argon2",
    deprecated="auto",
)


def hash_password(raw: str) -> str:
    return cast(str, _pwd.hash(raw))


def verify_password(raw: str, hashed: str) -> bool:
    return cast(bool, _pwd.verify(raw, hashed))


def create_access_token(sub: str, *, minutes: int | None = None) -> str:
    """Bearer token whose subject is the user's email."""
    minutes = minutes or settings.access_token_expire_minutes
    issued = datetime.utcnow()
    payload: dict[str, Any] = {
        "sub": sub,
        "iat": issued,
        "exp": issued + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=_ALGO)


def decode_token(token: str) -> dict[str, Any]:
    return cast(
        dict[str, Any],
        jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[_ALGO],
        ),
    )
