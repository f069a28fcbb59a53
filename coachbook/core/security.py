from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import bcrypt
import jwt
from jwt import ExpiredSignatureError, InvalidTokenError


class TokenExpired(ValueError):
    pass


def hash_password(plain: str, *, rounds: int = 12) -> str:
    hashed = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(*, user_id: UUID, role: str, ttl_seconds: int, secret: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(seconds=ttl_seconds)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "exp": exp,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_access_token(token: str, secret: str) -> dict[str, Any]:
    """Decode a bearer token.

    Raises ``TokenExpired`` for an expired signature and ``ValueError`` for
    anything else that fails verification.
    """
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"require": ["exp", "sub"]},
        )
    except ExpiredSignatureError as e:
        raise TokenExpired("Token expired") from e
    except InvalidTokenError as e:
        raise ValueError("Invalid token") from e
