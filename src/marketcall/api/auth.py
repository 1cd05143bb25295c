"""JWT session tokens carrying the stable user id in the ``sub`` claim."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

ALGORITHM = "HS256"


def create_token(secret: str, expiry_hours: int, user_id: str) -> str:
    """Create a signed JWT for ``user_id`` with an expiration claim."""
    exp = datetime.now(timezone.utc) + timedelta(hours=expiry_hours)
    return jwt.encode({"sub": user_id, "exp": exp}, secret, algorithm=ALGORITHM)


def decode_user_id(token: str, secret: str) -> str | None:
    """Return the token's user id, or None if it is invalid, expired or has no subject."""
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sub = claims.get("sub")
    return str(sub) if sub else None
