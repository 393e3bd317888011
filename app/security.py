from datetime import datetime, timedelta, timezone

import jwt

from app.config import settings
from app.errors import AuthTokenExpired, AuthTokenInvalid


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Issue a signed bearer token whose ``sub`` claim is *user_id*."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": "access",
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by *token*, or raise an auth failure."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthTokenExpired()
    except jwt.InvalidTokenError:
        raise AuthTokenInvalid()

    user_id = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise AuthTokenInvalid()
    return user_id
