"""
JWT session management
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from config import get_settings


def create_access_token(user_id: str, email: str, role: str, name: Optional[str] = None) -> str:
    """
    Create JWT access token for a signed-in user

    Args:
        user_id: User id (token subject)
        email: User email
        role: bce, admin or super_admin

    Returns:
        JWT token string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "role": role,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
        "iat": now,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def decode_access_token(token: str) -> dict:
    """
    Decode and validate JWT token

    Returns:
        Decoded payload dict

    Raises:
        jose.JWTError if token invalid/expired
    """
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm]
    )
