"""
Bearer-token identity.

Login and registration live in the identity provider; this service only
verifies the signed token and reads the actor id from the `sub` claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tripshare.core.config import get_settings
from tripshare.core.exceptions import AuthenticationError

settings = get_settings()
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("انتهت صلاحية الجلسة، يرجى تسجيل الدخول مرة أخرى")
    except jwt.InvalidTokenError:
        raise AuthenticationError("رمز الدخول غير صالح")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Resolve the authenticated actor id or raise 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("غير مصرح")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("رمز الدخول غير صالح")
    return str(user_id)
