from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.core.config import settings
from hrassess.core.database import get_db
from hrassess.core.errors import AuthenticationError, AuthorizationError
from hrassess.models.orm import User, UserRole


class TokenData(BaseModel):
    sub: int
    employee_id: str
    role: str


bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        return False


def create_token(user: User, ttl_minutes: int = settings.ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "employee_id": user.employee_id,
        "role": user.role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


def decode_token(token: str) -> TokenData:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
        return TokenData(sub=int(payload["sub"]), employee_id=payload.get("employee_id", ""), role=payload.get("role", ""))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired token")


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> TokenData:
    if creds is None:
        raise AuthenticationError("Access token required")
    return decode_token(creds.credentials)


async def _load_admin(db: AsyncSession, token: TokenData) -> User:
    user = await db.scalar(select(User).where(User.id == token.sub, User.role == UserRole.ADMIN.value))
    if user is None:
        raise AuthorizationError("Admin access required")
    return user


async def require_admin(token: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> User:
    return await _load_admin(db, token)


async def require_stream_admin(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    token: Optional[str] = Query(None, description="Token for EventSource clients that cannot set headers"),
) -> User:
    # short-lived session: the stream itself must not pin a pooled connection
    raw = creds.credentials if creds is not None else token
    if not raw:
        raise AuthenticationError("Access token required")
    async with request.app.state.session_factory() as db:
        return await _load_admin(db, decode_token(raw))


def validate_api_key(
    x_api_key: Optional[str] = Header(None),
    api_key: Optional[str] = Query(None),
) -> None:
    """Android requests must carry the configured key; without one configured, outside production, anything goes."""
    expected = settings.ANDROID_API_KEY.get_secret_value() if settings.ANDROID_API_KEY else None
    if expected is None:
        if settings.is_production():
            raise AuthenticationError("Invalid API key")
        return
    if (x_api_key or api_key) != expected:
        raise AuthenticationError("Invalid API key")
