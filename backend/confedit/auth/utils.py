# backend/confedit/auth/utils.py
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session
import jwt, datetime as dt
from ..deps import get_db
from ..shared.config import settings
from .models import User, UserRole


def create_token(user_id: int) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + dt.timedelta(minutes=settings.ACCESS_TTL_MIN),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def _bearer(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(401, "Not authenticated")
    return authorization.split(" ", 1)[1]


def current_user(
    db: Session = Depends(get_db), authorization: str | None = Header(None)
) -> User:
    token = _bearer(authorization)
    try:
        data = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise HTTPException(401, "Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(401, "Invalid token")
    try:
        uid = int(data["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(401, "Invalid token")
    user = db.get(User, uid)
    if not user or not user.is_active:
        raise HTTPException(401, "User disabled")
    return user


def require_roles(*roles: UserRole):
    def _dep(user: User = Depends(current_user)):
        if roles and user.role not in roles:
            raise HTTPException(403, "Forbidden")
        return user

    return _dep
