# backend/confedit/auth/router.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from passlib.hash import bcrypt
import datetime as dt
from ..deps import get_db
from ..locks.deps import get_lifecycle_hooks
from ..locks.hooks import LifecycleHooks
from ..conferences.ownership import ConferenceOwnershipIndex
from .models import User, UserRole
from .schemas import LoginIn, LogoutOut, TokenOut, UserDeletedOut, UserOut
from .utils import create_token, current_user, require_roles

router = APIRouter(prefix="/api/auth", tags=["auth"])
users_router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == payload.email, User.is_active.is_(True)))
    if not user or not bcrypt.verify(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid credentials")
    token = create_token(user.id)
    user.last_login_at = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    db.commit()
    return {"access_token": token}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(current_user)):
    return UserOut(id=user.id, email=user.email, name=user.name, role=user.role)


@router.post("/logout", response_model=LogoutOut)
def logout(
    user: User = Depends(current_user),
    hooks: LifecycleHooks = Depends(get_lifecycle_hooks),
):
    # JWTs are stateless; ending the session only gives back held locks
    released = hooks.on_session_ended(user.id)
    return LogoutOut(released=released)


@users_router.delete("/{user_id}", response_model=UserDeletedOut)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(UserRole.admin)),
    hooks: LifecycleHooks = Depends(get_lifecycle_hooks),
):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(404, "User not found")
    if user.id == admin.id:
        raise HTTPException(403, "You cannot delete your own account")

    owned = ConferenceOwnershipIndex(db).resources_for(user.id)
    try:
        released = hooks.on_user_removed(user.id, owned)
        db.delete(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return UserDeletedOut(released_locks=released)
