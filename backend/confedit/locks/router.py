# backend/confedit/locks/router.py
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ..deps import get_db
from ..auth.utils import current_user, require_roles
from ..auth.models import User, UserRole
from .deps import get_lock_manager
from .manager import LockManager
from .results import Conflict, Expired, Granted, NotHolder, PermissionDenied
from .schemas import LockConflictOut, LockOut, LockStatusOut

router = APIRouter(prefix="/api/locks", tags=["locks"])


def _holder_name(db: Session, user_id: int) -> str:
    u = db.get(User, user_id)
    return u.name if u else f"#{user_id}"


def _remaining(expires_at: datetime, now: datetime) -> int:
    return max(int((expires_at - now).total_seconds()), 0)


def _to_out(db: Session, mgr: LockManager, conference_id: int, user: User, g: Granted) -> LockOut:
    return LockOut(
        conference_id=conference_id,
        holder_id=user.id,
        holder_name=user.name,
        token=g.token,
        expires_at=g.expires_at,
        remaining_sec=_remaining(g.expires_at, mgr.clock()),
        heartbeat_sec=int(mgr.heartbeat_interval(conference_id).total_seconds()),
    )


@router.get("/{conference_id}", response_model=LockStatusOut)
def get_lock(
    conference_id: int,
    db: Session = Depends(get_db),
    mgr: LockManager = Depends(get_lock_manager),
    _: User = Depends(current_user),
):
    st = mgr.status_of(conference_id)
    return LockStatusOut(
        conference_id=conference_id,
        state=st.state.value,
        holder_id=st.holder_id,
        holder_name=_holder_name(db, st.holder_id) if st.holder_id is not None else None,
        expires_at=st.expires_at,
        remaining_sec=_remaining(st.expires_at, mgr.clock()) if st.active else 0,
    )


@router.post("/{conference_id}/acquire", response_model=LockOut)
def acquire_lock(
    conference_id: int,
    db: Session = Depends(get_db),
    mgr: LockManager = Depends(get_lock_manager),
    user: User = Depends(require_roles(UserRole.admin, UserRole.editor)),
):
    res = mgr.acquire_lock(conference_id, user.id)
    if isinstance(res, PermissionDenied):
        raise HTTPException(403, "You may not edit this conference")
    if isinstance(res, Conflict):
        body = LockConflictOut(
            message="Conference is being edited by another user",
            holder_id=res.holder_id,
            holder_name=_holder_name(db, res.holder_id),
            expires_at=res.expires_at,
        )
        raise HTTPException(status_code=409, detail=body.model_dump(mode="json"))
    return _to_out(db, mgr, conference_id, user, res)


@router.post("/{conference_id}/heartbeat", response_model=LockOut)
def heartbeat(
    conference_id: int,
    token: str | None = None,
    db: Session = Depends(get_db),
    mgr: LockManager = Depends(get_lock_manager),
    user: User = Depends(current_user),
):
    res = mgr.renew_lock(conference_id, user.id, token=token)
    if isinstance(res, PermissionDenied):
        raise HTTPException(403, "You may not edit this conference")
    if isinstance(res, NotHolder):
        raise HTTPException(403, "not holder")
    if isinstance(res, Expired):
        raise HTTPException(409, "expired")
    return _to_out(db, mgr, conference_id, user, res)


@router.post("/{conference_id}/release")
def release(
    conference_id: int,
    mgr: LockManager = Depends(get_lock_manager),
    user: User = Depends(current_user),
):
    res = mgr.release_lock(conference_id, user.id)
    if isinstance(res, NotHolder):
        raise HTTPException(403, "not holder")
    return {"released": True}


@router.post("/{conference_id}/force-release")
def force_release(
    conference_id: int,
    mgr: LockManager = Depends(get_lock_manager),
    admin: User = Depends(require_roles(UserRole.admin)),
):
    mgr.force_release_lock(conference_id, actor_id=admin.id)
    return {"released": True}
