# backend/confedit/conferences/guard.py
from fastapi import Depends, HTTPException
from ..auth.utils import current_user
from ..auth.models import User
from ..locks.deps import get_lock_manager
from ..locks.manager import LockManager


def require_conference_lock(
    conference_id: int,
    mgr: LockManager = Depends(get_lock_manager),
    user: User = Depends(current_user),
) -> User:
    st = mgr.status_of(conference_id)
    if not st.active or st.holder_id != user.id:
        raise HTTPException(
            status_code=423,
            detail={
                "message": "This conference is locked by another user or not locked.",
                "holder_id": st.holder_id if st.active else None,
                "expires_at": st.expires_at.isoformat() if st.active else None,
            },
        )
    return user
