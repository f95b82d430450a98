# backend/confedit/conferences/router.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from ..deps import get_db
from ..auth.utils import current_user
from ..auth.models import User
from .guard import require_conference_lock
from .models import Conference
from . import schemas as s

router = APIRouter(prefix="/api/conferences", tags=["conferences"])


@router.get("/{conference_id}", response_model=s.ConferenceOut)
def get_conference(
    conference_id: int, db: Session = Depends(get_db), _: User = Depends(current_user)
):
    conf = db.scalar(select(Conference).where(Conference.id == conference_id))
    if not conf:
        raise HTTPException(404, "Conference not found")
    return conf


@router.patch("/{conference_id}", response_model=s.ConferenceOut)
def update_conference(
    conference_id: int,
    payload: s.ConferenceUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_conference_lock),  # ⭐ only the lock holder writes
):
    conf = db.scalar(select(Conference).where(Conference.id == conference_id))
    if not conf:
        raise HTTPException(404, "Conference not found")
    if payload.name is not None:
        conf.name = payload.name
    db.commit()
    db.refresh(conf)
    return conf
