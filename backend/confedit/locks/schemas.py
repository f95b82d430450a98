# backend/confedit/locks/schemas.py
from pydantic import BaseModel
from datetime import datetime


class LockOut(BaseModel):
    conference_id: int
    holder_id: int
    holder_name: str
    token: str
    expires_at: datetime
    remaining_sec: int
    heartbeat_sec: int  # renew at least this often


class LockStatusOut(BaseModel):
    conference_id: int
    state: str  # ABSENT | ACTIVE | EXPIRED
    holder_id: int | None = None
    holder_name: str | None = None
    expires_at: datetime | None = None
    remaining_sec: int = 0


class LockConflictOut(BaseModel):
    message: str
    holder_id: int
    holder_name: str
    expires_at: datetime
