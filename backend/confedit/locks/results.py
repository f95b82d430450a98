"""Outcomes returned by the lock store and manager.

Every expected outcome is data. Handlers branch on the type and choose the
HTTP status; nothing here is raised.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class Granted:
    expires_at: datetime
    token: str


@dataclass(frozen=True)
class Conflict:
    holder_id: int
    expires_at: datetime


@dataclass(frozen=True)
class NotHolder:
    pass


@dataclass(frozen=True)
class Expired:
    pass


@dataclass(frozen=True)
class Released:
    pass


@dataclass(frozen=True)
class PermissionDenied:
    pass


class LockState(str, enum.Enum):
    ABSENT = "ABSENT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class LockStatus:
    """Public view of a lock. ``holder_id`` is the last holder when EXPIRED."""

    state: LockState
    holder_id: int | None = None
    expires_at: datetime | None = None

    @property
    def active(self) -> bool:
        return self.state is LockState.ACTIVE


ABSENT = LockStatus(LockState.ABSENT)

AcquireResult = Union[Granted, Conflict]
RenewResult = Union[Granted, NotHolder, Expired]
ReleaseResult = Union[Released, NotHolder]
