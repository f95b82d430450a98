# backend/confedit/locks/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session
from ..deps import get_db
from ..auth.permissions import RolePermissionChecker
from ..shared.config import settings
from ..shared.retry import RetryPolicy
from .hooks import LifecycleHooks
from .manager import Clock, LockManager, utc_now
from .policy import ExpiryPolicy
from .store import SqlLockStore


def get_clock() -> Clock:
    return utc_now


def get_lock_manager(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> LockManager:
    return LockManager(
        SqlLockStore(db),
        ExpiryPolicy.from_settings(settings),
        RolePermissionChecker(db),
        clock=clock,
        retry=RetryPolicy.from_settings(settings),
    )


def get_lifecycle_hooks(manager: LockManager = Depends(get_lock_manager)) -> LifecycleHooks:
    return LifecycleHooks(manager)
