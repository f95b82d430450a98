# backend/confedit/locks/manager.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, TypeVar

from ..shared.retry import RetryPolicy, call_with_retry
from .policy import ExpiryPolicy
from .results import (
    ABSENT,
    AcquireResult,
    Conflict,
    Granted,
    LockState,
    LockStatus,
    NotHolder,
    PermissionDenied,
    Released,
    ReleaseResult,
    RenewResult,
)
from .store import LockRecord, SqlLockStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PermissionChecker(Protocol):
    def can_edit(self, user_id: int, resource_id: int) -> bool: ...


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LockManager:
    """Edit-lock coordinator for conferences.

    Every call returns immediately with a definitive outcome. Logical results
    (conflict, not holder, expired, denied) come back as values; only an
    exhausted store retry raises (StoreUnavailable).
    """

    def __init__(
        self,
        store: SqlLockStore,
        policy: ExpiryPolicy,
        permissions: PermissionChecker,
        clock: Clock = utc_now,
        retry: RetryPolicy | None = None,
    ):
        self.store = store
        self.policy = policy
        self.permissions = permissions
        self.clock = clock
        self.retry = retry or RetryPolicy()

    def _run(
        self, operation: str, fn: Callable[[], T], *, commit: bool = True, retry: bool = True
    ) -> T:
        def attempt() -> T:
            result = fn()
            if commit:
                self.store.commit()
            return result

        if not retry:
            # inside a caller-owned transaction: a rollback here would discard its work
            return call_with_retry(attempt, policy=RetryPolicy(attempts=1), operation=operation)
        return call_with_retry(
            attempt, policy=self.retry, operation=operation, on_failure=self.store.rollback
        )

    def acquire_lock(self, resource_id: int, user_id: int) -> AcquireResult | PermissionDenied:
        if not self.permissions.can_edit(user_id, resource_id):
            logger.info("acquire denied: user=%s conference=%s", user_id, resource_id)
            return PermissionDenied()

        def acquire():
            now = self.clock()
            return self.store.try_acquire(
                resource_id,
                user_id,
                now,
                expires_at=self.policy.expires_at(now, resource_id),
                lapsed_at=self.policy.lapsed_cutoff(now),
            )

        result = self._run("acquire_lock", acquire)
        if isinstance(result, Conflict):
            logger.info(
                "conference %s locked by user %s until %s; user %s refused",
                resource_id,
                result.holder_id,
                result.expires_at.isoformat(),
                user_id,
            )
        else:
            logger.info(
                "conference %s locked by user %s until %s",
                resource_id,
                user_id,
                result.expires_at.isoformat(),
            )
        return result

    def renew_lock(
        self, resource_id: int, user_id: int, token: str | None = None
    ) -> RenewResult | PermissionDenied:
        if not self.permissions.can_edit(user_id, resource_id):
            logger.info("renew denied: user=%s conference=%s", user_id, resource_id)
            return PermissionDenied()

        def renew():
            now = self.clock()
            return self.store.renew(
                resource_id,
                user_id,
                now,
                expires_at=self.policy.expires_at(now, resource_id),
                renewable_after=self.policy.renew_cutoff(now),
                token=token,
            )

        result = self._run("renew_lock", renew)
        if isinstance(result, Granted):
            logger.debug("conference %s renewed by user %s", resource_id, user_id)
        else:
            logger.warning(
                "renew of conference %s by user %s failed: %s",
                resource_id,
                user_id,
                type(result).__name__,
            )
        return result

    def release_lock(self, resource_id: int, user_id: int) -> ReleaseResult:
        result = self._run("release_lock", lambda: self.store.release(resource_id, user_id))
        if isinstance(result, NotHolder):
            logger.info(
                "release of conference %s refused: user %s is not the holder", resource_id, user_id
            )
        else:
            logger.info("conference %s released by user %s", resource_id, user_id)
        return result

    def force_release_lock(
        self,
        resource_id: int,
        *,
        holder_id: int | None = None,
        actor_id: int | None = None,
        reason: str = "admin override",
        commit: bool = True,
    ) -> ReleaseResult:
        """Delete the lock without the caller being its holder.

        ``holder_id`` narrows the delete to that user's row; a row held by anyone
        else is left alone and NotHolder comes back.
        """

        def force():
            now = self.clock()
            before = self._classify(self.store.record(resource_id), now)
            return before, self.store.force_release(resource_id, holder_id=holder_id)

        before, result = self._run("force_release_lock", force, commit=commit, retry=commit)
        if isinstance(result, Released) and before.holder_id is not None:
            logger.warning(
                "force release of conference %s (holder=%s state=%s) by actor=%s: %s",
                resource_id,
                before.holder_id,
                before.state.value,
                actor_id,
                reason,
            )
        return result

    def _classify(self, rec: LockRecord | None, now: datetime) -> LockStatus:
        if rec is None:
            return ABSENT
        state = LockState.EXPIRED if self.policy.is_expired(rec.expires_at, now) else LockState.ACTIVE
        return LockStatus(state, rec.holder_id, rec.expires_at)

    def status_of(self, resource_id: int) -> LockStatus:
        return self._run(
            "status_of",
            lambda: self._classify(self.store.record(resource_id), self.clock()),
            commit=False,
        )

    def heartbeat_interval(self, resource_id: int) -> timedelta:
        return self.policy.heartbeat_interval(resource_id)

    def held_by(self, user_id: int, *, in_transaction: bool = False) -> list[int]:
        return self._run(
            "held_by", lambda: self.store.held_by(user_id), commit=False, retry=not in_transaction
        )
