# backend/confedit/locks/store.py
"""SQL persistence for edit locks.

Every mutation is a single conditional statement against ``edit_locks`` so the
database, not the process, decides who wins a race. Methods never commit; the
caller owns the transaction.

The store knows no TTL rules. Callers pass the instants ExpiryPolicy computed:
``expires_at`` for the new lease and a cutoff below which a row counts as lapsed
(``lapsed_at``) or is no longer renewable (``renewable_after``).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, case, delete, insert, literal, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..shared.db import UTCDateTime
from ..shared.errors import StoreUnavailable
from .models import EditLock
from .results import (
    AcquireResult,
    Conflict,
    Expired,
    Granted,
    NotHolder,
    Released,
    ReleaseResult,
    RenewResult,
)

locks = EditLock.__table__

# update -> insert -> read can lose to a concurrent release; bounded re-tries
ACQUIRE_ROUNDS = 3


def new_token() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class LockRecord:
    holder_id: int
    token: str
    expires_at: datetime


class SqlLockStore:
    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # --- reads ---

    def record(self, resource_id: int) -> LockRecord | None:
        row = self.session.execute(
            select(locks.c.holder_id, locks.c.token, locks.c.expires_at).where(
                locks.c.resource_id == resource_id
            )
        ).first()
        if row is None:
            return None
        return LockRecord(row.holder_id, row.token, row.expires_at)

    def held_by(self, holder_id: int) -> list[int]:
        """Resource ids whose row names ``holder_id``, lapsed rows included."""
        return list(
            self.session.scalars(
                select(locks.c.resource_id)
                .where(locks.c.holder_id == holder_id)
                .order_by(locks.c.resource_id)
            )
        )

    # --- conditional writes ---

    def try_acquire(
        self,
        resource_id: int,
        holder_id: int,
        now: datetime,
        expires_at: datetime,
        lapsed_at: datetime,
    ) -> AcquireResult:
        for _ in range(ACQUIRE_ROUNDS):
            token = new_token()
            if self._take_over(resource_id, holder_id, token, now, expires_at, lapsed_at):
                return Granted(expires_at=expires_at, token=token)
            inserted = self._insert_if_absent(
                dict(
                    resource_id=resource_id,
                    holder_id=holder_id,
                    token=token,
                    acquired_at=now,
                    last_renewed_at=now,
                    expires_at=expires_at,
                )
            )
            if inserted:
                return Granted(expires_at=expires_at, token=token)
            rec = self.record(resource_id)
            if rec is not None and rec.holder_id != holder_id and rec.expires_at > lapsed_at:
                return Conflict(holder_id=rec.holder_id, expires_at=rec.expires_at)
        raise StoreUnavailable(
            "Lock row kept changing under acquire", operation="try_acquire", attempts=ACQUIRE_ROUNDS
        )

    def _take_over(
        self,
        resource_id: int,
        holder_id: int,
        token: str,
        now: datetime,
        expires_at: datetime,
        lapsed_at: datetime,
    ) -> bool:
        """Overwrite the row if it is ours or lapsed. Same-holder refresh keeps acquired_at."""
        still_ours = and_(locks.c.holder_id == holder_id, locks.c.expires_at > lapsed_at)
        stmt = (
            update(locks)
            .where(
                locks.c.resource_id == resource_id,
                or_(locks.c.holder_id == holder_id, locks.c.expires_at <= lapsed_at),
            )
            .values(
                holder_id=holder_id,
                token=token,
                acquired_at=case(
                    (still_ours, locks.c.acquired_at), else_=literal(now, UTCDateTime())
                ),
                last_renewed_at=now,
                expires_at=expires_at,
            )
        )
        return self.session.execute(stmt).rowcount == 1

    def _insert_if_absent(self, values: dict) -> bool:
        dialect = self.session.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            ins = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = ins(locks).values(**values).on_conflict_do_nothing(
                index_elements=[locks.c.resource_id]
            )
            return self.session.execute(stmt).rowcount == 1
        try:
            with self.session.begin_nested():
                self.session.execute(insert(locks).values(**values))
        except IntegrityError:
            return False
        return True

    def renew(
        self,
        resource_id: int,
        holder_id: int,
        now: datetime,
        expires_at: datetime,
        renewable_after: datetime,
        token: str | None = None,
    ) -> RenewResult:
        """Extend the holder's lease while ``expires_at > renewable_after``.

        ``renewable_after`` sits behind the lapse cutoff by the skew tolerance, so a
        late heartbeat can still win over a reclaim it races inside that window.
        """
        conds = [
            locks.c.resource_id == resource_id,
            locks.c.holder_id == holder_id,
            locks.c.expires_at > renewable_after,
        ]
        if token is not None:
            conds.append(locks.c.token == token)
        stmt = update(locks).where(*conds).values(last_renewed_at=now, expires_at=expires_at)
        if self.session.execute(stmt).rowcount == 1:
            return Granted(expires_at=expires_at, token=self.record(resource_id).token)

        rec = self.record(resource_id)
        if rec is None or rec.holder_id != holder_id:
            return NotHolder()
        if token is not None and rec.token != token:
            return NotHolder()
        return Expired()

    def release(self, resource_id: int, holder_id: int) -> ReleaseResult:
        stmt = delete(locks).where(
            locks.c.resource_id == resource_id, locks.c.holder_id == holder_id
        )
        if self.session.execute(stmt).rowcount == 1:
            return Released()
        if self.record(resource_id) is None:
            return Released()
        return NotHolder()

    def force_release(self, resource_id: int, holder_id: int | None = None) -> ReleaseResult:
        """Delete the row whatever its state.

        With ``holder_id`` only that user's row goes; anything else (another
        holder, or no row) reports NotHolder so callers can tell nothing was freed.
        """
        stmt = delete(locks).where(locks.c.resource_id == resource_id)
        if holder_id is None:
            self.session.execute(stmt)
            return Released()
        stmt = stmt.where(locks.c.holder_id == holder_id)
        return Released() if self.session.execute(stmt).rowcount == 1 else NotHolder()
