# backend/confedit/locks/hooks.py
from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..shared.errors import StoreUnavailable
from .manager import LockManager
from .results import Released

logger = logging.getLogger(__name__)


class LifecycleHooks:
    """Bulk lock cleanup for user removal and logout."""

    def __init__(self, manager: LockManager):
        self.manager = manager

    def on_user_removed(self, user_id: int, resource_ids: Iterable[int] = ()) -> list[int]:
        """Force-release every lock the departing user holds.

        ``resource_ids`` comes from the ownership index (conferences the user
        created or was assigned to); rows the user holds anywhere else are added
        from the store. Each delete is guarded by the holder, so a colleague's
        lock on one of those conferences survives. Nothing is committed here: the
        user-deletion transaction commits the deletes together with the user row.
        """
        targets = set(resource_ids) | set(self.manager.held_by(user_id, in_transaction=True))
        released = []
        for rid in sorted(targets):
            result = self.manager.force_release_lock(
                rid, holder_id=user_id, reason=f"user {user_id} removed", commit=False
            )
            if isinstance(result, Released):
                released.append(rid)
        if released:
            logger.info("released %d lock(s) for removed user %s", len(released), user_id)
        return released

    def on_session_ended(self, user_id: int, resource_ids: Iterable[int] | None = None) -> list[int]:
        """Best-effort release at logout; TTL expiry covers anything missed.

        Only rows the user actually holds are touched and reported.
        """
        try:
            held = self.manager.held_by(user_id)
        except (StoreUnavailable, SQLAlchemyError) as e:
            logger.warning("could not list locks for user %s at logout: %s", user_id, e)
            return []
        if resource_ids is not None:
            wanted = set(resource_ids)
            held = [rid for rid in held if rid in wanted]

        released = []
        for rid in held:
            try:
                result = self.manager.release_lock(rid, user_id)
            except (StoreUnavailable, SQLAlchemyError) as e:
                logger.warning(
                    "logout release of conference %s for user %s failed: %s", rid, user_id, e
                )
                continue
            if isinstance(result, Released):
                released.append(rid)
        return released
