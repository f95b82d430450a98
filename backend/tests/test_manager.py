"""
Tests for LockManager orchestration
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from confedit.locks.manager import LockManager
from confedit.locks.policy import ExpiryPolicy
from confedit.locks.results import (
    Conflict,
    Expired,
    Granted,
    LockState,
    NotHolder,
    PermissionDenied,
    Released,
)
from confedit.locks.store import SqlLockStore
from confedit.shared.errors import StoreUnavailable

from conftest import TTL, AllowAll, at

ALICE, BOB = 1, 2


class DenyUser:
    def __init__(self, *denied):
        self.denied = set(denied)

    def can_edit(self, user_id, resource_id):
        return user_id not in self.denied


def _locked():
    return OperationalError("UPDATE edit_locks ...", {}, Exception("database is locked"))


class TestScenario:
    def test_editing_session_walkthrough(self, manager, clock):
        clock.at(0)
        first = manager.acquire_lock(42, ALICE)
        assert isinstance(first, Granted)
        assert first.expires_at == at(900)

        clock.at(10)
        assert manager.acquire_lock(42, BOB) == Conflict(holder_id=ALICE, expires_at=at(900))

        clock.at(800)
        renewed = manager.renew_lock(42, ALICE)
        assert isinstance(renewed, Granted)
        assert renewed.expires_at == at(1700)

        clock.at(1800)
        assert manager.release_lock(42, ALICE) == Released()

        clock.at(1801)
        granted = manager.acquire_lock(42, BOB)
        assert isinstance(granted, Granted)
        assert granted.expires_at == at(2701)


class TestAcquire:
    def test_expiry_reclaim(self, manager, clock):
        clock.at(0)
        manager.acquire_lock(42, ALICE)
        clock.at(TTL.total_seconds())

        res = manager.acquire_lock(42, BOB)
        assert isinstance(res, Granted)
        assert manager.status_of(42).holder_id == BOB

    def test_acquire_commits(self, manager, session_factory, clock):
        manager.acquire_lock(42, ALICE)
        other = SqlLockStore(session_factory())
        try:
            assert other.record(42).holder_id == ALICE
        finally:
            other.session.close()

    def test_permission_checked_before_store(self, policy, clock, no_wait_retry):
        store = Mock(spec=SqlLockStore)
        mgr = LockManager(store, policy, DenyUser(BOB), clock=clock, retry=no_wait_retry)

        assert mgr.acquire_lock(42, BOB) == PermissionDenied()
        store.try_acquire.assert_not_called()
        store.commit.assert_not_called()

    def test_denied_result_carries_no_holder(self, store, policy, clock, no_wait_retry, users):
        open_mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)
        open_mgr.acquire_lock(42, ALICE)

        mgr = LockManager(store, policy, DenyUser(BOB), clock=clock, retry=no_wait_retry)
        res = mgr.acquire_lock(42, BOB)
        assert res == PermissionDenied()
        assert not hasattr(res, "holder_id")

    def test_uses_policy_ttl(self, store, clock, no_wait_retry, users):
        policy = ExpiryPolicy(ttl=timedelta(seconds=60), skew_tolerance=timedelta(0))
        mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)
        clock.at(0)
        assert mgr.acquire_lock(42, ALICE).expires_at == at(60)


class TestRenew:
    def test_successive_renews_strictly_increase(self, manager, clock):
        clock.at(0)
        manager.acquire_lock(42, ALICE)
        seen = []
        for t in (300, 600, 900 - 1, 1100):
            clock.at(t)
            seen.append(manager.renew_lock(42, ALICE).expires_at)
        assert seen == sorted(seen)
        assert len(set(seen)) == len(seen)

    def test_renew_after_expiry_does_not_resurrect(self, manager, clock):
        clock.at(0)
        manager.acquire_lock(42, ALICE)
        clock.at(950)

        assert manager.renew_lock(42, ALICE) == Expired()
        assert manager.status_of(42).state is LockState.EXPIRED
        assert isinstance(manager.acquire_lock(42, BOB), Granted)

    def test_renew_by_non_holder(self, manager, clock):
        manager.acquire_lock(42, ALICE)
        assert manager.renew_lock(42, BOB) == NotHolder()

    def test_renew_permission_denied(self, store, policy, clock, no_wait_retry, users):
        LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry).acquire_lock(42, ALICE)
        mgr = LockManager(store, policy, DenyUser(ALICE), clock=clock, retry=no_wait_retry)
        assert mgr.renew_lock(42, ALICE) == PermissionDenied()

    def test_renew_with_token(self, manager, clock):
        g = manager.acquire_lock(42, ALICE)
        clock.advance(60)
        assert isinstance(manager.renew_lock(42, ALICE, token=g.token), Granted)
        assert manager.renew_lock(42, ALICE, token="0" * 32) == NotHolder()

    def test_heartbeat_interval(self, manager):
        assert manager.heartbeat_interval(42) == timedelta(seconds=300)


class TestRelease:
    def test_release_is_idempotent(self, manager):
        manager.acquire_lock(42, ALICE)
        assert manager.release_lock(42, ALICE) == Released()
        assert manager.release_lock(42, ALICE) == Released()
        assert manager.release_lock(1234, ALICE) == Released()

    def test_non_holder_release(self, manager):
        manager.acquire_lock(42, ALICE)
        assert manager.release_lock(42, BOB) == NotHolder()
        assert manager.status_of(42).holder_id == ALICE

    def test_force_release_frees_immediately(self, manager, caplog):
        manager.acquire_lock(42, ALICE)
        with caplog.at_level("WARNING", logger="confedit.locks.manager"):
            assert manager.force_release_lock(42, actor_id=4) == Released()
        assert manager.status_of(42).state is LockState.ABSENT
        assert isinstance(manager.acquire_lock(42, BOB), Granted)
        assert "force release of conference 42" in caplog.text
        assert "actor=4" in caplog.text

    def test_force_release_for_holder_spares_other_holder(self, manager, caplog):
        manager.acquire_lock(42, BOB)
        with caplog.at_level("WARNING", logger="confedit.locks.manager"):
            assert manager.force_release_lock(42, holder_id=ALICE) == NotHolder()
        status = manager.status_of(42)
        assert status.state is LockState.ACTIVE
        assert status.holder_id == BOB
        assert "force release" not in caplog.text

    def test_force_release_for_holder_frees_own_row(self, manager):
        manager.acquire_lock(42, ALICE)
        assert manager.force_release_lock(42, holder_id=ALICE) == Released()
        assert manager.status_of(42).state is LockState.ABSENT

    def test_force_release_without_commit_leaves_transaction_open(self, manager):
        manager.acquire_lock(42, ALICE)
        manager.force_release_lock(42, commit=False)
        assert manager.status_of(42).state is LockState.ABSENT
        manager.store.rollback()
        assert manager.status_of(42).holder_id == ALICE


class TestExpiryComesFromPolicy:
    def test_store_receives_policy_instants(self, policy, clock, no_wait_retry):
        store = Mock(spec=SqlLockStore)
        store.try_acquire.return_value = Granted(expires_at=at(900), token="t")
        store.renew.return_value = Granted(expires_at=at(1000), token="t")
        mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)

        clock.at(100)
        mgr.acquire_lock(42, ALICE)
        store.try_acquire.assert_called_once_with(
            42, ALICE, at(100), expires_at=at(1000), lapsed_at=at(100)
        )

        mgr.renew_lock(42, ALICE)
        store.renew.assert_called_once_with(
            42, ALICE, at(100), expires_at=at(1000), renewable_after=at(98), token=None
        )

    def test_status_is_classified_by_policy(self, store, clock, no_wait_retry, users):
        policy = Mock(wraps=ExpiryPolicy(ttl=TTL, skew_tolerance=timedelta(seconds=2)))
        mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)
        clock.at(0)
        mgr.acquire_lock(42, ALICE)

        clock.at(899)
        assert mgr.status_of(42).state is LockState.ACTIVE
        policy.is_expired.assert_called_with(at(900), at(899))

        policy.is_expired.return_value = True
        assert mgr.status_of(42).state is LockState.EXPIRED

    def test_status_of_absent_row(self, manager):
        assert manager.status_of(42).state is LockState.ABSENT


class TestStoreFailures:
    def test_transient_failure_is_retried(self, policy, clock, no_wait_retry):
        store = Mock(spec=SqlLockStore)
        store.try_acquire.side_effect = [_locked(), Granted(expires_at=at(900), token="t")]
        mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)

        assert mgr.acquire_lock(42, ALICE) == Granted(expires_at=at(900), token="t")
        assert store.rollback.call_count == 1
        assert store.commit.call_count == 1

    def test_persistent_failure_surfaces(self, policy, clock, no_wait_retry):
        store = Mock(spec=SqlLockStore)
        store.renew.side_effect = _locked()
        mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)

        with pytest.raises(StoreUnavailable):
            mgr.renew_lock(42, ALICE)
        assert store.renew.call_count == 3
        store.commit.assert_not_called()

    def test_no_retry_inside_caller_transaction(self, policy, clock, no_wait_retry):
        store = Mock(spec=SqlLockStore)
        store.force_release.side_effect = _locked()
        store.record.return_value = None
        mgr = LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)

        with pytest.raises(StoreUnavailable):
            mgr.force_release_lock(42, commit=False)
        assert store.force_release.call_count == 1
        store.rollback.assert_not_called()
