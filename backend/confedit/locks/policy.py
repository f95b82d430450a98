from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping

DEFAULT_TTL = timedelta(minutes=15)
DEFAULT_SKEW_TOLERANCE = timedelta(seconds=2)


@dataclass(frozen=True)
class ExpiryPolicy:
    """All TTL arithmetic for edit locks.

    Acquisition and status use the strict boundary: a lock is expired once
    ``now >= expires_at``. Only the current holder's heartbeat gets the skew
    tolerance, so a renew that lands a moment late still extends the lease.
    """

    ttl: timedelta = DEFAULT_TTL
    skew_tolerance: timedelta = DEFAULT_SKEW_TOLERANCE
    overrides: Mapping[int, timedelta] = field(default_factory=dict)

    def __post_init__(self):
        if self.ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if self.skew_tolerance < timedelta(0):
            raise ValueError("skew_tolerance must not be negative")
        if self.skew_tolerance >= self.ttl:
            raise ValueError("skew_tolerance must be shorter than ttl")

    @classmethod
    def from_settings(cls, s) -> "ExpiryPolicy":
        return cls(
            ttl=timedelta(seconds=s.LOCK_TTL_SECONDS),
            skew_tolerance=timedelta(seconds=s.LOCK_CLOCK_SKEW_SECONDS),
        )

    def ttl_for(self, resource_id: int) -> timedelta:
        return self.overrides.get(resource_id, self.ttl)

    def expires_at(self, now: datetime, resource_id: int) -> datetime:
        return now + self.ttl_for(resource_id)

    def lapsed_cutoff(self, now: datetime) -> datetime:
        # rows with expires_at <= cutoff are expired and may be reclaimed
        return now

    def is_expired(self, expires_at: datetime, now: datetime) -> bool:
        return expires_at <= self.lapsed_cutoff(now)

    def renew_cutoff(self, now: datetime) -> datetime:
        # a row is still renewable by its holder while expires_at > cutoff
        return now - self.skew_tolerance

    def heartbeat_interval(self, resource_id: int) -> timedelta:
        return self.ttl_for(resource_id) / 3
