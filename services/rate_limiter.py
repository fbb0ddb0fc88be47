"""
Per-principal brute-force protection for the login path.

Failed attempts are counted per principal; reaching max_attempts opens a
lockout window during which check() refuses the principal. Records live in
a sharded lock table: updates to one principal are linearized by its
shard lock, different principals never wait on each other unless they hash
to the same shard.
"""

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from core.clock import Clock
from core.exceptions import TooManyAttempts
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)
SHARD_COUNT = 16


@dataclass
class AttemptRecord:
    failed_attempts: int = 0
    lockout_start: datetime | None = None
    last_failure: datetime | None = None

    def is_locked(self, max_attempts: int) -> bool:
        return self.failed_attempts >= max_attempts


class _Shard:
    __slots__ = ("lock", "records")

    def __init__(self):
        self.lock = threading.Lock()
        self.records: dict[str, AttemptRecord] = {}


class RateLimiter:

    def __init__(self, clock: Clock, max_attempts: int = MAX_ATTEMPTS,
                 lockout_duration: timedelta = LOCKOUT_DURATION,
                 shards: int = SHARD_COUNT):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if lockout_duration <= timedelta(0):
            raise ValueError("lockout_duration must be positive")
        self._clock = clock
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration
        self._shards = [_Shard() for _ in range(max(1, shards))]

    def _shard(self, principal: str) -> _Shard:
        return self._shards[hash(principal) % len(self._shards)]

    def _is_stale(self, record: AttemptRecord, now: datetime) -> bool:
        """A record whose window has passed is logically empty."""
        if record.lockout_start is not None:
            return now - record.lockout_start >= self.lockout_duration
        if record.last_failure is not None:
            return now - record.last_failure >= self.lockout_duration
        return True

    def check(self, principal: str) -> None:
        """
        Raises TooManyAttempts while principal is locked out.

        retry_after_seconds is the remaining window rounded up, so it is
        always within (0, lockout seconds].
        """
        now = self._clock.now()
        shard = self._shard(principal)
        with shard.lock:
            record = shard.records.get(principal)
            if record is None:
                return
            if self._is_stale(record, now):
                del shard.records[principal]
                return
            if not record.is_locked(self.max_attempts):
                return
            remaining = self.lockout_duration - (now - record.lockout_start)

        retry_after = max(1, math.ceil(remaining.total_seconds()))
        logger.warning(
            "Login refused - principal locked out",
            extra={"username": principal, "retry_after_seconds": retry_after}
        )
        raise TooManyAttempts(retry_after)

    def record_failure(self, principal: str) -> AttemptRecord:
        now = self._clock.now()
        shard = self._shard(principal)
        with shard.lock:
            record = shard.records.get(principal)
            if record is None or self._is_stale(record, now):
                record = AttemptRecord()
                shard.records[principal] = record

            record.failed_attempts += 1
            record.last_failure = now
            if record.failed_attempts >= self.max_attempts and record.lockout_start is None:
                record.lockout_start = now
                logger.warning(
                    "Lockout started",
                    extra={"username": principal, "failed_attempts": record.failed_attempts}
                )
            return AttemptRecord(record.failed_attempts, record.lockout_start, record.last_failure)

    def reset(self, principal: str) -> None:
        shard = self._shard(principal)
        with shard.lock:
            shard.records.pop(principal, None)

    def get(self, principal: str) -> AttemptRecord | None:
        """Snapshot of the current record, for diagnostics and tests."""
        shard = self._shard(principal)
        with shard.lock:
            record = shard.records.get(principal)
            if record is None:
                return None
            return AttemptRecord(record.failed_attempts, record.lockout_start, record.last_failure)

    def evict_stale(self) -> int:
        """Drops logically empty records. Returns how many were removed."""
        now = self._clock.now()
        evicted = 0
        for shard in self._shards:
            with shard.lock:
                stale = [key for key, record in shard.records.items() if self._is_stale(record, now)]
                for key in stale:
                    del shard.records[key]
                evicted += len(stale)
        return evicted

    def __len__(self):
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.records)
        return total
