import asyncio
import threading
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from core.clock import Clock
from services.rate_limiter import RateLimiter
from services.refresh_store import RefreshStore
from utils.logger import get_logger

logger = get_logger(__name__)

EXPIRY_NOTICE_WINDOW = timedelta(days=1)


def parse_daily_cron(expression: str) -> tuple[int, int]:
    """
    Parses a five-field cron expression that fires once a day.

    Only "M H * * *" is accepted; anything else is a configuration error.

    Returns:
        (hour, minute)
    """
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Expected 5 cron fields, got {len(fields)}: {expression!r}")

    minute, hour, day, month, weekday = fields
    if (day, month, weekday) != ("*", "*", "*"):
        raise ValueError(f"Only daily schedules are supported: {expression!r}")

    try:
        minute_value, hour_value = int(minute), int(hour)
    except ValueError:
        raise ValueError(f"Minute and hour must be integers: {expression!r}") from None

    if not 0 <= minute_value <= 59 or not 0 <= hour_value <= 23:
        raise ValueError(f"Minute or hour out of range: {expression!r}")

    return hour_value, minute_value


class Janitor:
    """
    Periodic cleanup of expired refresh records.

    Runs never overlap: a run_once() call made while another is in progress
    returns None without touching the store.
    """

    def __init__(self, session_factory: Callable[[], Session], clock: Clock,
                 limiter: RateLimiter | None = None, cron: str = "0 2 * * *"):
        self.session_factory = session_factory
        self.clock = clock
        self.limiter = limiter
        self.hour, self.minute = parse_daily_cron(cron)
        self._run_lock = threading.Lock()

    def run_once(self) -> int | None:
        if not self._run_lock.acquire(blocking=False):
            logger.info("Janitor run skipped - previous run still in progress")
            return None

        try:
            now = self.clock.now()
            logger.info("Janitor run started")

            db = self.session_factory()
            try:
                store = RefreshStore(db)
                deleted = store.delete_expired(now)
                expiring = len(store.find_expiring(now, EXPIRY_NOTICE_WINDOW))
            finally:
                db.close()

            evicted = self.limiter.evict_stale() if self.limiter is not None else 0

            logger.info(
                "Janitor run finished",
                extra={
                    "expired_tokens_deleted": deleted,
                    "tokens_expiring_soon": expiring,
                    "attempt_records_evicted": evicted
                }
            )
            return deleted
        finally:
            self._run_lock.release()

    def next_run_after(self, moment: datetime) -> datetime:
        """Next scheduled instant strictly after moment, in local time."""
        local = moment.astimezone()
        candidate = local.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= local:
            candidate = candidate + timedelta(days=1)
        return candidate

    async def run_forever(self):
        logger.info(
            "Janitor scheduled",
            extra={"hour": self.hour, "minute": self.minute}
        )
        while True:
            try:
                now = self.clock.now()
                delay = (self.next_run_after(now) - now).total_seconds()
                await asyncio.sleep(max(delay, 0))
                await asyncio.to_thread(self.run_once)

            except asyncio.CancelledError:
                logger.info("Janitor cancelled - shutting down")
                raise

            except Exception as e:
                logger.error(f"Janitor run failed: {e}", exc_info=True)
                await asyncio.sleep(60)
