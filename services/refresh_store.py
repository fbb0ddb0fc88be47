import secrets
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from core.exceptions import TransientStorageError
from models.refresh_tokens import RefreshToken
from utils.logger import get_logger

logger = get_logger(__name__)

# 256 bits of entropy
TOKEN_BYTES = 32
MAX_CREATE_ATTEMPTS = 3


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class RefreshStore:
    """
    Persistence for refresh credentials.

    Every public method runs inside transaction(). Calls made inside an
    enclosing transaction() block join it, so several operations can be
    committed (or rolled back) together:

        with store.transaction():
            store.delete(old.id)
            new = store.create(old.username, ttl)
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    @contextmanager
    def transaction(self):
        outermost = self._depth == 0
        self._depth += 1
        try:
            yield self
            if outermost:
                self.db.commit()
        except (DBAPIError, PoolTimeoutError) as e:
            if outermost:
                self._rollback()
            logger.error(
                "Refresh store unavailable",
                extra={"error_type": type(e).__name__},
                exc_info=True
            )
            raise TransientStorageError() from e
        except BaseException:
            if outermost:
                self._rollback()
            raise
        finally:
            self._depth -= 1

    def _rollback(self):
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.error("Rollback failed", exc_info=True)

    def create(self, principal: str, ttl: timedelta, now: datetime) -> RefreshToken:
        """
        Inserts a fresh refresh record for principal.

        A unique-constraint conflict on token is retried with a new random
        value inside a savepoint, so the surrounding transaction survives.
        """
        if ttl <= timedelta(0):
            raise ValueError("Refresh token TTL must be positive")

        with self.transaction():
            for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
                record = RefreshToken(
                    token=generate_refresh_token(),
                    username=principal,
                    created_at=now,
                    expires_at=now + ttl,
                    revoked=False,
                    revoked_at=None,
                )
                try:
                    with self.db.begin_nested():
                        self.db.add(record)
                        self.db.flush()
                except IntegrityError:
                    logger.warning(
                        "Refresh token collision, regenerating",
                        extra={"attempt": attempt}
                    )
                    continue

                logger.debug(
                    "Refresh token created",
                    extra={"username": principal, "refresh_token_id": record.id}
                )
                return record

            raise TransientStorageError("Could not allocate a unique refresh token")

    def find_by_token(self, token: str) -> RefreshToken | None:
        with self.transaction():
            return self.db.query(RefreshToken).filter(RefreshToken.token == token).one_or_none()

    def delete(self, record_id: int, token: str | None = None) -> bool:
        """
        Deletes a record by id, and by token value when one is given.

        Issued as a single DELETE so that, under SQLite, a concurrent caller
        waits for the write lock instead of failing on a lock upgrade.

        Returns:
            True if this call removed the row, False if it was already gone.
        """
        with self.transaction():
            query = self.db.query(RefreshToken).filter(RefreshToken.id == record_id)
            if token is not None:
                query = query.filter(RefreshToken.token == token)
            deleted = query.delete(synchronize_session=False)
            return deleted == 1

    def mark_revoked(self, record_id: int, now: datetime, token: str | None = None) -> bool:
        """
        Revokes one record. Already revoked records are left untouched.
        When token is given the row must also carry that token value.

        Returns:
            True if the record transitioned to revoked by this call.
        """
        with self.transaction():
            query = self.db.query(RefreshToken).filter(
                RefreshToken.id == record_id,
                RefreshToken.revoked == False  # noqa: E712
            )
            if token is not None:
                query = query.filter(RefreshToken.token == token)
            updated = query.update(
                {"revoked": True, "revoked_at": now},
                synchronize_session="fetch"
            )
            return updated == 1

    def revoke_all_for_principal(self, principal: str, now: datetime) -> int:
        with self.transaction():
            updated = self.db.query(RefreshToken).filter(
                RefreshToken.username == principal,
                RefreshToken.revoked == False  # noqa: E712
            ).update(
                {"revoked": True, "revoked_at": now},
                synchronize_session="fetch"
            )
            logger.info(
                "Revoked all refresh tokens",
                extra={"username": principal, "count": updated}
            )
            return updated

    def delete_expired(self, now: datetime) -> int:
        """Deletes rows with expires_at strictly before now."""
        with self.transaction():
            return self.db.query(RefreshToken).filter(
                RefreshToken.expires_at < now
            ).delete(synchronize_session="fetch")

    def find_expiring(self, now: datetime, within: timedelta) -> list[RefreshToken]:
        """Non-revoked records expiring between now and now + within."""
        with self.transaction():
            return self.db.query(RefreshToken).filter(
                RefreshToken.expires_at >= now,
                RefreshToken.expires_at <= now + within,
                RefreshToken.revoked == False  # noqa: E712
            ).order_by(RefreshToken.expires_at).all()

    def count_active(self, principal: str, now: datetime) -> int:
        with self.transaction():
            return self.db.query(RefreshToken).filter(
                RefreshToken.username == principal,
                RefreshToken.revoked == False,  # noqa: E712
                RefreshToken.expires_at > now
            ).count()
