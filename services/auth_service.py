from dataclasses import dataclass
from datetime import timedelta

from core.clock import Clock
from core.exceptions import (InvalidCredentials, InvalidRefresh, RefreshExpired,
                             TooManyAttempts, ValidationError)
from services.principal_resolver import PrincipalResolver
from services.rate_limiter import RateLimiter
from services.refresh_store import RefreshStore
from services.token_signer import TokenSigner
from utils.logger import get_logger, sanitize_log_data, token_fingerprint

logger = get_logger(__name__)

MIN_PRINCIPAL_LENGTH = 3
MIN_SECRET_LENGTH = 6
MAX_FIELD_LENGTH = 255
DEFAULT_REFRESH_TTL = timedelta(days=30)


@dataclass(frozen=True)
class TokenPair:
    access: str
    refresh: str


def validate_not_empty(value: str | None, field_name: str) -> None:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")


def validate_credentials(principal: str | None, secret: str | None) -> None:
    validate_not_empty(principal, "Username")
    validate_not_empty(secret, "Password")

    if len(principal) < MIN_PRINCIPAL_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_PRINCIPAL_LENGTH} characters")
    if len(secret) < MIN_SECRET_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_SECRET_LENGTH} characters")
    if len(principal) > MAX_FIELD_LENGTH or len(secret) > MAX_FIELD_LENGTH:
        raise ValidationError(f"Username and password must be at most {MAX_FIELD_LENGTH} characters")


class AuthEngine:
    """
    Credential lifecycle: login, refresh rotation, logout, logout-all.

    Composes the rate limiter, the principal resolver, the access token
    signer and the refresh store. One instance per request (the store wraps
    the request's database session); the limiter and signer are shared.
    """

    def __init__(self, store: RefreshStore, signer: TokenSigner, limiter: RateLimiter,
                 resolver: PrincipalResolver, clock: Clock,
                 refresh_ttl: timedelta = DEFAULT_REFRESH_TTL):
        self.store = store
        self.signer = signer
        self.limiter = limiter
        self.resolver = resolver
        self.clock = clock
        self.refresh_ttl = refresh_ttl

    def login(self, principal: str, secret: str) -> TokenPair:
        """
        Exchanges a username/password for an access + refresh token pair.

        Flow:
        1. Validate input lengths
        2. Refuse locked-out principals
        3. Check the password; count a failure on mismatch
        4. Clear the failure counter
        5. Issue the access token and persist a refresh record
        """
        validate_credentials(principal, secret)

        try:
            self.limiter.check(principal)
        except TooManyAttempts:
            logger.warning("Login blocked by lockout", extra={"username": principal})
            raise

        if not self.resolver.authenticate(principal, secret):
            attempts = self.limiter.record_failure(principal)
            logger.warning(
                "Login failed - invalid credentials",
                extra={"username": principal, "failed_attempts": attempts.failed_attempts}
            )
            raise InvalidCredentials()

        self.limiter.reset(principal)

        with self.store.transaction():
            access = self.signer.sign(principal)
            record = self.store.create(principal, self.refresh_ttl, self.clock.now())
            refresh = record.token

        logger.info("User logged in successfully", extra={"username": principal})
        return TokenPair(access=access, refresh=refresh)

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Rotates a refresh token: the presented record is deleted and a new
        one issued in the same transaction.

        Raises:
            ValidationError: empty token
            InvalidRefresh: unknown, revoked, or lost a concurrent rotation
            RefreshExpired: past expires_at (the record is deleted)
        """
        validate_not_empty(refresh_token, "Refresh token")

        record = self.store.find_by_token(refresh_token)
        if record is None:
            logger.warning(
                "Refresh attempted with unknown token",
                extra={"refresh_token": token_fingerprint(refresh_token)}
            )
            raise InvalidRefresh("Refresh token not found")

        record_id = record.id
        principal = record.username

        if record.revoked:
            # Inert: a revoked token is refused, nothing else changes
            logger.warning("Refresh attempted with revoked token", extra={"username": principal})
            raise InvalidRefresh("Refresh token has been revoked")

        if self.clock.now() >= record.expires_at:
            self.store.delete(record_id, refresh_token)
            logger.info("Expired refresh token removed", extra={"username": principal})
            raise RefreshExpired()

        with self.store.transaction():
            if not self.store.delete(record_id, refresh_token):
                # Another request rotated this token first
                logger.warning("Concurrent refresh lost the race", extra={"username": principal})
                raise InvalidRefresh("Refresh token not found")
            new_record = self.store.create(principal, self.refresh_ttl, self.clock.now())
            new_refresh = new_record.token

        access = self.signer.sign(principal)

        logger.info("Access token refreshed", extra={"username": principal})
        return TokenPair(access=access, refresh=new_refresh)

    def logout(self, refresh_token: str) -> None:
        """
        Revokes one refresh token. Unknown and already revoked tokens succeed
        silently so the response never reveals whether a token exists.
        """
        validate_not_empty(refresh_token, "Refresh token")

        record = self.store.find_by_token(refresh_token)
        if record is None:
            logger.info(
                "Logout with unknown refresh token",
                extra=sanitize_log_data({"refresh_token": refresh_token})
            )
            return

        if self.store.mark_revoked(record.id, self.clock.now(), refresh_token):
            logger.info("Refresh token revoked", extra={"username": record.username})

    def logout_all(self, principal: str) -> int:
        """Revokes every active refresh token of principal. Returns how many."""
        validate_not_empty(principal, "Username")

        count = self.store.revoke_all_for_principal(principal, self.clock.now())
        logger.info("Logged out of all sessions", extra={"username": principal, "count": count})
        return count
