from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.clock import Clock, SystemClock
from core.config import settings
from core.database import SessionLocal
from core.exceptions import NotAuthenticated
from services.access_gate import AccessGate, AuthenticatedPrincipal
from services.auth_service import AuthEngine
from services.principal_resolver import DatabasePrincipalResolver
from services.rate_limiter import RateLimiter
from services.refresh_store import RefreshStore
from services.token_signer import TokenSigner


def configure_components(state, clock: Clock | None = None) -> None:
    """
    Builds the process-wide components and stores them on app.state.

    The clock, the signer (read-only key) and the rate limiter (shared
    attempt map) outlive requests; everything touching the database is built
    per request below.
    """
    clock = clock or SystemClock()
    state.clock = clock
    state.token_signer = TokenSigner(settings.SIGNER_SECRET, settings.ACCESS_TOKEN_EXPIRE_MS, clock)
    state.rate_limiter = RateLimiter(
        clock,
        max_attempts=settings.MAX_LOGIN_ATTEMPTS,
        lockout_duration=timedelta(minutes=settings.LOCKOUT_MINUTES),
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


db_dependency = Annotated[Session, Depends(get_db)]


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_token_signer(request: Request) -> TokenSigner:
    return request.app.state.token_signer


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_principal_resolver(db: db_dependency) -> DatabasePrincipalResolver:
    return DatabasePrincipalResolver(db)


def get_auth_engine(
    db: db_dependency,
    clock: Annotated[Clock, Depends(get_clock)],
    signer: Annotated[TokenSigner, Depends(get_token_signer)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    resolver: Annotated[DatabasePrincipalResolver, Depends(get_principal_resolver)],
) -> AuthEngine:
    return AuthEngine(
        store=RefreshStore(db),
        signer=signer,
        limiter=limiter,
        resolver=resolver,
        clock=clock,
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


engine_dependency = Annotated[AuthEngine, Depends(get_auth_engine)]


def get_principal_context(
    request: Request,
    signer: Annotated[TokenSigner, Depends(get_token_signer)],
    resolver: Annotated[DatabasePrincipalResolver, Depends(get_principal_resolver)],
) -> AuthenticatedPrincipal | None:
    principal = AccessGate(signer, resolver).authenticate(request.headers.get("Authorization"))
    request.state.principal = principal
    return principal


def get_current_principal(
    principal: Annotated[AuthenticatedPrincipal | None, Depends(get_principal_context)],
) -> AuthenticatedPrincipal:
    if principal is None:
        raise NotAuthenticated()
    return principal


principal_dependency = Annotated[AuthenticatedPrincipal, Depends(get_current_principal)]
