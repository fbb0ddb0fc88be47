from fastapi import APIRouter, Request
from starlette import status

from middleware.rate_limiter import limiter, LOGIN_LIMIT, REFRESH_LIMIT
from schemas.auth_schemas import (LoginRequest, RefreshTokenRequest, Token,
                                  StatusResponse, UserInfoResponse)
from utils.deps import engine_dependency, principal_dependency
from utils.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(
    prefix="/api/auth",
    tags=["auth"]
)


@router.post("/login", response_model=Token)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, body: LoginRequest, engine: engine_dependency):
    pair = engine.login(body.username, body.password)
    return Token(access_token=pair.access, refresh_token=pair.refresh)


@router.post("/refresh", response_model=Token)
@limiter.limit(REFRESH_LIMIT)
def refresh(request: Request, body: RefreshTokenRequest, engine: engine_dependency):
    """
    Exchange a refresh token for a new access + refresh pair. The presented
    refresh token is consumed.
    """
    pair = engine.refresh(body.refresh_token)
    return Token(access_token=pair.access, refresh_token=pair.refresh)


@router.post("/logout", response_model=StatusResponse, status_code=status.HTTP_200_OK)
def logout(body: RefreshTokenRequest, principal: principal_dependency, engine: engine_dependency):
    """
    Revoke one refresh token. Succeeds for unknown or already revoked tokens.
    """
    engine.logout(body.refresh_token)
    return StatusResponse(code="LOGOUT_SUCCESS", message="Logged out successfully")


@router.post("/logout-all", response_model=StatusResponse, status_code=status.HTTP_200_OK)
def logout_all(principal: principal_dependency, engine: engine_dependency):
    """
    Revoke every refresh token of the authenticated principal.
    Access tokens already issued stay valid until they expire.
    """
    engine.logout_all(principal.username)
    return StatusResponse(code="LOGOUT_ALL_SUCCESS", message="Logged out of all sessions")


@router.get("/me", response_model=UserInfoResponse)
async def me(principal: principal_dependency):
    return UserInfoResponse(
        username=principal.username,
        enabled=principal.enabled,
        roles=principal.roles
    )


@router.get("/health", response_model=StatusResponse)
async def health():
    logger.debug("Health check requested")
    return StatusResponse(code="OK", message="Authentication service is up")
