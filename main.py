# Essential imports
import asyncio
import time
from http import HTTPStatus
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routers import auth

# Import all models for SQLAlchemy metadata
import models  # noqa: F401

# Rate limiter imports
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from utils.logger import get_logger
from middleware import RequestIDMiddleware
from core.config import settings
from core.database import Base, SessionLocal, engine
from core.exceptions import AuthServiceError, TooManyAttempts
from services.janitor import Janitor
from utils.deps import configure_components

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    janitor_task = None
    if settings.JANITOR_ENABLED and settings.ENV != "testing":
        janitor = Janitor(
            SessionLocal,
            app.state.clock,
            limiter=app.state.rate_limiter,
            cron=settings.JANITOR_CRON
        )
        janitor_task = asyncio.create_task(janitor.run_forever())

    logger.info("Application startup complete", extra={"event": "startup"})
    yield

    if janitor_task is not None:
        janitor_task.cancel()
        with suppress(asyncio.CancelledError):
            await janitor_task
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Auth Service",
    description="Issues, rotates and revokes access and refresh tokens",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

configure_components(app.state)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with method, path, status code and duration.
    """
    start_time = time.perf_counter()

    response = await call_next(request)

    duration = (time.perf_counter() - start_time) * 1000

    client_ip = request.client.host if request.client else "unknown"

    logger.info(
        f'{client_ip} - "{request.method} {request.url.path}" {response.status_code}',
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration, 2),
            "client_ip": client_ip
        }
    )

    return response


app.add_middleware(RequestIDMiddleware)


def error_body(request: Request, status_code: int, error: str, message: str) -> dict:
    """Standard error envelope: {timestamp, status, error, message}."""
    return {
        "timestamp": request.app.state.clock.now().isoformat(),
        "status": status_code,
        "error": error,
        "message": message,
    }


@app.exception_handler(AuthServiceError)
async def auth_error_handler(request: Request, exc: AuthServiceError):
    body = error_body(request, exc.status_code, exc.error, exc.message)
    headers = None

    if isinstance(exc, TooManyAttempts):
        body["retryAfterSeconds"] = exc.retry_after_seconds
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc.message}",
            extra={"path": request.url.path}
        )

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, 400, "Bad Request", details or "Invalid request body")
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, _reason(exc.status_code), str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = 60
    body = error_body(request, 429, "Too Many Requests", f"Rate limit exceeded: {exc.detail}")
    body["retryAfterSeconds"] = retry_after
    return JSONResponse(status_code=429, content=body, headers={"Retry-After": str(retry_after)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions, log them with stack trace and return a
    generic 500 without internals.
    """
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, 500, "Internal Server Error", "An internal server error occurred")
    )


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


app.include_router(auth.router)


app.state.limiter = limiter
