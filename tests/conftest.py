import os
import tempfile

# Must be set before the application modules read Settings
os.environ["ENV"] = "testing"
os.environ["JANITOR_ENABLED"] = "false"
os.environ.setdefault("SIGNER_SECRET", "test-signer-secret-with-at-least-32-bytes")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "auth-service-test-logs"))

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.clock import ManualClock
from core.database import Base, create_db_engine
from models.users import User
from services.auth_service import AuthEngine
from services.principal_resolver import DatabasePrincipalResolver
from services.rate_limiter import RateLimiter
from services.refresh_store import RefreshStore
from services.token_signer import TokenSigner
from utils.deps import configure_components, get_db
from utils.hashing import get_password_hash
from tests.helpers import PASSWORDS

SIGNER_SECRET = os.environ["SIGNER_SECRET"]



@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """
    Fresh, empty database for each test.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def signer(clock):
    return TokenSigner(SIGNER_SECRET, 3_600_000, clock)


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock)


@pytest.fixture
def store(session):
    return RefreshStore(session)


@pytest.fixture
def principals(session):
    """alice and bob are regular users, root has ADMIN, carol is disabled."""
    users = [
        User(username="alice", hashed_password=get_password_hash(PASSWORDS["alice"]), roles="USER"),
        User(username="bob", hashed_password=get_password_hash(PASSWORDS["bob"]), roles="USER"),
        User(username="carol", hashed_password=get_password_hash(PASSWORDS["carol"]),
             roles="USER", enabled=False),
        User(username="root", hashed_password=get_password_hash(PASSWORDS["root"]), roles="USER,ADMIN"),
    ]
    session.add_all(users)
    session.commit()
    return {user.username: user for user in users}


@pytest.fixture
def auth_engine(store, signer, limiter, session, clock, principals):
    return AuthEngine(
        store=store,
        signer=signer,
        limiter=limiter,
        resolver=DatabasePrincipalResolver(session),
        clock=clock,
    )


@pytest.fixture
def app_state(clock):
    """
    Installs clock, signer and limiter built on the ManualClock into app.state
    and restores the originals afterwards.
    """
    saved = {
        name: getattr(app.state, name)
        for name in ("clock", "token_signer", "rate_limiter")
    }
    configure_components(app.state, clock)
    yield app.state
    for name, value in saved.items():
        setattr(app.state, name, value)


@pytest.fixture
async def client(session: Session, app_state):
    """
    Yields an HTTP client that talks to the app using the test database.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()

