from dataclasses import dataclass, field
from typing import Protocol

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from models.users import User
from utils.hashing import bcrypt_context, get_password_hash, verify_password
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PrincipalDescription:
    username: str
    roles: list[str] = field(default_factory=list)
    enabled: bool = True


class PrincipalResolver(Protocol):
    """Identity store consulted by the auth engine and the access gate."""

    def authenticate(self, principal: str, secret: str) -> bool:
        ...

    def describe(self, principal: str) -> PrincipalDescription | None:
        ...


class DatabasePrincipalResolver:
    """
    PrincipalResolver backed by the users table.

    authenticate() does the same bcrypt work whether or not the principal
    exists, so response timing does not reveal which usernames are valid.
    """

    def __init__(self, db: Session, context: CryptContext = bcrypt_context):
        self.db = db
        self.context = context
        self._dummy_hash = None

    def _get_user(self, principal: str) -> User | None:
        user = self.db.query(User).filter(User.username == principal).one_or_none()
        # End the read so no lock is held through the bcrypt check
        self.db.commit()
        return user

    def _burn_hash(self, secret: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = get_password_hash("not-a-real-password", self.context)
        verify_password(secret, self._dummy_hash, self.context)

    def authenticate(self, principal: str, secret: str) -> bool:
        user = self._get_user(principal)

        if user is None:
            self._burn_hash(secret)
            logger.debug("Authentication failed - unknown principal")
            return False

        if not verify_password(secret, user.hashed_password, self.context):
            logger.debug("Authentication failed - wrong secret", extra={"username": principal})
            return False

        if not user.enabled:
            logger.debug("Authentication failed - disabled account", extra={"username": principal})
            return False

        return True

    def describe(self, principal: str) -> PrincipalDescription | None:
        user = self._get_user(principal)
        if user is None:
            return None
        return PrincipalDescription(
            username=user.username,
            roles=user.role_list,
            enabled=bool(user.enabled),
        )
