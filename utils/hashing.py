from passlib.context import CryptContext

from core.config import settings


def build_password_context(rounds: int = 12) -> CryptContext:
    return CryptContext(schemes=['bcrypt'], deprecated='auto', bcrypt__rounds=rounds)


bcrypt_context = build_password_context(settings.BCRYPT_ROUNDS)


def get_password_hash(password: str, context: CryptContext = bcrypt_context):
    # Bcrypt has a 72-byte limit, truncate if necessary
    return context.hash(password[:72])


def verify_password(plain_password: str, hashed_password: str, context: CryptContext = bcrypt_context):
    # Bcrypt has a 72-byte limit, truncate if necessary
    return context.verify(plain_password[:72], hashed_password)
