import pytest
from pydantic import ValidationError

from core.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.setenv("SIGNER_SECRET", "x" * 32)
    for name in ("ACCESS_TOKEN_EXPIRE_MS", "REFRESH_TOKEN_EXPIRE_DAYS", "MAX_LOGIN_ATTEMPTS",
                 "LOCKOUT_MINUTES", "JANITOR_CRON"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.ACCESS_TOKEN_EXPIRE_MS == 3_600_000
    assert settings.REFRESH_TOKEN_EXPIRE_DAYS == 30
    assert settings.MAX_LOGIN_ATTEMPTS == 5
    assert settings.LOCKOUT_MINUTES == 15
    assert settings.JANITOR_CRON == "0 2 * * *"


def test_short_signer_secret_rejected(monkeypatch):
    monkeypatch.setenv("SIGNER_SECRET", "x" * 31)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_non_positive_ttl_rejected(monkeypatch):
    monkeypatch.setenv("SIGNER_SECRET", "x" * 32)
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MS", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
