from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./auth.db"
    STORE_TIMEOUT_SECONDS: float = 5.0

    SIGNER_SECRET: str
    ACCESS_TOKEN_EXPIRE_MS: int = 3_600_000
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15

    JANITOR_CRON: str = "0 2 * * *"
    JANITOR_ENABLED: bool = True

    BCRYPT_ROUNDS: int = 12
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("SIGNER_SECRET")
    @classmethod
    def validate_signer_secret(cls, value):
        # HS256 needs a key of at least 256 bits
        if len(value.encode("utf-8")) < 32:
            raise ValueError("SIGNER_SECRET must be at least 32 bytes")
        return value

    @field_validator("ACCESS_TOKEN_EXPIRE_MS", "REFRESH_TOKEN_EXPIRE_DAYS",
                     "MAX_LOGIN_ATTEMPTS", "LOCKOUT_MINUTES")
    @classmethod
    def validate_positive(cls, value):
        if value <= 0:
            raise ValueError("must be positive")
        return value


settings = Settings()
