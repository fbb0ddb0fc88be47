from datetime import timezone
from sqlalchemy import Column, DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Stores naive UTC, returns timezone-aware UTC.

    SQLite drops tzinfo on the way back, so comparisons against Clock.now()
    would otherwise mix naive and aware datetimes.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires timezone-aware datetimes")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class CreatedAtMixin:
    # Set explicitly from the injected clock, never by the database
    created_at = Column(UTCDateTime, nullable=False)
