from core.database import Base
from sqlalchemy import Column, Boolean, String, Integer, CheckConstraint
from models.mixins import CreatedAtMixin, UTCDateTime


class RefreshToken(Base, CreatedAtMixin):
    """
    One row per issued refresh credential.

    A row is usable while it is not revoked and expires_at is in the future.
    Revoked rows stay until the janitor removes them after expiry.
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="ck_refresh_tokens_expiry_after_issue"),
        # Ids of deleted rows are never handed out again
        {"sqlite_autoincrement": True},
    )

    #pk
    id = Column(Integer, primary_key=True, autoincrement=True)

    token = Column(String(128), nullable=False, unique=True, index=True)
    username = Column(String(255), nullable=False, index=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(UTCDateTime, nullable=True)

    @property
    def issued_at(self):
        return self.created_at

    def is_usable(self, now) -> bool:
        return not self.revoked and now < self.expires_at

    def __repr__(self):
        return (f"<RefreshToken id={self.id} username={self.username!r} "
                f"revoked={self.revoked} expires_at={self.expires_at}>")
