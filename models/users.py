from core.database import Base
from sqlalchemy import Column, Integer, String, Boolean


class User(Base):
    """
    Principal record consulted by DatabasePrincipalResolver.

    The auth service only reads this table; rows are provisioned outside it
    (see scripts/seed_principal.py).
    """
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    username = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    # Comma separated, e.g. "USER,ADMIN"
    roles = Column(String(255), default="USER", nullable=False)

    @property
    def role_list(self) -> list[str]:
        return [role.strip() for role in (self.roles or "").split(",") if role.strip()]
