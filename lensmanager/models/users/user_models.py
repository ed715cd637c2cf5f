from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from lensmanager.core.db import Base


class User(Base):
    """Photographer account. Credentials live with the upstream auth service."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    business_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def display_name(self) -> str:
        return self.business_name or self.full_name

    def __repr__(self):
        return f"<User id={self.id} email={self.email}>"
