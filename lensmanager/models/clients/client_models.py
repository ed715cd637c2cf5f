from sqlalchemy import Column, Integer, String, Text, Index
from lensmanager.core.db import Base
from lensmanager.models.base.mixins import TimestampMixin, OwnedMixin


class Client(Base, TimestampMixin, OwnedMixin):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)

    full_name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (Index("ix_client_user_name", "user_id", "full_name"),)

    def __repr__(self):
        return f"<Client id={self.id} name={self.full_name} user_id={self.user_id}>"
