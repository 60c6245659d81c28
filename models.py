import uuid

from sqlalchemy import Column, DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from database import Base


class User(Base):
    """
    A registered person.

    The secret is only ever stored as a one-way hash; read paths project
    the columns they return and never include ``secret_hash``.
    """

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    secret_hash = Column(String(256), nullable=False)
    phone = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
