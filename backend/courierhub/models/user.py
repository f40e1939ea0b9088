import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from courierhub.db import Base


class Role(str, enum.Enum):
    SUPER_ADMIN = "superAdmin"
    ADMIN = "admin"
    STAFF = "staff"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(128), nullable=False)
    role = Column(
        Enum(Role, values_callable=lambda e: [m.value for m in e], native_enum=False, length=16),
        nullable=False,
    )
    # superAdmin accounts have no branch
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    is_manager = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    branch = relationship("Branch", back_populates="users")

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"
