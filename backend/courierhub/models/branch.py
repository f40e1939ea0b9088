from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from courierhub.db import Base
from courierhub.models.pricing import Zone  # noqa: F401


class Branch(Base):
    """A tenant: one logistics office. Data is partitioned by branch id."""

    __tablename__ = "branches"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    # pricing region; optional until pricing is configured
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    users = relationship("User", back_populates="branch")
    zone = relationship("Zone", back_populates="branches")

    def __repr__(self):
        return f"<Branch id={self.id} name={self.name}>"
