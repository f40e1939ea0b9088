from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from courierhub.db import Base


def _now():
    return datetime.now(timezone.utc)


class Zone(Base):
    """A pricing region. Branches are assigned to at most one zone."""

    __tablename__ = "zones"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    branches = relationship("Branch", back_populates="zone")

    def __repr__(self):
        return f"<Zone id={self.id} name={self.name}>"


class WeightTier(Base):
    """
    Base price for a weight band. min_weight is inclusive and max_weight
    exclusive, except on the heaviest active tier where both ends are inclusive.
    """

    __tablename__ = "weight_tiers"
    __table_args__ = (
        CheckConstraint("max_weight > min_weight", name="ck_weight_tier_range"),
        CheckConstraint("price_cents >= 0", name="ck_weight_tier_price"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    min_weight = Column(Float, nullable=False, index=True)
    max_weight = Column(Float, nullable=False)
    price_cents = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now)


class ZoneSurcharge(Base):
    """Extra charge for shipping from one zone to another (the same zone is allowed)."""

    __tablename__ = "zone_surcharges"
    __table_args__ = (UniqueConstraint("from_zone_id", "to_zone_id", name="uq_zone_surcharge_route"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    from_zone_id = Column(Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=False, index=True)
    to_zone_id = Column(Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=False, index=True)
    surcharge_cents = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    from_zone = relationship("Zone", foreign_keys=[from_zone_id])
    to_zone = relationship("Zone", foreign_keys=[to_zone_id])


class CorporateClient(Base):
    __tablename__ = "corporate_clients"
    id = Column(Integer, primary_key=True, autoincrement=True)
    company_name = Column(String(200), unique=True, nullable=False, index=True)
    contact_person = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(32), nullable=False)
    address = Column(String(500), nullable=False)
    credit_limit_cents = Column(Integer, nullable=True)
    payment_terms = Column(String(50), nullable=True)  # e.g. "Net 30"
    outstanding_cents = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    def __repr__(self):
        return f"<CorporateClient id={self.id} company={self.company_name}>"
