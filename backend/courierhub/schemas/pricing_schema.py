from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ZoneOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime


class WeightTierOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    min_weight: float
    max_weight: float
    price_cents: int
    is_active: bool


class ZoneSurchargeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    from_zone_id: int
    to_zone_id: int
    surcharge_cents: int
    is_active: bool


class CorporateClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    company_name: str
    contact_person: str
    email: str
    phone: str
    address: str
    credit_limit_cents: Optional[int] = None
    payment_terms: Optional[str] = None
    outstanding_cents: int
    is_active: bool
    created_at: datetime
