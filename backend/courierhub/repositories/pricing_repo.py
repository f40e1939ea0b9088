from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from courierhub.models.branch import Branch
from courierhub.models.pricing import CorporateClient, WeightTier, Zone, ZoneSurcharge


class PricingRepository:
    def __init__(self, db: Session):
        self.db = db

    # zones

    def get_zone(self, zone_id: int) -> Optional[Zone]:
        return self.db.query(Zone).filter(Zone.id == zone_id).first()

    def zone_name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        q = self.db.query(Zone.id).filter(Zone.name == name)
        if exclude_id is not None:
            q = q.filter(Zone.id != exclude_id)
        return q.first() is not None

    def list_zones(self, include_inactive: bool = False) -> List[Zone]:
        q = self.db.query(Zone)
        if not include_inactive:
            q = q.filter(Zone.is_active.is_(True))
        return q.order_by(Zone.name).all()

    def branches_in_zone(self, zone_id: int) -> List[Branch]:
        return self.db.query(Branch).filter(Branch.zone_id == zone_id).order_by(Branch.name).all()

    def count_branches_in_zone(self, zone_id: int) -> int:
        return self.db.query(func.count(Branch.id)).filter(Branch.zone_id == zone_id).scalar() or 0

    # weight tiers

    def get_tier(self, tier_id: int) -> Optional[WeightTier]:
        return self.db.query(WeightTier).filter(WeightTier.id == tier_id).first()

    def list_tiers(self, include_inactive: bool = False) -> List[WeightTier]:
        q = self.db.query(WeightTier)
        if not include_inactive:
            q = q.filter(WeightTier.is_active.is_(True))
        return q.order_by(WeightTier.min_weight, WeightTier.id).all()

    def overlapping_tier(
        self, min_weight: float, max_weight: float, exclude_id: Optional[int] = None
    ) -> Optional[WeightTier]:
        q = self.db.query(WeightTier).filter(
            WeightTier.is_active.is_(True),
            WeightTier.min_weight < max_weight,
            WeightTier.max_weight > min_weight,
        )
        if exclude_id is not None:
            q = q.filter(WeightTier.id != exclude_id)
        return q.order_by(WeightTier.min_weight).first()

    # surcharges

    def get_surcharge(self, surcharge_id: int) -> Optional[ZoneSurcharge]:
        return self.db.query(ZoneSurcharge).filter(ZoneSurcharge.id == surcharge_id).first()

    def surcharge_for(self, from_zone_id: int, to_zone_id: int, active_only: bool = True) -> Optional[ZoneSurcharge]:
        q = self.db.query(ZoneSurcharge).filter(
            ZoneSurcharge.from_zone_id == from_zone_id,
            ZoneSurcharge.to_zone_id == to_zone_id,
        )
        if active_only:
            q = q.filter(ZoneSurcharge.is_active.is_(True))
        return q.first()

    def list_surcharges(self, include_inactive: bool = False) -> List[ZoneSurcharge]:
        q = self.db.query(ZoneSurcharge)
        if not include_inactive:
            q = q.filter(ZoneSurcharge.is_active.is_(True))
        return q.order_by(ZoneSurcharge.from_zone_id, ZoneSurcharge.to_zone_id).all()

    # corporate clients

    def get_client(self, client_id: int) -> Optional[CorporateClient]:
        return self.db.query(CorporateClient).filter(CorporateClient.id == client_id).first()

    def client_taken(self, company_name=None, email=None, exclude_id: Optional[int] = None) -> bool:
        q = self.db.query(CorporateClient.id)
        if company_name is not None:
            q = q.filter(CorporateClient.company_name == company_name)
        if email is not None:
            q = q.filter(CorporateClient.email == email)
        if exclude_id is not None:
            q = q.filter(CorporateClient.id != exclude_id)
        return q.first() is not None

    def list_clients(self, include_inactive: bool = False) -> List[CorporateClient]:
        q = self.db.query(CorporateClient)
        if not include_inactive:
            q = q.filter(CorporateClient.is_active.is_(True))
        return q.order_by(CorporateClient.company_name).all()
