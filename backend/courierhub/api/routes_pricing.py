from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courierhub.api.deps import get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.schemas.pricing_schema import CorporateClientOut, WeightTierOut, ZoneOut, ZoneSurchargeOut
from courierhub.services.authz import Actor
from courierhub.services.pricing_service import PricingService

router = APIRouter(tags=["pricing"])


class CalculateIn(BaseModel):
    weight: float
    origin_branch_id: int
    destination_branch_id: int


class ZoneIn(BaseModel):
    name: str
    description: Optional[str] = None
    is_active: bool = True


class ZoneUpdateIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class WeightTierIn(BaseModel):
    min_weight: float
    max_weight: float
    price_cents: int
    is_active: bool = True


class WeightTierUpdateIn(BaseModel):
    min_weight: Optional[float] = None
    max_weight: Optional[float] = None
    price_cents: Optional[int] = None
    is_active: Optional[bool] = None


class SurchargeIn(BaseModel):
    from_zone_id: int
    to_zone_id: int
    surcharge_cents: int
    is_active: Optional[bool] = None


class SurchargeUpdateIn(BaseModel):
    surcharge_cents: Optional[int] = None
    is_active: Optional[bool] = None


class CorporateClientIn(BaseModel):
    company_name: str
    contact_person: str
    email: str
    phone: str
    address: str
    credit_limit_cents: Optional[int] = None
    payment_terms: Optional[str] = None
    is_active: bool = True


class CorporateClientUpdateIn(BaseModel):
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    credit_limit_cents: Optional[int] = None
    payment_terms: Optional[str] = None
    outstanding_cents: Optional[int] = None
    is_active: Optional[bool] = None


def _dump(schema, obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


@router.post("/calculate", summary="Price a package between two branches")
def calculate(payload: CalculateIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        return PricingService(db).calculate(
            actor, payload.weight, payload.origin_branch_id, payload.destination_branch_id
        )
    except CourierHubError as e:
        raise http_error(e)


# --- zones ---------------------------------------------------------------


@router.get("/zones")
def list_zones(
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        zones = PricingService(db).list_zones(actor, include_inactive)
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_dump(ZoneOut, z) for z in zones], "total": len(zones)}


@router.post("/zones", status_code=201)
def create_zone(payload: ZoneIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        zone = PricingService(db).create_zone(actor, payload.name, payload.description, payload.is_active)
    except CourierHubError as e:
        raise http_error(e)
    return _dump(ZoneOut, zone)


@router.get("/zones/{zone_id}", summary="A zone and the branches assigned to it")
def get_zone(zone_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        zone, branches = PricingService(db).get_zone(actor, zone_id)
    except CourierHubError as e:
        raise http_error(e)
    body = _dump(ZoneOut, zone)
    body["branches"] = [{"id": b.id, "name": b.name} for b in branches]
    return body


@router.patch("/zones/{zone_id}")
def update_zone(
    zone_id: int,
    payload: ZoneUpdateIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        zone = PricingService(db).update_zone(
            actor, zone_id, name=payload.name, description=payload.description, is_active=payload.is_active
        )
    except CourierHubError as e:
        raise http_error(e)
    return _dump(ZoneOut, zone)


@router.delete("/zones/{zone_id}")
def delete_zone(zone_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        PricingService(db).delete_zone(actor, zone_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}


# --- weight tiers --------------------------------------------------------


@router.get("/weight-tiers")
def list_weight_tiers(
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    svc = PricingService(db)
    try:
        tiers = svc.list_tiers(actor, include_inactive)
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_dump(WeightTierOut, t) for t in tiers], "total": len(tiers), "validation": svc.tier_report()}


@router.post("/weight-tiers", status_code=201)
def create_weight_tier(payload: WeightTierIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    svc = PricingService(db)
    try:
        tier = svc.create_tier(actor, payload.min_weight, payload.max_weight, payload.price_cents, payload.is_active)
    except CourierHubError as e:
        raise http_error(e)
    body = _dump(WeightTierOut, tier)
    body["validation"] = svc.tier_report()
    return body


@router.get("/weight-tiers/{tier_id}")
def get_weight_tier(tier_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        return _dump(WeightTierOut, PricingService(db).get_tier(actor, tier_id))
    except CourierHubError as e:
        raise http_error(e)


@router.patch("/weight-tiers/{tier_id}")
def update_weight_tier(
    tier_id: int,
    payload: WeightTierUpdateIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    svc = PricingService(db)
    try:
        tier = svc.update_tier(
            actor,
            tier_id,
            min_weight=payload.min_weight,
            max_weight=payload.max_weight,
            price_cents=payload.price_cents,
            is_active=payload.is_active,
        )
    except CourierHubError as e:
        raise http_error(e)
    body = _dump(WeightTierOut, tier)
    body["validation"] = svc.tier_report()
    return body


@router.delete("/weight-tiers/{tier_id}")
def delete_weight_tier(tier_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        PricingService(db).delete_tier(actor, tier_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}


# --- zone surcharges -----------------------------------------------------


@router.get("/zone-surcharges")
def list_surcharges(
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        rows = PricingService(db).list_surcharges(actor, include_inactive)
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_dump(ZoneSurchargeOut, r) for r in rows], "total": len(rows)}


@router.post("/zone-surcharges", summary="Create or update the surcharge for a zone pair")
def set_surcharge(
    payload: SurchargeIn,
    response: Response,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        row, created = PricingService(db).set_surcharge(
            actor, payload.from_zone_id, payload.to_zone_id, payload.surcharge_cents, payload.is_active
        )
    except CourierHubError as e:
        raise http_error(e)
    response.status_code = 201 if created else 200
    return _dump(ZoneSurchargeOut, row)


@router.patch("/zone-surcharges/{surcharge_id}")
def update_surcharge(
    surcharge_id: int,
    payload: SurchargeUpdateIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        row = PricingService(db).update_surcharge(
            actor, surcharge_id, surcharge_cents=payload.surcharge_cents, is_active=payload.is_active
        )
    except CourierHubError as e:
        raise http_error(e)
    return _dump(ZoneSurchargeOut, row)


@router.delete("/zone-surcharges/{surcharge_id}")
def delete_surcharge(surcharge_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        PricingService(db).delete_surcharge(actor, surcharge_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}


# --- corporate clients ---------------------------------------------------


@router.get("/corporate-clients")
def list_clients(
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        clients = PricingService(db).list_clients(actor, include_inactive)
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_dump(CorporateClientOut, c) for c in clients], "total": len(clients)}


@router.post("/corporate-clients", status_code=201)
def create_client(payload: CorporateClientIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        client = PricingService(db).create_client(actor, **payload.model_dump())
    except CourierHubError as e:
        raise http_error(e)
    return _dump(CorporateClientOut, client)


@router.get("/corporate-clients/{client_id}")
def get_client(client_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        return _dump(CorporateClientOut, PricingService(db).get_client(actor, client_id))
    except CourierHubError as e:
        raise http_error(e)


@router.patch("/corporate-clients/{client_id}")
def update_client(
    client_id: int,
    payload: CorporateClientUpdateIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        client = PricingService(db).update_client(actor, client_id, **payload.model_dump(exclude_none=True))
    except CourierHubError as e:
        raise http_error(e)
    return _dump(CorporateClientOut, client)


@router.delete("/corporate-clients/{client_id}")
def delete_client(client_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        PricingService(db).delete_client(actor, client_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}
