"""
Shipment pricing: a base price from the weight tier plus a zone-to-zone
surcharge. Amounts are integer cents throughout.

Zones, weight tiers and surcharges are configured by the super admin.
Corporate clients can be managed by any branch admin as well.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from courierhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from courierhub.models.branch import Branch
from courierhub.models.pricing import CorporateClient, WeightTier, Zone, ZoneSurcharge
from courierhub.repositories.branch_repo import BranchRepository
from courierhub.repositories.pricing_repo import PricingRepository
from courierhub.services import authz
from courierhub.services.authz import Actor
from courierhub.services.user_service import clean_email
from courierhub.utils.log import get_logger
from courierhub.utils.sanitize import NOTES_MAX, is_valid_phone, sanitize_input
from courierhub.utils.transactions import smart_transaction

log = get_logger("courierhub.pricing", "pricing")

ZONE_NAME_MAX = 100
COMPANY_NAME_MAX = 200
CONTACT_MAX = 100
PAYMENT_TERMS_MAX = 50


def _number(value, label: str, integer: bool = False):
    """Non-negative number from user input; bools and strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{label} must be a number")
    if integer and not float(value).is_integer():
        raise ValidationError(f"{label} must be a whole number of cents")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative")
    return int(value) if integer else float(value)


def _text(value, label: str, min_len: int, max_len: int) -> str:
    cleaned = sanitize_input(value, max_len)
    if len(cleaned) < min_len:
        raise ValidationError(f"{label} must be at least {min_len} characters")
    return cleaned


def _require_pricing_reader(actor: Actor) -> None:
    if not (actor.is_admin or actor.is_super_admin):
        raise ForbiddenError("Admin access required")


def pick_tier(tiers: List[WeightTier], weight: float) -> Optional[WeightTier]:
    """
    Tier for `weight` from active tiers sorted by min_weight. Bands are
    [min, max) except the last, which is [min, max]; anything heavier than
    the last tier is priced at the last tier.
    """
    for i, tier in enumerate(tiers):
        last = i == len(tiers) - 1
        upper_ok = weight <= tier.max_weight if last else weight < tier.max_weight
        if weight >= tier.min_weight and upper_ok:
            return tier
    if tiers and weight >= tiers[-1].min_weight:
        return tiers[-1]
    return None


def check_tiers(tiers: List[WeightTier]) -> Dict:
    """Report overlaps (errors) and gaps (warnings) in the active tier table."""
    errors, warnings = [], []
    if not tiers:
        return {"is_valid": False, "errors": ["No weight tiers configured"], "warnings": []}
    for i, current in enumerate(tiers):
        nxt = tiers[i + 1] if i + 1 < len(tiers) else None
        if current.max_weight <= current.min_weight:
            errors.append(f"Tier {i + 1}: max weight must be greater than min weight")
        if nxt is None:
            continue
        if current.max_weight > nxt.min_weight:
            errors.append(
                f"Overlap between tier {i + 1} (ends at {current.max_weight} kg) "
                f"and tier {i + 2} (starts at {nxt.min_weight} kg)"
            )
        elif current.max_weight != nxt.min_weight:
            warnings.append(
                f"Gap between tier {i + 1} (ends at {current.max_weight} kg) "
                f"and tier {i + 2} (starts at {nxt.min_weight} kg)"
            )
    if tiers[0].min_weight > 0:
        warnings.append(
            f"First tier starts at {tiers[0].min_weight} kg; lighter packages cannot be priced"
        )
    return {"is_valid": not errors, "errors": errors, "warnings": warnings}


class PricingService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PricingRepository(db)
        self.branches = BranchRepository(db)

    # --- calculation -------------------------------------------------------

    def calculate(self, actor: Actor, weight, origin_branch_id: int, destination_branch_id: int) -> Dict:
        """Price a package going from one branch to another."""
        _require_pricing_reader(actor)
        weight = _number(weight, "Weight")

        origin = self.branches.get(origin_branch_id)
        destination = self.branches.get(destination_branch_id)
        if not origin or not destination:
            raise NotFoundError("Origin or destination branch not found")
        missing = []
        if origin.zone_id is None:
            missing.append("Origin branch does not have a zone assigned")
        if destination.zone_id is None:
            missing.append("Destination branch does not have a zone assigned")
        if missing:
            raise ValidationError("Zone assignment error: " + "; ".join(missing))

        tiers = self.repo.list_tiers()
        if not tiers:
            raise ValidationError("No weight tiers configured")
        tier = pick_tier(tiers, weight)
        if tier is None:
            raise ValidationError(f"No weight tier found for {weight} kg")

        surcharge = self.repo.surcharge_for(origin.zone_id, destination.zone_id)
        surcharge_cents = surcharge.surcharge_cents if surcharge else 0
        same_zone = origin.zone_id == destination.zone_id
        return {
            "base_price_cents": tier.price_cents,
            "zone_surcharge_cents": surcharge_cents,
            "final_price_cents": tier.price_cents + surcharge_cents,
            "breakdown": {
                "weight": weight,
                "weight_tier": {
                    "min_weight": tier.min_weight,
                    "max_weight": tier.max_weight,
                    "price_cents": tier.price_cents,
                },
                "from_zone": origin.zone.name,
                "to_zone": destination.zone.name,
                "is_same_zone": same_zone,
                "surcharge_type": "same-zone" if same_zone else "different-zone",
            },
        }

    # --- zones -------------------------------------------------------------

    def _zone_or_404(self, zone_id: int) -> Zone:
        zone = self.repo.get_zone(zone_id)
        if not zone:
            raise NotFoundError("Zone not found")
        return zone

    def list_zones(self, actor: Actor, include_inactive: bool = False) -> List[Zone]:
        authz.require_super_admin(actor)
        return self.repo.list_zones(include_inactive)

    def get_zone(self, actor: Actor, zone_id: int) -> Tuple[Zone, List[Branch]]:
        authz.require_super_admin(actor)
        zone = self._zone_or_404(zone_id)
        return zone, self.repo.branches_in_zone(zone.id)

    def create_zone(self, actor: Actor, name, description=None, is_active: bool = True) -> Zone:
        authz.require_super_admin(actor)
        name = _text(name, "Zone name", 2, ZONE_NAME_MAX)
        if self.repo.zone_name_taken(name):
            raise ConflictError("Zone with this name already exists")
        with smart_transaction(self.db):
            zone = Zone(
                name=name,
                description=sanitize_input(description, NOTES_MAX) or None,
                is_active=bool(is_active),
                created_by_id=actor.user_id,
            )
            self.db.add(zone)
        log.info("zone %s (%s) created", zone.id, zone.name)
        return zone

    def update_zone(self, actor: Actor, zone_id: int, name=None, description=None, is_active=None) -> Zone:
        authz.require_super_admin(actor)
        zone = self._zone_or_404(zone_id)
        if name is not None:
            name = _text(name, "Zone name", 2, ZONE_NAME_MAX)
            if self.repo.zone_name_taken(name, exclude_id=zone.id):
                raise ConflictError("Zone with this name already exists")
        with smart_transaction(self.db):
            if name is not None:
                zone.name = name
            if description is not None:
                zone.description = sanitize_input(description, NOTES_MAX) or None
            if is_active is not None:
                zone.is_active = bool(is_active)
        return zone

    def delete_zone(self, actor: Actor, zone_id: int) -> None:
        authz.require_super_admin(actor)
        zone = self._zone_or_404(zone_id)
        assigned = self.repo.count_branches_in_zone(zone.id)
        if assigned:
            raise ValidationError(
                f"Cannot delete zone: {assigned} branch(es) are assigned to it. Reassign them first."
            )
        with smart_transaction(self.db):
            self.db.query(ZoneSurcharge).filter(
                (ZoneSurcharge.from_zone_id == zone.id) | (ZoneSurcharge.to_zone_id == zone.id)
            ).delete(synchronize_session=False)
            self.db.delete(zone)
        log.info("zone %s deleted", zone_id)

    def assign_zone(self, branch: Branch, zone_id: Optional[int]) -> None:
        """Stage a branch's zone change; the caller owns the transaction."""
        if zone_id is not None:
            zone = self._zone_or_404(zone_id)
            if not zone.is_active:
                raise ValidationError("Cannot assign an inactive zone")
        branch.zone_id = zone_id

    # --- weight tiers ------------------------------------------------------

    def _tier_or_404(self, tier_id: int) -> WeightTier:
        tier = self.repo.get_tier(tier_id)
        if not tier:
            raise NotFoundError("Weight tier not found")
        return tier

    def _check_range(self, min_weight: float, max_weight: float, exclude_id: Optional[int] = None) -> None:
        if max_weight <= min_weight:
            raise ValidationError("Max weight must be greater than min weight")
        clash = self.repo.overlapping_tier(min_weight, max_weight, exclude_id=exclude_id)
        if clash:
            raise ValidationError(
                f"Weight tier overlaps with existing tier ({clash.min_weight} - {clash.max_weight} kg)"
            )

    def list_tiers(self, actor: Actor, include_inactive: bool = False) -> List[WeightTier]:
        authz.require_super_admin(actor)
        return self.repo.list_tiers(include_inactive)

    def get_tier(self, actor: Actor, tier_id: int) -> WeightTier:
        authz.require_super_admin(actor)
        return self._tier_or_404(tier_id)

    def tier_report(self) -> Dict:
        return check_tiers(self.repo.list_tiers())

    def create_tier(self, actor: Actor, min_weight, max_weight, price_cents, is_active: bool = True) -> WeightTier:
        authz.require_super_admin(actor)
        min_weight = _number(min_weight, "Min weight")
        max_weight = _number(max_weight, "Max weight")
        price_cents = _number(price_cents, "Price", integer=True)
        if is_active:
            self._check_range(min_weight, max_weight)
        elif max_weight <= min_weight:
            raise ValidationError("Max weight must be greater than min weight")
        with smart_transaction(self.db):
            tier = WeightTier(
                min_weight=min_weight,
                max_weight=max_weight,
                price_cents=price_cents,
                is_active=bool(is_active),
                created_by_id=actor.user_id,
            )
            self.db.add(tier)
        log.info("weight tier %s: %s-%s kg at %s", tier.id, min_weight, max_weight, price_cents)
        return tier

    def update_tier(
        self, actor: Actor, tier_id: int, min_weight=None, max_weight=None, price_cents=None, is_active=None
    ) -> WeightTier:
        authz.require_super_admin(actor)
        tier = self._tier_or_404(tier_id)
        new_min = _number(min_weight, "Min weight") if min_weight is not None else tier.min_weight
        new_max = _number(max_weight, "Max weight") if max_weight is not None else tier.max_weight
        new_active = bool(is_active) if is_active is not None else tier.is_active
        if new_active:
            self._check_range(new_min, new_max, exclude_id=tier.id)
        elif new_max <= new_min:
            raise ValidationError("Max weight must be greater than min weight")
        with smart_transaction(self.db):
            tier.min_weight = new_min
            tier.max_weight = new_max
            tier.is_active = new_active
            if price_cents is not None:
                tier.price_cents = _number(price_cents, "Price", integer=True)
        return tier

    def delete_tier(self, actor: Actor, tier_id: int) -> None:
        authz.require_super_admin(actor)
        tier = self._tier_or_404(tier_id)
        with smart_transaction(self.db):
            self.db.delete(tier)
        log.info("weight tier %s deleted", tier_id)

    # --- zone surcharges ---------------------------------------------------

    def _surcharge_or_404(self, surcharge_id: int) -> ZoneSurcharge:
        surcharge = self.repo.get_surcharge(surcharge_id)
        if not surcharge:
            raise NotFoundError("Zone surcharge not found")
        return surcharge

    def list_surcharges(self, actor: Actor, include_inactive: bool = False) -> List[ZoneSurcharge]:
        authz.require_super_admin(actor)
        return self.repo.list_surcharges(include_inactive)

    def set_surcharge(
        self, actor: Actor, from_zone_id: int, to_zone_id: int, surcharge_cents, is_active=None
    ) -> Tuple[ZoneSurcharge, bool]:
        """Create the surcharge for a zone pair, or update the existing one. Returns (row, created)."""
        authz.require_super_admin(actor)
        surcharge_cents = _number(surcharge_cents, "Surcharge", integer=True)
        if not self.repo.get_zone(from_zone_id) or not self.repo.get_zone(to_zone_id):
            raise NotFoundError("One or both zones not found")

        existing = self.repo.surcharge_for(from_zone_id, to_zone_id, active_only=False)
        with smart_transaction(self.db):
            if existing:
                existing.surcharge_cents = surcharge_cents
                if is_active is not None:
                    existing.is_active = bool(is_active)
                row, created = existing, False
            else:
                row = ZoneSurcharge(
                    from_zone_id=from_zone_id,
                    to_zone_id=to_zone_id,
                    surcharge_cents=surcharge_cents,
                    is_active=True if is_active is None else bool(is_active),
                    created_by_id=actor.user_id,
                )
                self.db.add(row)
                created = True
        log.info("surcharge zone %s -> %s set to %s", from_zone_id, to_zone_id, surcharge_cents)
        return row, created

    def update_surcharge(self, actor: Actor, surcharge_id: int, surcharge_cents=None, is_active=None) -> ZoneSurcharge:
        authz.require_super_admin(actor)
        row = self._surcharge_or_404(surcharge_id)
        if surcharge_cents is not None:
            surcharge_cents = _number(surcharge_cents, "Surcharge", integer=True)
        with smart_transaction(self.db):
            if surcharge_cents is not None:
                row.surcharge_cents = surcharge_cents
            if is_active is not None:
                row.is_active = bool(is_active)
        return row

    def delete_surcharge(self, actor: Actor, surcharge_id: int) -> None:
        authz.require_super_admin(actor)
        row = self._surcharge_or_404(surcharge_id)
        with smart_transaction(self.db):
            self.db.delete(row)

    # --- corporate clients -------------------------------------------------

    def _client_or_404(self, client_id: int) -> CorporateClient:
        client = self.repo.get_client(client_id)
        if not client:
            raise NotFoundError("Corporate client not found")
        return client

    def _clean_client_fields(self, fields: Dict, exclude_id: Optional[int] = None) -> Dict:
        cleaned = {}
        if fields.get("company_name") is not None:
            cleaned["company_name"] = _text(fields["company_name"], "Company name", 2, COMPANY_NAME_MAX)
            if self.repo.client_taken(company_name=cleaned["company_name"], exclude_id=exclude_id):
                raise ConflictError("Another client with this company name already exists")
        if fields.get("contact_person") is not None:
            cleaned["contact_person"] = _text(fields["contact_person"], "Contact person", 2, CONTACT_MAX)
        if fields.get("email") is not None:
            cleaned["email"] = clean_email(fields["email"])
            if self.repo.client_taken(email=cleaned["email"], exclude_id=exclude_id):
                raise ConflictError("Another client with this email already exists")
        if fields.get("phone") is not None:
            phone = sanitize_input(fields["phone"], 32)
            if not is_valid_phone(phone):
                raise ValidationError("Invalid phone format")
            cleaned["phone"] = phone
        if fields.get("address") is not None:
            cleaned["address"] = _text(fields["address"], "Address", 5, NOTES_MAX)
        if fields.get("credit_limit_cents") is not None:
            cleaned["credit_limit_cents"] = _number(fields["credit_limit_cents"], "Credit limit", integer=True)
        if fields.get("payment_terms") is not None:
            cleaned["payment_terms"] = sanitize_input(fields["payment_terms"], PAYMENT_TERMS_MAX) or None
        if fields.get("outstanding_cents") is not None:
            cleaned["outstanding_cents"] = _number(fields["outstanding_cents"], "Outstanding amount", integer=True)
        if fields.get("is_active") is not None:
            cleaned["is_active"] = bool(fields["is_active"])
        return cleaned

    def list_clients(self, actor: Actor, include_inactive: bool = False) -> List[CorporateClient]:
        _require_pricing_reader(actor)
        return self.repo.list_clients(include_inactive)

    def get_client(self, actor: Actor, client_id: int) -> CorporateClient:
        _require_pricing_reader(actor)
        return self._client_or_404(client_id)

    def create_client(self, actor: Actor, **fields) -> CorporateClient:
        _require_pricing_reader(actor)
        required = ("company_name", "contact_person", "email", "phone", "address")
        if any(not fields.get(k) for k in required):
            raise ValidationError("company_name, contact_person, email, phone and address are required")
        cleaned = self._clean_client_fields(fields)
        with smart_transaction(self.db):
            client = CorporateClient(created_by_id=actor.user_id, **cleaned)
            self.db.add(client)
        log.info("corporate client %s (%s) created by user=%s", client.id, client.company_name, actor.user_id)
        return client

    def update_client(self, actor: Actor, client_id: int, **fields) -> CorporateClient:
        _require_pricing_reader(actor)
        client = self._client_or_404(client_id)
        cleaned = self._clean_client_fields(fields, exclude_id=client.id)
        if not cleaned:
            raise ValidationError("Nothing to update")
        with smart_transaction(self.db):
            for field, value in cleaned.items():
                setattr(client, field, value)
        return client

    def delete_client(self, actor: Actor, client_id: int) -> None:
        _require_pricing_reader(actor)
        client = self._client_or_404(client_id)
        with smart_transaction(self.db):
            self.db.delete(client)
        log.info("corporate client %s deleted by user=%s", client_id, actor.user_id)
