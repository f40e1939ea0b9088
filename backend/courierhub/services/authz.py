"""
Typed capability checks.

The identity payload is mapped to an `Actor` once per request; every rule here
works on the explicit `Capability`, never on raw claims.
"""
import enum
from dataclasses import dataclass
from typing import Optional

from courierhub.errors import AuthenticationError, ForbiddenError
from courierhub.models.user import Role


class Capability(str, enum.Enum):
    SUPER_ADMIN = "SuperAdmin"
    BRANCH_MANAGER = "BranchManager"
    DISPATCHER = "Dispatcher"
    DELIVERY_STAFF = "DeliveryStaff"


ADMIN_CAPABILITIES = frozenset({Capability.BRANCH_MANAGER, Capability.DISPATCHER})


def capability_for(role, is_manager: bool) -> Capability:
    try:
        role = Role(role)
    except ValueError:
        raise AuthenticationError(f"Unknown role: {role}")
    if role == Role.SUPER_ADMIN:
        return Capability.SUPER_ADMIN
    if role == Role.ADMIN:
        return Capability.BRANCH_MANAGER if is_manager else Capability.DISPATCHER
    return Capability.DELIVERY_STAFF


@dataclass(frozen=True)
class Actor:
    user_id: int
    branch_id: Optional[int]
    capability: Capability

    @property
    def is_admin(self) -> bool:
        return self.capability in ADMIN_CAPABILITIES

    @property
    def is_super_admin(self) -> bool:
        return self.capability == Capability.SUPER_ADMIN

    @property
    def is_staff(self) -> bool:
        return self.capability == Capability.DELIVERY_STAFF

    @classmethod
    def from_claims(cls, claims: dict) -> "Actor":
        """Build an actor from a verified token payload; missing claims are rejected."""
        for key in ("sub", "role", "isManager"):
            if key not in claims:
                raise AuthenticationError(f"Token is missing the {key!r} claim")
        capability = capability_for(claims["role"], bool(claims["isManager"]))
        branch_id = claims.get("tenantId")
        if capability != Capability.SUPER_ADMIN and branch_id is None:
            raise AuthenticationError("Token is missing the 'tenantId' claim")
        return cls(
            user_id=int(claims["sub"]),
            branch_id=int(branch_id) if branch_id is not None else None,
            capability=capability,
        )

    @classmethod
    def for_user(cls, user) -> "Actor":
        return cls(user.id, user.branch_id, capability_for(user.role, user.is_manager))


def require_super_admin(actor: Actor) -> None:
    if not actor.is_super_admin:
        raise ForbiddenError("Only a super admin can do this")


def require_branch_admin(actor: Actor, branch_id: Optional[int] = None) -> None:
    """Branch Manager or Dispatcher, optionally of a specific branch."""
    if not actor.is_admin:
        raise ForbiddenError("Only branch admins can do this")
    if branch_id is not None and actor.branch_id != branch_id:
        raise ForbiddenError("You can only act on your own branch")


def require_branch_manager(actor: Actor) -> None:
    if actor.capability != Capability.BRANCH_MANAGER:
        raise ForbiddenError("Only the Branch Manager can do this")


def is_origin_creator(actor: Actor, shipment) -> bool:
    return (
        shipment.created_by_id is not None
        and actor.user_id == shipment.created_by_id
        and actor.branch_id == shipment.origin_branch_id
    )


def is_current_custodian(actor: Actor, shipment) -> bool:
    return actor.is_admin and actor.branch_id == shipment.current_branch_id


def is_assigned_staff(actor: Actor, shipment) -> bool:
    return actor.is_staff and shipment.assigned_to_id == actor.user_id


def can_view_shipment(actor: Actor, shipment) -> bool:
    if actor.is_super_admin:
        return True
    if actor.is_staff:
        return is_assigned_staff(actor, shipment)
    return actor.branch_id in (
        shipment.origin_branch_id,
        shipment.destination_branch_id,
        shipment.current_branch_id,
    )


def authorize_delete(actor: Actor, shipment) -> None:
    if not is_origin_creator(actor, shipment):
        raise ForbiddenError("Only the origin-branch creator can delete this shipment")
