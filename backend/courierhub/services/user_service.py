from typing import List, Optional

from sqlalchemy.orm import Session

from courierhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from courierhub.models.user import Role, User
from courierhub.repositories.shipment_repo import ShipmentRepository
from courierhub.repositories.user_repo import UserRepository
from courierhub.services import authz
from courierhub.services.auth_service import hash_password
from courierhub.services.authz import Actor, Capability
from courierhub.utils.log import get_logger
from courierhub.utils.sanitize import NAME_MAX, is_valid_email, sanitize_input
from courierhub.utils.transactions import smart_transaction

log = get_logger("courierhub.users", "users")

PASSWORD_MIN = 8


def clean_name(name) -> str:
    name = sanitize_input(name, NAME_MAX)
    if not name:
        raise ValidationError("Name is required")
    return name


def clean_email(email) -> str:
    email = (email or "").strip().lower()
    if not is_valid_email(email):
        raise ValidationError("Invalid email address")
    return email


def check_password(password) -> str:
    if not password or len(password) < PASSWORD_MIN:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN} characters")
    return password


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository(db)
        self.shipments = ShipmentRepository(db)

    def new_user(
        self,
        name,
        email,
        password,
        role: Role,
        branch_id: Optional[int],
        is_manager: bool = False,
    ) -> User:
        """Validate and stage a user row; the caller owns the transaction."""
        email = clean_email(email)
        if self.repo.email_taken(email):
            raise ConflictError("A user with this email already exists")
        user = User(
            name=clean_name(name),
            email=email,
            password_hash=hash_password(check_password(password)),
            role=role,
            branch_id=branch_id,
            is_manager=is_manager,
        )
        return self.repo.add(user)

    def ensure_superadmin(self, email: str, password: str) -> bool:
        """Create the bootstrap super admin if no account uses that email yet."""
        if self.repo.get_by_email(email):
            return False
        with smart_transaction(self.db):
            self.new_user("Super Admin", email, password, Role.SUPER_ADMIN, None)
        return True

    # --- branch user management --------------------------------------------

    def create_user(self, actor: Actor, name, email, password, role) -> User:
        """
        Branch Managers add dispatchers and delivery staff, Dispatchers add
        delivery staff. New admins are never managers.
        """
        authz.require_branch_admin(actor)
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")
        if role == Role.SUPER_ADMIN:
            raise ForbiddenError("Super admins cannot be created here")
        if role == Role.ADMIN and actor.capability != Capability.BRANCH_MANAGER:
            raise ForbiddenError("Only the Branch Manager can add admins")

        with smart_transaction(self.db):
            user = self.new_user(name, email, password, role, actor.branch_id, is_manager=False)
        log.info("user=%s created %s %s in branch %s", actor.user_id, role.value, user.id, actor.branch_id)
        return user

    def list_users(self, actor: Actor, role: Optional[str] = None) -> List[User]:
        authz.require_branch_admin(actor)
        role_filter = None
        if role:
            try:
                role_filter = Role(role)
            except ValueError:
                raise ValidationError(f"Unknown role: {role}")
        return self.repo.list_for_branch(actor.branch_id, role_filter)

    def get_user(self, actor: Actor, user_id: int) -> User:
        authz.require_branch_admin(actor)
        user = self.repo.get(user_id)
        if not user or user.branch_id != actor.branch_id:
            raise NotFoundError("User not found")
        return user

    def _managed_target(self, actor: Actor, user_id: int) -> User:
        authz.require_branch_manager(actor)
        user = self.get_user(actor, user_id)
        if user.id == actor.user_id:
            raise ForbiddenError("You cannot modify your own account here")
        if user.is_manager:
            raise ForbiddenError("Branch Managers cannot be modified here")
        return user

    def update_user(
        self,
        actor: Actor,
        user_id: int,
        name=None,
        email=None,
        password=None,
    ) -> User:
        user = self._managed_target(actor, user_id)
        changes = {}
        if name is not None:
            changes["name"] = clean_name(name)
        if email is not None:
            email = clean_email(email)
            if self.repo.email_taken(email, exclude_id=user.id):
                raise ConflictError("A user with this email already exists")
            changes["email"] = email
        if password:
            changes["password_hash"] = hash_password(check_password(password))
        if not changes:
            raise ValidationError("Nothing to update")

        with smart_transaction(self.db):
            for field, value in changes.items():
                setattr(user, field, value)
        log.info("user=%s updated user %s (%s)", actor.user_id, user.id, ", ".join(sorted(changes)))
        return user

    def delete_user(self, actor: Actor, user_id: int) -> None:
        user = self._managed_target(actor, user_id)
        if user.role == Role.STAFF and self.shipments.count_active_assignments(user.id):
            raise ConflictError("Staff member still has active deliveries assigned")
        with smart_transaction(self.db):
            self.db.delete(user)
        log.info("user=%s deleted user %s", actor.user_id, user_id)
