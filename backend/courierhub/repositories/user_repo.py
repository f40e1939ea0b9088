from typing import List, Optional

from sqlalchemy.orm import Session

from courierhub.models.user import Role, User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower().strip()).first()

    def email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        q = self.db.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        return q.first() is not None

    def list_for_branch(self, branch_id: int, role: Optional[Role] = None) -> List[User]:
        q = self.db.query(User).filter(User.branch_id == branch_id)
        if role is not None:
            q = q.filter(User.role == role)
        return q.order_by(User.name, User.id).all()

    def branch_admin_ids(self, branch_id: int) -> List[int]:
        rows = (
            self.db.query(User.id)
            .filter(User.branch_id == branch_id, User.role == Role.ADMIN)
            .all()
        )
        return [r[0] for r in rows]

    def manager_of(self, branch_id: int) -> Optional[User]:
        return (
            self.db.query(User)
            .filter(User.branch_id == branch_id, User.role == Role.ADMIN, User.is_manager.is_(True))
            .order_by(User.id)
            .first()
        )

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def delete_many(self, user_ids: List[int]) -> int:
        if not user_ids:
            return 0
        return self.db.query(User).filter(User.id.in_(user_ids)).delete(synchronize_session=False)
