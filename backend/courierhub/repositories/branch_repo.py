from typing import List, Optional

from sqlalchemy.orm import Session

from courierhub.models.branch import Branch


class BranchRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, branch_id: int) -> Optional[Branch]:
        return self.db.query(Branch).filter(Branch.id == branch_id).first()

    def exists(self, branch_id: int) -> bool:
        return self.db.query(Branch.id).filter(Branch.id == branch_id).first() is not None

    def name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        q = self.db.query(Branch.id).filter(Branch.name == name)
        if exclude_id is not None:
            q = q.filter(Branch.id != exclude_id)
        return q.first() is not None

    def list(self) -> List[Branch]:
        return self.db.query(Branch).order_by(Branch.created_at.desc(), Branch.id.desc()).all()
