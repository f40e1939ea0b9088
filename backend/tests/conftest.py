import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="courierhub-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_tmp, 'test.db')}")
os.environ.setdefault("PROOF_UPLOAD_DIR", os.path.join(_tmp, "proofs"))
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from courierhub.db import SessionLocal, init_db  # noqa: E402
from courierhub.models.branch import Branch  # noqa: E402
from courierhub.models.user import Role, User  # noqa: E402
from courierhub.services.auth_service import hash_password, login_limiter  # noqa: E402

PASSWORD = "secret-pass-1"

PARTY_A = {"name": "Sam Sender", "address": "1 High Street", "phone": "+1 555 123 4567"}
PARTY_B = {"name": "Rita Recipient", "address": "22 Low Road", "phone": "(555) 987-6543"}
PACKAGE = {"weight": 2.5, "type": "parcel", "details": "books"}


class World:
    """Ids of the seeded branches and users."""

    def __init__(self, **ids):
        self.__dict__.update(ids)


@pytest.fixture(autouse=True)
def fresh_db():
    init_db(reset=True)
    login_limiter.reset()
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def world():
    """
    Branch A: manager, dispatcher, staff Y.
    Branch B: manager, staff X.
    Plus a super admin with no branch.
    """
    s = SessionLocal()
    try:
        a = Branch(name="Alpha")
        b = Branch(name="Bravo")
        s.add_all([a, b])
        s.flush()
        pw = hash_password(PASSWORD)

        def user(name, email, role, branch, manager=False):
            u = User(
                name=name,
                email=email,
                password_hash=pw,
                role=role,
                branch_id=branch.id if branch else None,
                is_manager=manager,
            )
            s.add(u)
            return u

        root = user("Root", "root@example.com", Role.SUPER_ADMIN, None)
        a_mgr = user("Alpha Manager", "mgr@alpha.example.com", Role.ADMIN, a, manager=True)
        a_disp = user("Alpha Dispatcher", "disp@alpha.example.com", Role.ADMIN, a)
        staff_y = user("Yara Courier", "y@alpha.example.com", Role.STAFF, a)
        b_mgr = user("Bravo Manager", "mgr@bravo.example.com", Role.ADMIN, b, manager=True)
        staff_x = user("Xavi Courier", "x@bravo.example.com", Role.STAFF, b)
        s.commit()
        return World(
            branch_a=a.id,
            branch_b=b.id,
            root=root.id,
            a_mgr=a_mgr.id,
            a_disp=a_disp.id,
            staff_y=staff_y.id,
            b_mgr=b_mgr.id,
            staff_x=staff_x.id,
        )
    finally:
        s.close()


def actor_for(db, user_id):
    from courierhub.repositories.user_repo import UserRepository
    from courierhub.services.authz import Actor

    return Actor.for_user(UserRepository(db).get(user_id))
