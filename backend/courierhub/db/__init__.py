import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from courierhub.config import settings

DATABASE_URL = settings.DATABASE_URL
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


if DATABASE_URL.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_sqlite_fks(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def init_db(reset: bool = None):
    """
    Initialize DB schema.

    Behavior:
      - If reset is True, or RESET_DB env var is set to 1/true/yes, drop & recreate tables.
      - Otherwise, leave existing tables in place and create missing ones.
      - When SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD are configured, make sure
        that account exists.

    Model modules are imported here so metadata is populated.
    """
    from courierhub.models import branch, manifest, notification, pricing, shipment, user  # noqa: F401
    from courierhub.utils.log import get_logger

    log = get_logger("courierhub.db", "db")

    if reset is None:
        reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
    if reset:
        log.info("Resetting database (drop + create)")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.info("Database initialized at %s", engine.url.render_as_string(hide_password=True))

    if settings.SUPERADMIN_EMAIL and settings.SUPERADMIN_PASSWORD:
        from courierhub.services.user_service import UserService

        s = SessionLocal()
        try:
            created = UserService(s).ensure_superadmin(
                settings.SUPERADMIN_EMAIL, settings.SUPERADMIN_PASSWORD
            )
            if created:
                log.info("Created bootstrap super admin %s", settings.SUPERADMIN_EMAIL)
        finally:
            s.close()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
