from courierhub.adapters.proof_storage import LocalProofStorage
from courierhub.adapters.push_notifier import LoggingPushNotifier
from courierhub.db import engine
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()


@router.get("/health", tags=["health"])
def health():
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except SQLAlchemyError:
        db_ok = False
    storage_ok = LocalProofStorage().health_check()
    push_ok = LoggingPushNotifier().health_check()

    return {
        "status": "ok" if db_ok and storage_ok and push_ok else "degraded",
        "db": db_ok,
        "proof_storage": storage_ok,
        "push_notifier": push_ok,
    }
