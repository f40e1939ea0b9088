import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from courierhub.api.health import router as health_router
from courierhub.api.routes_auth import router as auth_router
from courierhub.api.routes_branches import router as branches_router
from courierhub.api.routes_delivery import router as delivery_router
from courierhub.api.routes_manifests import router as manifests_router
from courierhub.api.routes_notifications import router as notifications_router
from courierhub.api.routes_pricing import router as pricing_router
from courierhub.api.routes_shipments import router as shipments_router
from courierhub.api.routes_stats import router as stats_router
from courierhub.api.routes_users import router as users_router
from courierhub.config import settings
from courierhub.db import SessionLocal, init_db
from courierhub.services.notification_service import NotificationService
from courierhub.utils.log import get_logger

log = get_logger("courierhub.main", "main")


def purge_notifications_job():
    db = SessionLocal()
    try:
        removed = NotificationService(db).purge_read()
        if removed:
            log.info("purged %s read notifications", removed)
    except Exception:
        log.exception("notification purge failed")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup; RESET_DB=1 drops and recreates the schema
    init_db()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        purge_notifications_job,
        "interval",
        seconds=settings.NOTIFICATION_PURGE_INTERVAL_SECONDS,
        id="purge_notifications",
    )
    scheduler.start()

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)


app = FastAPI(title="CourierHub - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    log.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": f"Internal server error: {type(exc).__name__}"})


app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])

app.include_router(branches_router, prefix="/api/branches", tags=["branches"])

app.include_router(users_router, prefix="/api/users", tags=["users"])

app.include_router(shipments_router, prefix="/api/shipments", tags=["shipments"])

app.include_router(delivery_router, prefix="/api/shipments", tags=["delivery"])

app.include_router(manifests_router, prefix="/api/manifests", tags=["manifests"])

app.include_router(notifications_router, prefix="/api/notifications", tags=["notifications"])

app.include_router(stats_router, prefix="/api/stats", tags=["stats"])

app.include_router(pricing_router, prefix="/api/pricing", tags=["pricing"])

# proof URLs handed out by LocalProofStorage resolve here
os.makedirs(settings.PROOF_UPLOAD_DIR, exist_ok=True)
app.mount(
    settings.PROOF_PUBLIC_BASE_URL.rstrip("/"),
    StaticFiles(directory=settings.PROOF_UPLOAD_DIR),
    name="delivery-proofs",
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("courierhub.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
