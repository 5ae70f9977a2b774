import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from matricare.core.settings import settings, validate_settings
from matricare.db.session import engine
from matricare.models import Base
from matricare.routers.appointments import router as appointments_router
from matricare.routers.auth import router as auth_router
from matricare.routers.consents import router as consents_router
from matricare.routers.doctor import router as doctor_router
from matricare.routers.notifications import router as notifications_router
from matricare.routers.profile import router as profile_router
from matricare.routers.verifications import router as verifications_router

app = FastAPI(title="MatriCare API", version="0.1.0")
logger = logging.getLogger("matricare.startup")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)
    logger.info(
        "Entity store ready (consent scan limit %s, default grant %s days).",
        settings.consent_scan_limit,
        settings.consent_default_days,
    )


@app.get("/healthz")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(consents_router)
app.include_router(doctor_router)
app.include_router(appointments_router)
app.include_router(notifications_router)
app.include_router(profile_router)
app.include_router(verifications_router)
