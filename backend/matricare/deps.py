import logging
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from matricare.core.security import InvalidTokenError, decode_access_token
from matricare.core.settings import settings
from matricare.db.session import get_db
from matricare.models.user import User
from matricare.services.consents import (
    REASON_CONSENT_CHECK_FAILED,
    REASON_NO_ACTIVE_CONSENT,
    REASON_PATIENT_ID_REQUIRED,
    check_access,
)
from matricare.services.roles import normalize_role
from matricare.services.users import get_user_by_id

logger = logging.getLogger("matricare.access")


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    role: str | None
    raw_role: str


@dataclass(frozen=True)
class ConsentContext:
    identity: Identity
    patient_id: str
    consent_id: str


def get_current_user(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        user_id = decode_access_token(token, secret=settings.secret_key or "", alg=settings.jwt_alg)
    except InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


def get_current_identity(user: User = Depends(get_current_user)) -> Identity:
    return Identity(
        user_id=user.id,
        email=user.email,
        role=normalize_role(user.role),
        raw_role=user.role,
    )


def require_roles(*roles: str):
    allowed = {normalize_role(role) for role in roles}

    def _inner(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "Insufficient permissions",
                    "required": list(roles),
                    "current": identity.raw_role,
                },
            )
        return identity

    return _inner


def _deny(status_code: int, reason: str, error: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "reason": reason})


async def _patient_id_from_request(request: Request, param: str) -> str | None:
    value = request.path_params.get(param) or request.query_params.get(param)
    if value:
        return str(value)
    if request.method not in {"POST", "PUT", "PATCH"}:
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get(param):
        return str(body[param])
    return None


def require_consent_for_patient(param: str = "patient_id"):
    """Deny the request unless the caller holds an active grant from the patient.

    The patient id is taken from the path, then the query string, then a JSON
    body field named ``param``. Every failure path denies.
    """

    async def _inner(
        request: Request,
        db: Session = Depends(get_db),
        identity: Identity = Depends(get_current_identity),
    ) -> ConsentContext:
        patient_id = await _patient_id_from_request(request, param)
        if not patient_id:
            raise _deny(status.HTTP_400_BAD_REQUEST, REASON_PATIENT_ID_REQUIRED, "Patient ID required")
        try:
            decision = await run_in_threadpool(check_access, db, identity.user_id, patient_id)
        except SQLAlchemyError:
            logger.exception(
                "Consent check failed for clinician %s on patient %s", identity.user_id, patient_id
            )
            raise _deny(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                REASON_CONSENT_CHECK_FAILED,
                "Consent verification failed",
            )
        if not decision.authorized or not decision.matched_consent_id:
            logger.info(
                "Denied clinician %s (%s) access to patient %s: %s",
                identity.user_id,
                identity.role,
                patient_id,
                decision.reason_code,
            )
            raise _deny(
                status.HTTP_403_FORBIDDEN,
                decision.reason_code or REASON_NO_ACTIVE_CONSENT,
                "Access denied: Patient consent required",
            )
        request.state.consent_id = decision.matched_consent_id
        return ConsentContext(
            identity=identity,
            patient_id=patient_id,
            consent_id=decision.matched_consent_id,
        )

    return _inner
