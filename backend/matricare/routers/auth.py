from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from matricare.core.security import create_access_token
from matricare.core.settings import settings
from matricare.db.session import get_db
from matricare.deps import Identity, get_current_identity
from matricare.schemas.auth import IdentityOut, LoginRequest, Token
from matricare.services.roles import is_known_role, normalize_role
from matricare.services.users import authenticate

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token(
        subject=user.id,
        secret=settings.secret_key or "",
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
        extra={"role": normalize_role(user.role), "email": user.email},
    )
    return Token(access_token=token)


@router.get("/me", response_model=IdentityOut)
def me(identity: Identity = Depends(get_current_identity)):
    return IdentityOut(
        user_id=identity.user_id,
        email=identity.email,
        role=identity.role,
        raw_role=identity.raw_role,
        known_role=is_known_role(identity.raw_role),
    )
