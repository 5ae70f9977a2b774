from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"


class InvalidTokenError(ValueError):
    pass


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    *,
    subject: str,
    secret: str,
    alg: str,
    expires_minutes: int,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes)
    claims: Dict[str, Any] = dict(extra or {})
    claims.update(
        {
            "sub": subject,
            "typ": ACCESS_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
    )
    return jwt.encode(claims, secret, algorithm=alg)


def decode_access_token(token: str, *, secret: str, alg: str) -> str:
    """Return the user id carried by a valid access token."""
    try:
        claims = jwt.decode(token, secret, algorithms=[alg])
    except JWTError as exc:
        raise InvalidTokenError("Invalid token") from exc
    if claims.get("typ") != ACCESS_TOKEN_TYPE or not claims.get("sub"):
        raise InvalidTokenError("Invalid token")
    return str(claims["sub"])
