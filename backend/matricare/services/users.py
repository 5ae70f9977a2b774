from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from matricare.core.security import hash_password, verify_password
from matricare.models.user import User


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.lower().strip()))


def get_user_by_id(db: Session, user_id: str) -> User | None:
    return db.scalar(select(User).where(User.id == user_id))


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str = "",
    role: str = "mother",
    is_active: bool = True,
) -> User:
    now = datetime.now(timezone.utc)
    user = User(
        email=email.lower().strip(),
        full_name=full_name,
        role=role,
        is_active=is_active,
        hashed_password=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def user_ids_with_roles(db: Session, role_options: Iterable[str]) -> list[str]:
    """Ids of active users whose stored role is any of ``role_options``."""
    options = [option for option in role_options if option]
    if not options:
        return []
    stmt = (
        select(User.id)
        .where(User.role.in_(options), User.is_active.is_(True))
        .order_by(User.created_at)
    )
    return list(db.scalars(stmt))
