"""Per-recipient notification fan-out.

Delivery is at-most-once and best-effort: a failed write is rolled back,
logged and dropped, and never aborts the domain action that triggered it.
A broadcast is a loop of independent writes, so a failure part way through
leaves earlier recipients notified and later ones not.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matricare.schemas.entities import NOTIFICATION, Notification
from matricare.services.entities import (
    create_entity,
    delete_by_types,
    list_entities,
    parse_payloads,
    update_entity,
)
from matricare.services.roles import expand_for_query, normalize_role
from matricare.services.users import user_ids_with_roles

logger = logging.getLogger("matricare.notifications")


@dataclass(frozen=True)
class NotificationMessage:
    type: str
    title: str
    message: str
    link: str | None = None
    entity_id: str | None = None


@dataclass
class BroadcastResult:
    role: str | None
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def recipients(self) -> int:
        return len(self.delivered) + len(self.failed)


def notify(db: Session, target_user_id: str, message: NotificationMessage) -> dict[str, Any] | None:
    data = {
        "user_id": target_user_id,
        "type": message.type,
        "entity_id": message.entity_id,
        "title": message.title,
        "message": message.message,
        "link": message.link,
        "is_read": False,
    }
    try:
        return create_entity(db, NOTIFICATION, data, owner_id=target_user_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Notification %s for user %s was not delivered", message.type, target_user_id)
        return None


def broadcast_to_role(db: Session, role: str, message: NotificationMessage) -> BroadcastResult:
    canonical = normalize_role(role)
    result = BroadcastResult(role=canonical)
    options = expand_for_query(canonical)
    if not options:
        logger.warning("Broadcast %s skipped: empty role %r", message.type, role)
        return result
    try:
        recipients = user_ids_with_roles(db, options)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Broadcast %s to role %s failed to resolve recipients", message.type, canonical)
        return result
    for user_id in recipients:
        if notify(db, user_id, message) is None:
            result.failed.append(user_id)
        else:
            result.delivered.append(user_id)
    if result.failed:
        logger.warning(
            "Broadcast %s to role %s partially delivered (%s of %s)",
            message.type,
            canonical,
            len(result.delivered),
            result.recipients,
        )
    return result


def list_notifications(db: Session, user_id: str) -> list[Notification]:
    return parse_payloads(NOTIFICATION, list_entities(db, NOTIFICATION, owner_id=user_id))


def mark_read(db: Session, user_id: str, notification_id: str) -> Notification | None:
    item = update_entity(
        db,
        notification_id,
        NOTIFICATION,
        {"is_read": True},
        owner_id=user_id,
    )
    if item is None:
        return None
    try:
        return Notification.model_validate(item)
    except ValidationError:
        logger.warning("Notification %s for user %s is malformed", notification_id, user_id)
        return None


def mark_all_read(db: Session, user_id: str) -> int:
    updated = 0
    for item in list_entities(db, NOTIFICATION, owner_id=user_id):
        if item.get("is_read"):
            continue
        if update_entity(db, item["id"], NOTIFICATION, {"is_read": True}, owner_id=user_id):
            updated += 1
    return updated


def clear_notifications(db: Session, user_id: str) -> int:
    return delete_by_types(db, user_id, [NOTIFICATION])
