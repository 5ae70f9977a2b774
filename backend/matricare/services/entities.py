"""Schemaless entity storage over the ``app_entities`` table.

Every record is an (owner, type, subtype) tagged JSON payload. The payload
handed back to callers is the decoded ``data`` column with ``id``,
``created_at`` and ``updated_at`` injected by the store.

Optional filters follow one convention throughout: leaving the argument out
applies no filter, passing ``None`` matches ``IS NULL``.
"""
from __future__ import annotations

import enum
import json
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from matricare.models.entity import Entity
from matricare.schemas.entities import EntityPayload, parse_entity

logger = logging.getLogger("matricare.entities")

_UNSET: Any = object()

_UPSERT_KEY = ["owner_id", "type", "subtype"]


class DuplicateEntityError(Exception):
    def __init__(self, entity_type: str, owner_id: str | None, subtype: str | None) -> None:
        super().__init__(
            f"{entity_type} already exists for owner={owner_id!r} subtype={subtype!r}"
        )
        self.entity_type = entity_type
        self.owner_id = owner_id
        self.subtype = subtype


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, default=_json_default)


def decode_payload(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding unparseable entity payload (%s chars)", len(raw))
        return {}
    if not isinstance(data, dict):
        logger.warning("Discarding non-object entity payload of type %s", type(data).__name__)
        return {}
    return data


def _row_payload(row: Entity) -> dict[str, Any]:
    return {**decode_payload(row.data), "id": row.id}


def _apply_filter(stmt, column, value):
    if value is _UNSET:
        return stmt
    if value is None:
        return stmt.where(column.is_(None))
    return stmt.where(column == value)


def _fetch_row(
    db: Session,
    entity_id: str,
    entity_type: str,
    owner_id: Any = _UNSET,
) -> Entity | None:
    stmt = select(Entity).where(Entity.id == entity_id, Entity.type == entity_type)
    stmt = _apply_filter(stmt, Entity.owner_id, owner_id)
    return db.scalar(stmt.limit(1))


def list_entities(
    db: Session,
    entity_type: str,
    *,
    owner_id: Any = _UNSET,
    subtype: Any = _UNSET,
    subject_id: Any = _UNSET,
    order: str = "desc",
    limit: int | None = None,
) -> list[dict[str, Any]]:
    stmt = select(Entity).where(Entity.type == entity_type)
    stmt = _apply_filter(stmt, Entity.owner_id, owner_id)
    stmt = _apply_filter(stmt, Entity.subtype, subtype)
    stmt = _apply_filter(stmt, Entity.subject_id, subject_id)
    if order.lower() == "asc":
        stmt = stmt.order_by(Entity.created_at.asc())
    else:
        stmt = stmt.order_by(Entity.created_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return [_row_payload(row) for row in db.scalars(stmt)]


def get_entity(
    db: Session,
    entity_id: str,
    entity_type: str,
    *,
    owner_id: Any = _UNSET,
) -> dict[str, Any] | None:
    row = _fetch_row(db, entity_id, entity_type, owner_id)
    return _row_payload(row) if row else None


def create_entity(
    db: Session,
    entity_type: str,
    data: dict[str, Any] | None = None,
    *,
    owner_id: str | None = None,
    subtype: str | None = None,
    subject_id: str | None = None,
) -> dict[str, Any]:
    data = data or {}
    entity_id = str(uuid.uuid4())
    now = _utcnow()
    payload = {
        **data,
        "id": entity_id,
        "created_at": data.get("created_at") or now,
        "updated_at": now,
    }
    encoded = encode_payload(payload)
    row = Entity(
        id=entity_id,
        owner_id=owner_id,
        type=entity_type,
        subtype=subtype,
        subject_id=subject_id,
        data=encoded,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEntityError(entity_type, owner_id, subtype) from exc
    return decode_payload(encoded)


def _merge_into_row(row: Entity, data: dict[str, Any], now: datetime) -> str:
    payload = {
        **_row_payload(row),
        **data,
        "id": row.id,
        "updated_at": now,
    }
    encoded = encode_payload(payload)
    row.data = encoded
    row.updated_at = now
    return encoded


def update_entity(
    db: Session,
    entity_id: str,
    entity_type: str,
    data: dict[str, Any],
    *,
    owner_id: Any = _UNSET,
    subtype: str | None = None,
) -> dict[str, Any] | None:
    """Shallow-merge ``data`` over the stored payload.

    Returns ``None`` when no row matches; nothing is created in that case.
    """
    row = _fetch_row(db, entity_id, entity_type, owner_id)
    if row is None:
        return None
    encoded = _merge_into_row(row, data, _utcnow())
    if subtype is not None:
        row.subtype = subtype
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEntityError(entity_type, row.owner_id, subtype) from exc
    return decode_payload(encoded)


def delete_entity(
    db: Session,
    entity_id: str,
    entity_type: str,
    *,
    owner_id: Any = _UNSET,
) -> bool:
    stmt = delete(Entity).where(Entity.id == entity_id, Entity.type == entity_type)
    stmt = _apply_filter(stmt, Entity.owner_id, owner_id)
    result = db.execute(stmt)
    db.commit()
    return bool(result.rowcount)


def _insert_ignoring_conflict(db: Session, values: dict[str, Any]) -> bool:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(Entity.__table__).values(**values).on_conflict_do_nothing(
            index_elements=_UPSERT_KEY
        )
    elif dialect == "sqlite":
        stmt = sqlite.insert(Entity.__table__).values(**values).on_conflict_do_nothing(
            index_elements=_UPSERT_KEY
        )
    else:
        try:
            with db.begin_nested():
                db.add(Entity(**values))
        except IntegrityError:
            return False
        return True
    result = db.execute(stmt)
    return bool(result.rowcount)


def upsert_by_subtype(
    db: Session,
    entity_type: str,
    owner_id: str,
    subtype: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Create or shallow-merge the single (owner, type, subtype) record.

    The insert is conflict-ignoring against the unique key, so concurrent
    callers converge on one row; the loser merges into it under a row lock.
    """
    if owner_id is None or subtype is None:
        raise ValueError("upsert_by_subtype requires both owner_id and subtype")

    now = _utcnow()
    entity_id = str(uuid.uuid4())
    payload = {
        **data,
        "id": entity_id,
        "created_at": data.get("created_at") or now,
        "updated_at": now,
    }
    encoded = encode_payload(payload)
    inserted = _insert_ignoring_conflict(
        db,
        {
            "id": entity_id,
            "owner_id": owner_id,
            "type": entity_type,
            "subtype": subtype,
            "data": encoded,
            "created_at": now,
            "updated_at": now,
        },
    )
    if inserted:
        db.commit()
        return decode_payload(encoded)

    row = db.scalar(
        select(Entity)
        .where(
            Entity.type == entity_type,
            Entity.owner_id == owner_id,
            Entity.subtype == subtype,
        )
        .with_for_update()
        .limit(1)
    )
    if row is None:
        # Deleted between the conflicting insert and the lock; retry as fresh.
        db.rollback()
        return upsert_by_subtype(db, entity_type, owner_id, subtype, data)
    encoded = _merge_into_row(row, data, now)
    db.add(row)
    db.commit()
    return decode_payload(encoded)


def get_by_subtype(
    db: Session,
    entity_type: str,
    owner_id: str,
    subtype: str,
) -> dict[str, Any] | None:
    row = db.scalar(
        select(Entity)
        .where(
            Entity.type == entity_type,
            Entity.owner_id == owner_id,
            Entity.subtype == subtype,
        )
        .limit(1)
    )
    return _row_payload(row) if row else None


def delete_by_types(db: Session, owner_id: str, entity_types: Iterable[str]) -> int:
    types = [entity_type for entity_type in entity_types if entity_type]
    if not types:
        return 0
    result = db.execute(
        delete(Entity).where(Entity.owner_id == owner_id, Entity.type.in_(types))
    )
    db.commit()
    return int(result.rowcount or 0)


def parse_payloads(entity_type: str, payloads: Iterable[dict[str, Any]]) -> list[EntityPayload]:
    """Typed view of ``payloads``; records that fail validation are skipped."""
    parsed: list[EntityPayload] = []
    for payload in payloads:
        try:
            parsed.append(parse_entity(entity_type, payload))
        except ValidationError:
            logger.warning("Skipping malformed %s record %s", entity_type, payload.get("id"))
    return parsed
