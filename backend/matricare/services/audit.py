from __future__ import annotations

from sqlalchemy.orm import Session

from matricare.models.audit_log import AuditLog


def log_event(
    db: Session,
    *,
    actor_id: str | None,
    actor_email: str | None = None,
    action: str,
    entity_type: str,
    entity_id: str,
    consent_id: str | None = None,
    before_data: dict | None = None,
    after_data: dict | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        actor_user_id=actor_id,
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        consent_id=consent_id,
        request_id=request_id,
        ip_address=ip_address,
        before_json=before_data,
        after_json=after_data,
    )
    db.add(entry)
    return entry
