from matricare.models.base import Base
from matricare.models.user import User
from matricare.models.audit_log import AuditLog
from matricare.models.entity import Entity

__all__ = [
    "Base",
    "User",
    "AuditLog",
    "Entity",
]
