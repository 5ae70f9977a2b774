from __future__ import annotations

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from matricare.models.base import Base, TimestampMixin


class Entity(TimestampMixin, Base):
    __tablename__ = "app_entities"
    __table_args__ = (
        UniqueConstraint("owner_id", "type", "subtype", name="uq_app_entities_owner_type_subtype"),
        Index("ix_app_entities_owner_type", "owner_id", "type"),
        Index("ix_app_entities_owner_type_subject", "owner_id", "type", "subject_id"),
        Index("ix_app_entities_subject_type", "subject_id", "type"),
        Index("ix_app_entities_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    subtype: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subject_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
