from typing import Optional

from pydantic import BaseModel, Field

from matricare.schemas.entities import AccessLevel


class ConsentGrantCreate(BaseModel):
    clinician_id: str = Field(min_length=1)
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=365)
    access_level: AccessLevel = AccessLevel.full


class AccessRequestCreate(BaseModel):
    patient_id: str = Field(min_length=1)
    reason: Optional[str] = None


class ConsentRevokeOut(BaseModel):
    success: bool
    consent_id: str
