from pydantic import BaseModel, Field

from matricare.schemas.entities import Verification


class VerificationCreate(BaseModel):
    display_name: str = Field(min_length=1)
    license_number: str = Field(min_length=1)
    organization: str = ""
    documents: list[str] = Field(default_factory=list)


class VerificationOut(BaseModel):
    verification: Verification
    reviewers_notified: int
