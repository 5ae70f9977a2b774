from pydantic import BaseModel, EmailStr


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class IdentityOut(BaseModel):
    user_id: str
    email: EmailStr
    role: str | None
    raw_role: str
    known_role: bool
