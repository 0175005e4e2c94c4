from pydantic import BaseModel, field_validator
from datetime import datetime


def _email(v: str) -> str:
    v = (v or "").strip().lower()
    if not v:
        raise ValueError("email is required")
    if len(v) > 255:
        raise ValueError("email too long")
    local, sep, domain = v.partition("@")
    if not sep or not local or "." not in domain:
        raise ValueError("email is invalid")
    return v


def _password(v: str) -> str:
    v = str(v)
    if len(v) < 6:
        raise ValueError("password must be at least 6 characters")
    return v


class UserCreate(BaseModel):
    email: str
    name: str
    password: str
    role: str = "viewer"

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str):
        return _email(v)

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        if len(v) > 128:
            raise ValueError("name too long")
        return v

    @field_validator("password")
    @classmethod
    def password_min(cls, v: str):
        return _password(v)

    @field_validator("role")
    @classmethod
    def role_normalize(cls, v: str):
        return (v or "").strip().lower()


class UserUpdate(BaseModel):
    name: str | None = None
    password: str | None = None
    role: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("role")
    @classmethod
    def role_normalize(cls, v: str | None):
        if v is None:
            return None
        return str(v).strip().lower()

    @field_validator("password")
    @classmethod
    def password_min(cls, v: str | None):
        if v is None:
            return None
        return _password(v)


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: datetime | None = None


class RoleOut(BaseModel):
    id: int
    name: str
    description: str | None

    class Config:
        from_attributes = True
