from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional

from app.constants.roles import AUTHOR, READER, ROLES


class Principal(BaseModel):
    """Authenticated caller, passed explicitly into every core service call."""

    model_config = {"frozen": True}

    user_id: int
    email: str
    role: str

    @property
    def is_author(self) -> bool:
        return self.role == AUTHOR

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.id, email=user.email, role=user.role)


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: Optional[str] = ""
    role: str = READER

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("role")
    @classmethod
    def known_role(cls, v):
        v = (v or READER).upper()
        if v not in ROLES:
            raise ValueError(f"role must be one of {', '.join(ROLES)}")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class Token(BaseModel):
    access_token: str
    token_type: str


class UserResponse(BaseModel):
    message: str
    user_id: int
    email: str
    name: str
    role: str
