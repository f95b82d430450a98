# backend/confedit/auth/schemas.py
from pydantic import BaseModel, EmailStr
from ..auth.models import UserRole


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: UserRole


class LogoutOut(BaseModel):
    released: list[int]  # conference ids whose locks were given back


class UserDeletedOut(BaseModel):
    deleted: bool = True
    released_locks: list[int]
