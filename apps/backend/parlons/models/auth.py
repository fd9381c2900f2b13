from __future__ import annotations

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Registration form. 必須チェックとパスワード長はルーター側で検証し 400 を返す。"""

    name: str = Field(default="", max_length=200)
    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=256)


class LoginRequest(BaseModel):
    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=256)


class User(BaseModel):
    """Public user profile. The password hash is never part of it."""

    id: str
    name: str
    email: str
    created_at: str = ""
    last_login_at: str = ""


class UserResponse(BaseModel):
    user: User


class RegisterResponse(BaseModel):
    message: str
    user: User
