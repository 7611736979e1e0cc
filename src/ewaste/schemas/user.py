"""Pydantic schemas for registration and login."""

import uuid
from typing import Optional

from pydantic import EmailStr, Field

from ewaste.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    sensor_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(CamelModel):
    email: str
    password: str
    messaging_token: Optional[str] = None


class UserRead(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    sensor_id: str

    model_config = {"from_attributes": True}


class RegisterResponse(CamelModel):
    message: str
    user: UserRead


class LoginResponse(CamelModel):
    message: str
    user: UserRead
    token: str
