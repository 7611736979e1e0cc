"""Auth API — registration, login, current user.

- POST /register-user → create a user and link it to the sensor's bin
- POST /login → email/password (+ device messaging token) → JWT
- GET /me → the user encoded in the bearer token
"""

import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ewaste.auth.dependencies import CurrentUser, get_current_user
from ewaste.db.engine import get_db
from ewaste.db.models import User
from ewaste.errors import UserNotFoundError
from ewaste.schemas.user import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserRead,
)
from ewaste.services.user_service import UserService

router = APIRouter()


@router.post("/register-user", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    svc = UserService(db, request.app.state.ctx.settings)
    user = await svc.register(
        sensor_id=body.sensor_id,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    return RegisterResponse(
        message="User Registered successfully",
        user=UserRead.model_validate(user),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    svc = UserService(db, request.app.state.ctx.settings)
    user, token = await svc.login(
        email=body.email,
        password=body.password,
        messaging_token=body.messaging_token,
    )
    return LoginResponse(
        message="User Login successful",
        user=UserRead.model_validate(user),
        token=token,
    )


@router.get("/me", response_model=UserRead)
async def get_me(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, uuid.UUID(current.id))
    if not user:
        raise UserNotFoundError()
    return UserRead.model_validate(user)
