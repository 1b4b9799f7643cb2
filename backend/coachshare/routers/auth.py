"""Auth routes: register, login, logout, passwords, current user."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.config import settings
from coachshare.core.auth import (
    extract_token,
    get_current_user,
    login_user,
    logout_user,
    register_user,
    request_password_reset,
    reset_password,
    update_password,
)
from coachshare.dependencies import get_db
from coachshare.models.user import User, UserRole
from coachshare.schemas.user import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LoginResponse,
    PasswordUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserRead,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_response(response: Response, user: User, token: str) -> dict:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_duration_hours * 3600,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return {"token": token, "user_id": user.id, "role": user.role.value}


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    ip = request.client.host if request.client else None
    user = await register_user(
        db,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=UserRole(body.role),
        ip_address=ip,
    )
    return user


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    ip = request.client.host if request.client else None
    user, token = await login_user(db, email=body.email, password=body.password, ip_address=ip)
    return _session_response(response, user, token)


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ip = request.client.host if request.client else None
    await logout_user(db, token=extract_token(request), ip_address=ip)
    response.delete_cookie(settings.session_cookie_name)


@router.patch("/password", response_model=LoginResponse)
async def change_password(
    body: PasswordUpdateRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ip = request.client.host if request.client else None
    token = await update_password(
        db,
        user=current_user,
        current_password=body.current_password,
        new_password=body.new_password,
        ip_address=ip,
    )
    return _session_response(response, current_user, token)


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    ip = request.client.host if request.client else None
    await request_password_reset(db, email=body.email, ip_address=ip)
    return {"message": "Password reset token sent"}


@router.post("/reset-password", response_model=LoginResponse)
async def redeem_reset_token(
    body: ResetPasswordRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    ip = request.client.host if request.client else None
    user, token = await reset_password(db, token=body.token, new_password=body.password, ip_address=ip)
    return _session_response(response, user, token)


@router.get("/me", response_model=UserRead)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
