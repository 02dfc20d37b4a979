"""
api/routes/auth.py
------------------
Authentication endpoints.

POST /register  — Public sign-up: a new company plus its super admin.
POST /login     — Exchange credentials for a JWT access token.
                  Accepts OAuth2 form data (Swagger UI); username is the email.
GET  /me        — Return the authenticated user's profile.
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.config import settings
from vault.core.security import create_access_token
from vault.db.session import get_db
from vault.dependencies import get_current_user
from vault.models.user import User
from vault.schemas.company import CompanyRead, CompanyRegister, CompanyRegistered
from vault.schemas.user import TokenResponse, UserRead
from vault.services.company_service import CompanyService
from vault.services.user_service import UserService

router = APIRouter(tags=["Authentication"])


@router.post(
    "/register",
    response_model=CompanyRegistered,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new company and its super admin",
)
async def register(
    body: CompanyRegister,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CompanyRegistered:
    """
    Public endpoint — no authentication required.
    The company email doubles as the super admin's login.
    """
    try:
        company, admin = await CompanyService.register_company(db, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return CompanyRegistered(
        company=CompanyRead.model_validate(company),
        admin=UserRead.model_validate(admin),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive a JWT access token",
)
async def login(
    # OAuth2PasswordRequestForm sends username + password as form data.
    # The "username" field contains the email address.
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with email + password and receive a signed JWT.

    Via curl/Postman: send as form data (not JSON):
        -d "username=you@email.com&password=yourpassword"
    """
    user = await UserService.authenticate(db, form_data.username, form_data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    if not await UserService.company_is_active(db, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Company is inactive")

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(
        subject=user.id,
        role=user.role,
        company_id=user.company_id,
        expires_delta=expires,
    )

    return TokenResponse(
        access_token=token,
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
        user=UserRead.model_validate(user),
    )


@router.get(
    "/me",
    response_model=UserRead,
    summary="Get the currently authenticated user",
)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserRead:
    return UserRead.model_validate(current_user)
