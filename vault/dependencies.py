"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication and authorisation.

Flow:
  1. OAuth2PasswordBearer extracts the Bearer token from the Authorization header.
  2. get_identity validates the JWT (no DB round-trip). Any token problem is 401.
  3. get_current_user re-reads the User from the DB and checks it against the
     token: missing or inactive user, role/company drift, or an inactive
     company is 403.
  4. get_current_caller turns that User into a Caller carrying grants read
     fresh from the row. Grants never come from the token, so a revoked
     grant stops working on the next request.
  5. Role guards (super admin, master admin) layer on top.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import Forbidden
from vault.core.logging import get_logger
from vault.core.security import Identity, identity_from_token
from vault.db.session import get_db
from vault.models.user import User, UserRole
from vault.services.permission_resolver import Caller, PermissionResolver

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_identity(
    token: Annotated[str, Depends(oauth2_scheme)],
) -> Identity:
    try:
        return identity_from_token(token)
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION


async def get_current_user(
    identity: Annotated[Identity, Depends(get_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Load the caller's User row and verify it still matches the token.
    Raises 403 for a missing/inactive account or company mismatch.
    """
    try:
        return await PermissionResolver.load_user(db, identity)
    except Forbidden as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))


async def get_current_caller(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Caller:
    return Caller.from_user(current_user)


async def get_current_super_admin(
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> Caller:
    """
    Extends get_current_caller with a company super admin role check.
    Raises 403 for any other role.
    """
    if caller.role is not UserRole.company_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Company super admin privileges required",
        )
    return caller


async def get_master_admin(
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> Caller:
    if caller.role is not UserRole.master_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Master admin privileges required",
        )
    return caller


async def get_company_caller(
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> Caller:
    """A caller that belongs to a company, i.e. anyone but the platform admin."""
    if caller.company_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires a company account",
        )
    return caller

