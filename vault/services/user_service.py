"""
services/user_service.py
------------------------
Business logic for authentication and company user management.

All queries are scoped by company_id to enforce strict data isolation.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import InvalidInput, NotFound
from vault.core.logging import get_logger
from vault.core.security import hash_password, verify_password
from vault.models.collection import Collection
from vault.models.company import Company
from vault.models.folder import Folder
from vault.models.organization import Organization
from vault.models.user import User, UserRole, empty_permissions
from vault.schemas.user import PermissionGrants, UserCreate, UserUpdate
from vault.services.credential_locator import escape_like
from vault.services.permission_resolver import Caller

logger = get_logger(__name__)

_GRANT_MODELS = {
    "organizations": Organization,
    "collections": Collection,
    "folders": Folder,
}


class UserService:

    @staticmethod
    async def authenticate(
        db: AsyncSession, email: str, password: str
    ) -> User | None:
        """
        Verify credentials and return the User if valid, else None.
        Email lookup is case-insensitive.
        """
        result = await db.execute(
            select(User).where(User.email == email.lower())
        )
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    async def company_is_active(db: AsyncSession, user: User) -> bool:
        if user.company_id is None:
            return True
        return bool(
            await db.scalar(select(Company.is_active).where(Company.id == user.company_id))
        )

    @staticmethod
    async def create_company_user(
        db: AsyncSession, data: UserCreate, admin: Caller
    ) -> User:
        """
        Super-admin-initiated user creation within their own company.
        New users start with no grants and therefore see nothing.
        """
        user = User(
            email=data.email.lower(),
            username=data.username,
            hashed_password=hash_password(data.password),
            role=UserRole.company_user.value,
            company_id=admin.company_id,
            permissions=empty_permissions(),
            created_by=admin.id,
        )
        db.add(user)
        try:
            await db.flush()
            await db.refresh(user)
            logger.info(
                "Admin created user",
                new_user_id=user.id,
                company_id=admin.company_id,
            )
            return user
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Email '{data.email}' is already registered")

    @staticmethod
    async def list_company_users(
        db: AsyncSession, company_id: str, q: Optional[str] = None
    ) -> list[User]:
        """Restricted users of one company; the super admin is not listed."""
        stmt = select(User).where(
            User.company_id == company_id,
            User.role == UserRole.company_user.value,
        )
        if q:
            pattern = f"%{escape_like(q.strip())}%"
            stmt = stmt.where(
                User.username.ilike(pattern, escape="\\") | User.email.ilike(pattern, escape="\\")
            )
        result = await db.execute(stmt.order_by(User.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def get_company_user(db: AsyncSession, company_id: str, user_id: str) -> User:
        result = await db.execute(
            select(User).where(
                User.id == user_id,
                User.company_id == company_id,
                User.role == UserRole.company_user.value,
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFound("User not found")
        return user

    @staticmethod
    async def update_company_user(
        db: AsyncSession, company_id: str, user_id: str, data: UserUpdate
    ) -> User:
        user = await UserService.get_company_user(db, company_id, user_id)
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user, key, value)
        await db.flush()
        await db.refresh(user)
        logger.info("User updated", user_id=user.id, company_id=company_id)
        return user

    @staticmethod
    async def delete_company_user(db: AsyncSession, company_id: str, user_id: str) -> None:
        user = await UserService.get_company_user(db, company_id, user_id)
        await db.delete(user)
        await db.flush()
        logger.info("User deleted", user_id=user_id, company_id=company_id)

    @staticmethod
    async def set_permissions(
        db: AsyncSession, company_id: str, user_id: str, grants: PermissionGrants
    ) -> User:
        """
        Replace a user's three grant lists wholesale.

        Raises:
            InvalidInput: an id that does not belong to this company.
        """
        user = await UserService.get_company_user(db, company_id, user_id)
        for level, model in _GRANT_MODELS.items():
            wanted = set(getattr(grants, level))
            if not wanted:
                continue
            result = await db.execute(
                select(model.id).where(model.id.in_(wanted), model.company_id == company_id)
            )
            unknown = wanted - set(result.scalars().all())
            if unknown:
                raise InvalidInput(f"Unknown {level}: {', '.join(sorted(unknown))}")

        # New dict so the JSON column is seen as changed.
        user.permissions = grants.model_dump()
        await db.flush()
        await db.refresh(user)
        logger.info(
            "User permissions replaced",
            user_id=user.id,
            company_id=company_id,
            organizations=len(grants.organizations),
            collections=len(grants.collections),
            folders=len(grants.folders),
        )
        return user
