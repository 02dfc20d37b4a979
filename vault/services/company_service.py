"""
services/company_service.py
---------------------------
Business logic for company registration and platform-level management.

Service layer is responsible for:
  - Constructing queries
  - Enforcing business rules (e.g. unique names)
  - Returning domain objects (ORM models) to the route layer
  - Never returning HTTP responses (that's the route's job)
"""

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import NotFound
from vault.core.logging import get_logger
from vault.core.security import hash_password
from vault.models.collection import Collection
from vault.models.company import Company
from vault.models.credential import Credential
from vault.models.credential_selection import CredentialSelection
from vault.models.folder import Folder
from vault.models.organization import Organization
from vault.models.trash import TrashItem
from vault.models.user import User, UserRole, empty_permissions
from vault.schemas.company import CompanyDashboard, CompanyRegister, MasterDashboard

logger = get_logger(__name__)

# Child tables removed before the company row itself.
_COMPANY_OWNED = (TrashItem, Credential, Folder, Collection, Organization, User)


class CompanyService:

    @staticmethod
    async def register_company(db: AsyncSession, data: CompanyRegister) -> tuple[Company, User]:
        """
        Create a company and its super admin user in one unit of work.
        Raises ValueError if the company name or email is already taken.
        """
        email = data.email.lower()
        existing = await db.execute(
            select(Company.id).where(
                or_(Company.company_name == data.company_name, Company.email == email)
            )
        )
        if existing.first() is not None:
            raise ValueError("A company with this name or email already exists")

        company = Company(
            company_name=data.company_name,
            email=email,
            contact_name=data.contact_name,
            phone_number=data.phone_number,
            city=data.city,
            state=data.state,
            pin_code=data.pin_code,
            country=data.country,
        )
        db.add(company)
        try:
            await db.flush()  # Trigger DB constraints before commit
            admin = User(
                email=email,
                username=data.contact_name,
                hashed_password=hash_password(data.password),
                role=UserRole.company_super_admin.value,
                company_id=company.id,
                permissions=empty_permissions(),
            )
            db.add(admin)
            await db.flush()
            await db.refresh(company)
            await db.refresh(admin)
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Email '{data.email}' is already registered")
        logger.info("Company registered", company_id=company.id, admin_id=admin.id)
        return company, admin

    @staticmethod
    async def get_company(db: AsyncSession, company_id: str) -> Company:
        company = await db.get(Company, company_id)
        if company is None:
            raise NotFound("Company not found")
        return company

    @staticmethod
    async def list_companies(db: AsyncSession, skip: int = 0, limit: int = 50) -> list[Company]:
        result = await db.execute(
            select(Company).order_by(Company.created_at.desc(), Company.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def set_active(db: AsyncSession, company_id: str, is_active: bool) -> Company:
        company = await CompanyService.get_company(db, company_id)
        company.is_active = is_active
        await db.flush()
        await db.refresh(company)
        logger.info("Company status changed", company_id=company.id, is_active=is_active)
        return company

    @staticmethod
    async def delete_company(db: AsyncSession, company_id: str) -> None:
        """The one cascading delete: users, hierarchy, credentials, trash."""
        company = await CompanyService.get_company(db, company_id)
        user_ids = select(User.id).where(User.company_id == company_id)
        await db.execute(
            delete(CredentialSelection).where(CredentialSelection.caller_id.in_(user_ids))
        )
        for model in _COMPANY_OWNED:
            await db.execute(delete(model).where(model.company_id == company_id))
        await db.execute(delete(Company).where(Company.id == company.id))
        logger.info("Company deleted", company_id=company_id)

    @staticmethod
    async def company_dashboard(db: AsyncSession, company_id: str) -> CompanyDashboard:
        users = (User.company_id == company_id, User.role == UserRole.company_user.value)
        total = await db.scalar(select(func.count()).select_from(User).where(*users))
        active = await db.scalar(
            select(func.count()).select_from(User).where(*users, User.is_active.is_(True))
        )
        credentials = await db.scalar(
            select(func.count()).select_from(Credential).where(Credential.company_id == company_id)
        )
        return CompanyDashboard(
            total_users=total or 0,
            active_users=active or 0,
            inactive_users=(total or 0) - (active or 0),
            total_credentials=credentials or 0,
        )

    @staticmethod
    async def master_dashboard(db: AsyncSession) -> MasterDashboard:
        total = await db.scalar(select(func.count()).select_from(Company))
        active = await db.scalar(
            select(func.count()).select_from(Company).where(Company.is_active.is_(True))
        )
        users = await db.scalar(
            select(func.count()).select_from(User).where(User.company_id.is_not(None))
        )
        return MasterDashboard(
            total_companies=total or 0,
            active_companies=active or 0,
            inactive_companies=(total or 0) - (active or 0),
            total_users=users or 0,
        )
