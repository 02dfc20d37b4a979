"""Shared fixtures: an in-memory SQLite database, row factories and an API client.

Settings are read when vault.core.config is first imported, so the
environment is populated before anything from vault is imported.
"""

import os

os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from vault.core.encryption import encrypt
from vault.core.security import create_access_token, hash_password
from vault.db.session import get_db
from vault.models import (
    Base,
    Collection,
    Company,
    Credential,
    Folder,
    Organization,
    User,
    UserRole,
)
from vault.models.user import empty_permissions

PASSWORD = "password123"
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@lru_cache()
def password_hash() -> str:
    # bcrypt is slow; every seeded user shares one hash.
    return hash_password(PASSWORD)


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(subject=user.id, role=user.role, company_id=user.company_id)
    return {"Authorization": f"Bearer {token}"}


class VaultFactory:
    """Creates committed rows so API requests (own sessions) can see them."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._count = 0

    def _next(self) -> int:
        self._count += 1
        return self._count

    async def _save(self, row):
        self.session.add(row)
        await self.session.commit()
        return row

    async def company(self, name: Optional[str] = None, is_active: bool = True) -> Company:
        n = self._next()
        return await self._save(
            Company(
                company_name=name or f"Company {n}",
                email=f"company{n}@acme.io",
                contact_name=f"Contact {n}",
                is_active=is_active,
            )
        )

    async def user(
        self,
        company: Optional[Company],
        role: UserRole = UserRole.company_user,
        *,
        organizations: tuple = (),
        collections: tuple = (),
        folders: tuple = (),
        is_active: bool = True,
        email: Optional[str] = None,
    ) -> User:
        n = self._next()
        return await self._save(
            User(
                email=email or f"user{n}@acme.io",
                username=f"User {n}",
                hashed_password=password_hash(),
                role=role.value,
                company_id=company.id if company else None,
                is_active=is_active,
                permissions={
                    "organizations": [getattr(o, "id", o) for o in organizations],
                    "collections": [getattr(c, "id", c) for c in collections],
                    "folders": [getattr(f, "id", f) for f in folders],
                },
            )
        )

    async def master_admin(self) -> User:
        return await self._save(
            User(
                email=f"root{self._next()}@acme.io",
                username="Master Admin",
                hashed_password=password_hash(),
                role=UserRole.master_admin.value,
                company_id=None,
                permissions=empty_permissions(),
            )
        )

    async def organization(self, company: Company, name: str = "Engineering") -> Organization:
        return await self._save(
            Organization(name=name, email=f"org{self._next()}@acme.io", company_id=company.id)
        )

    async def collection(
        self, company: Company, organization: Optional[Organization] = None, name: str = "Servers"
    ) -> Collection:
        return await self._save(
            Collection(
                name=name,
                company_id=company.id,
                organization_id=organization.id if organization else None,
            )
        )

    async def folder(
        self,
        company: Company,
        collection: Optional[Collection] = None,
        organization: Optional[Organization] = None,
        name: str = "Production",
    ) -> Folder:
        if organization is None and collection is not None:
            organization_id = collection.organization_id
        else:
            organization_id = organization.id if organization else None
        return await self._save(
            Folder(
                name=name,
                company_id=company.id,
                collection_id=collection.id if collection else None,
                organization_id=organization_id,
            )
        )

    async def credential(
        self,
        company: Company,
        *,
        urls: tuple = ("https://app.example.com/login",),
        folder: Optional[Folder] = None,
        collection: Optional[Collection] = None,
        item_name: Optional[str] = None,
        username: str = "alice",
        secret: str = "s3cret",
        notes: str = "",
        age: int = 0,
    ) -> Credential:
        """`age` minutes before BASE_TIME; the youngest credential sorts first."""
        n = self._next()
        stamp = BASE_TIME - timedelta(minutes=age)
        if folder is not None and collection is None and folder.collection_id:
            collection_id = folder.collection_id
        else:
            collection_id = collection.id if collection else None
        return await self._save(
            Credential(
                item_name=item_name or f"Login {n}",
                username=encrypt(username),
                secret=encrypt(secret),
                notes=encrypt(notes),
                website_urls=list(urls),
                company_id=company.id,
                folder_id=folder.id if folder else None,
                collection_id=collection_id,
                organization_id=folder.organization_id if folder else (
                    collection.organization_id if collection else None
                ),
                created_by="seed",
                created_at=stamp,
                updated_at=stamp,
            )
        )


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(db):
    return VaultFactory(db)


# =============================================================================
# API
# =============================================================================


@pytest.fixture
async def client(session_factory):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
