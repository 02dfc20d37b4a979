"""
create_tables.py
----------------
One-shot script to create all database tables and, when MASTER_ADMIN_EMAIL
and MASTER_ADMIN_PASSWORD are set, the platform's master admin account.
Use this for quick setup. For production migrations, use Alembic instead.

Usage:
    python create_tables.py
"""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from vault.core.config import settings
from vault.core.logging import configure_logging, get_logger
from vault.core.security import hash_password
from vault.models import Base, User, UserRole  # Imports all models so metadata is populated
from vault.models.user import empty_permissions

logger = get_logger(__name__)


async def seed_master_admin(session: AsyncSession) -> None:
    email = settings.MASTER_ADMIN_EMAIL.lower()
    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.first() is not None:
        logger.info("Master admin already present", email=email)
        return
    session.add(
        User(
            email=email,
            username="Master Admin",
            hashed_password=hash_password(settings.MASTER_ADMIN_PASSWORD),
            role=UserRole.master_admin.value,
            company_id=None,
            permissions=empty_permissions(),
        )
    )
    await session.commit()
    logger.info("Master admin created", email=email)


async def create_all_tables() -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("All tables created")

    if settings.MASTER_ADMIN_EMAIL and settings.MASTER_ADMIN_PASSWORD:
        session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
        async with session_factory() as session:
            await seed_master_admin(session)
    await engine.dispose()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(create_all_tables())
