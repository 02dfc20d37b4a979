"""
models/company.py
-----------------
Company (tenant) ORM model.

Each company is an isolated organisational unit. All data belonging to a
company is scoped by company_id at the query level. Never trust
application-level filtering alone; always include company_id in WHERE clauses.

Deleting a company is the only cascading delete in the system: users,
credentials and the whole Organization → Collection → Folder hierarchy go
with it.
"""

import uuid

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vault.db.base import Base, TimestampMixin


class Company(Base, TimestampMixin):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    pin_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    users: Mapped[list["User"]] = relationship(  # noqa: F821
        "User", back_populates="company", cascade="all, delete-orphan"
    )
    organizations: Mapped[list["Organization"]] = relationship(  # noqa: F821
        "Organization", cascade="all, delete-orphan"
    )
    collections: Mapped[list["Collection"]] = relationship(  # noqa: F821
        "Collection", cascade="all, delete-orphan"
    )
    folders: Mapped[list["Folder"]] = relationship(  # noqa: F821
        "Folder", cascade="all, delete-orphan"
    )
    credentials: Mapped[list["Credential"]] = relationship(  # noqa: F821
        "Credential", cascade="all, delete-orphan"
    )
    trash_items: Mapped[list["TrashItem"]] = relationship(  # noqa: F821
        "TrashItem", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.company_name}>"
