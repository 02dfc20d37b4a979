"""
models/credential.py
--------------------
A stored login ("Password" in the product UI).

username, secret and notes hold AES-GCM ciphertext produced by
vault.core.encryption; they are only decrypted at the moment a caller who
passed the permission resolver asks for them.

website_urls is a list of free-form strings as the user typed them. They
are not guaranteed to be well-formed URLs; matching tolerates that.

organization_id / collection_id / folder_id may each be unset. A credential
with none of them is "loose" at company level.
"""

import uuid
from typing import Optional

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vault.db.base import Base, TimestampMixin


class Credential(Base, TimestampMixin):
    __tablename__ = "credentials"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    secret: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    website_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Denormalised for zero-JOIN company-scoped queries
    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    collection_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    folder_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)

    def __repr__(self) -> str:
        return f"<Credential id={self.id} item_name={self.item_name}>"
