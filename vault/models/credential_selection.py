"""
models/credential_selection.py
------------------------------
Remembered credential choice for one (caller, host) pair.

Last write wins; there is no history. host is the normalised hostname
(lower-case, leading "www." removed), not the base domain, so
mail.example.com and accounts.example.com keep separate choices.
"""

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vault.db.base import Base, TimestampMixin


class CredentialSelection(Base, TimestampMixin):
    __tablename__ = "credential_selections"
    __table_args__ = (
        UniqueConstraint("caller_id", "host", name="uq_credential_selections_caller_host"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    caller_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    host: Mapped[str] = mapped_column(String(255), nullable=False)
    # Plain reference: the credential may be deleted after it was chosen.
    credential_id: Mapped[str] = mapped_column(String(36), nullable=False)

    def __repr__(self) -> str:
        return f"<CredentialSelection caller_id={self.caller_id} host={self.host}>"
