"""
models/__init__.py
------------------
Re-export all models so create_tables.py (and Alembic's env.py, if added)
can import Base and discover all tables via a single import:

    from vault.models import Base
"""

from vault.db.base import Base
from vault.models.company import Company
from vault.models.user import User, UserRole
from vault.models.organization import Organization
from vault.models.collection import Collection
from vault.models.folder import Folder
from vault.models.credential import Credential
from vault.models.credential_selection import CredentialSelection
from vault.models.trash import TrashItem, TrashItemType

__all__ = [
    "Base",
    "Company",
    "User",
    "UserRole",
    "Organization",
    "Collection",
    "Folder",
    "Credential",
    "CredentialSelection",
    "TrashItem",
    "TrashItemType",
]
