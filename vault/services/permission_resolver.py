"""
services/permission_resolver.py
-------------------------------
The single place that decides which credentials (and which parts of the
Organization → Collection → Folder hierarchy) a caller may see.

Every list endpoint, single-item endpoint and the extension's domain lookup
go through PermissionResolver; none of them re-implement the chain rules.

Roles are handled by one policy object each:
  - master_admin:         everything, no filtering.
  - company_super_admin:  everything inside the caller's company.
  - company_user:         the grant-chain rule below.

Grant-chain rule (company_user)
  Grants are three independent id sets. Every link in a credential's own
  chain must be granted on its own:

    credential in folder F:      F ∈ folders
                                 ∧ F.collection ∈ collections
                                 ∧ F.collection.organization ∈ organizations
      (F without a collection:   F ∈ folders ∧ F.organization ∈ organizations)
    credential in collection C:  C ∈ collections ∧ C.organization ∈ organizations
    neither:                     never visible

  A link that is null, points at a missing row, or points into another
  company is a missing link. An organization grant alone shows nothing.

Two passes
  1. Broad: resolve the caller's granted rows into sets of valid folder and
     collection ids and turn them into a SQL predicate. Cheap, a superset.
  2. Strict: load the rows each returned credential actually references and
     re-apply the same rule per credential before anything is disclosed.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, Any, Iterable, Mapping, Optional, Protocol, Sequence

from sqlalchemy import and_, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from vault.core.exceptions import Forbidden, NotFound
from vault.core.logging import get_logger
from vault.core.security import Identity
from vault.models.collection import Collection
from vault.models.company import Company
from vault.models.credential import Credential
from vault.models.folder import Folder
from vault.models.organization import Organization
from vault.models.user import GRANT_LEVELS, User, UserRole

logger = get_logger(__name__)


# ── Caller model ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Grants:
    organizations: frozenset[str] = frozenset()
    collections: frozenset[str] = frozenset()
    folders: frozenset[str] = frozenset()

    @classmethod
    def from_permissions(cls, permissions: Optional[Mapping[str, Any]]) -> "Grants":
        permissions = permissions or {}
        return cls(
            *(
                frozenset(str(i) for i in (permissions.get(level) or ()))
                for level in GRANT_LEVELS
            )
        )

    @property
    def is_empty(self) -> bool:
        return not (self.organizations or self.collections or self.folders)


@dataclass(frozen=True)
class Caller:
    """Token identity plus grants read fresh from the users table."""

    id: str
    role: UserRole
    company_id: Optional[str]
    grants: Grants = field(default_factory=Grants)

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        role = UserRole(user.role)
        grants = (
            Grants.from_permissions(user.permissions)
            if role is UserRole.company_user
            else Grants()
        )
        return cls(id=user.id, role=role, company_id=user.company_id, grants=grants)


# ── Chain rules (pure) ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Hierarchy:
    """An already-loaded slice of one company's hierarchy rows, keyed by id."""

    organizations: Mapping[str, Any] = field(default_factory=dict)
    collections: Mapping[str, Any] = field(default_factory=dict)
    folders: Mapping[str, Any] = field(default_factory=dict)


def organization_visible(organization_id: Optional[str], grants: Grants, hierarchy: Hierarchy) -> bool:
    return (
        organization_id is not None
        and organization_id in grants.organizations
        and organization_id in hierarchy.organizations
    )


def collection_visible(collection_id: Optional[str], grants: Grants, hierarchy: Hierarchy) -> bool:
    if collection_id is None or collection_id not in grants.collections:
        return False
    collection = hierarchy.collections.get(collection_id)
    if collection is None:
        return False
    return organization_visible(collection.organization_id, grants, hierarchy)


def folder_visible(folder_id: Optional[str], grants: Grants, hierarchy: Hierarchy) -> bool:
    if folder_id is None or folder_id not in grants.folders:
        return False
    folder = hierarchy.folders.get(folder_id)
    if folder is None:
        return False
    if folder.collection_id:
        return collection_visible(folder.collection_id, grants, hierarchy)
    # Folder attached straight to an organization.
    return organization_visible(folder.organization_id, grants, hierarchy)


def credential_visible(credential: Any, grants: Grants, hierarchy: Hierarchy) -> bool:
    if credential.folder_id:
        return folder_visible(credential.folder_id, grants, hierarchy)
    if credential.collection_id:
        return collection_visible(credential.collection_id, grants, hierarchy)
    return False


@dataclass(frozen=True)
class ValidChain:
    """Granted ids that survive chain resolution for one company_user."""

    organization_ids: frozenset[str] = frozenset()
    collection_ids: frozenset[str] = frozenset()
    folder_ids: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (self.collection_ids or self.folder_ids)


# ── Storage helpers ───────────────────────────────────────────────────────────

async def _rows_by_id(
    db: AsyncSession, model: Any, ids: Iterable[Optional[str]], company_id: Optional[str]
) -> dict[str, Any]:
    wanted = {i for i in ids if i}
    if not wanted:
        return {}
    result = await db.execute(
        select(model).where(model.id.in_(wanted), model.company_id == company_id)
    )
    return {row.id: row for row in result.scalars().all()}


async def load_granted_hierarchy(db: AsyncSession, caller: Caller) -> Hierarchy:
    """Rows named by the caller's grants, one query per level."""
    grants = caller.grants
    return Hierarchy(
        organizations=await _rows_by_id(db, Organization, grants.organizations, caller.company_id),
        collections=await _rows_by_id(db, Collection, grants.collections, caller.company_id),
        folders=await _rows_by_id(db, Folder, grants.folders, caller.company_id),
    )


async def load_referenced_hierarchy(
    db: AsyncSession, company_id: Optional[str], credentials: Sequence[Credential]
) -> Hierarchy:
    """Rows the given credentials actually point at, batched per level."""
    folders = await _rows_by_id(db, Folder, (c.folder_id for c in credentials), company_id)
    collection_ids = {c.collection_id for c in credentials}
    collection_ids |= {f.collection_id for f in folders.values()}
    collections = await _rows_by_id(db, Collection, collection_ids, company_id)
    organization_ids = {c.organization_id for c in collections.values()}
    organization_ids |= {f.organization_id for f in folders.values()}
    organizations = await _rows_by_id(db, Organization, organization_ids, company_id)
    return Hierarchy(organizations=organizations, collections=collections, folders=folders)


# ── Role policies ─────────────────────────────────────────────────────────────

class AccessPolicy(Protocol):
    async def credential_criteria(
        self, db: AsyncSession, caller: Caller
    ) -> Optional[ColumnElement[bool]]:
        """Broad pre-filter. None means the caller can see nothing at all."""
        ...

    async def recheck(
        self, db: AsyncSession, caller: Caller, credentials: Sequence[Credential]
    ) -> list[Credential]:
        ...

    async def hierarchy_criteria(
        self, db: AsyncSession, caller: Caller, model: Any
    ) -> Optional[ColumnElement[bool]]:
        ...

    async def can_place(
        self, db: AsyncSession, caller: Caller, folder_id: Optional[str], collection_id: Optional[str]
    ) -> bool:
        ...


class MasterAdminPolicy:

    async def credential_criteria(self, db, caller):
        return true()

    async def recheck(self, db, caller, credentials):
        return list(credentials)

    async def hierarchy_criteria(self, db, caller, model):
        return true()

    async def can_place(self, db, caller, folder_id, collection_id):
        return True


class CompanySuperAdminPolicy:

    async def credential_criteria(self, db, caller):
        return Credential.company_id == caller.company_id

    async def recheck(self, db, caller, credentials):
        return [c for c in credentials if c.company_id == caller.company_id]

    async def hierarchy_criteria(self, db, caller, model):
        return model.company_id == caller.company_id

    async def can_place(self, db, caller, folder_id, collection_id):
        return True


class CompanyUserPolicy:

    async def valid_chain(self, db: AsyncSession, caller: Caller) -> ValidChain:
        if caller.grants.is_empty:
            return ValidChain()
        hierarchy = await load_granted_hierarchy(db, caller)
        grants = caller.grants
        return ValidChain(
            organization_ids=frozenset(
                i for i in hierarchy.organizations if organization_visible(i, grants, hierarchy)
            ),
            collection_ids=frozenset(
                i for i in hierarchy.collections if collection_visible(i, grants, hierarchy)
            ),
            folder_ids=frozenset(
                i for i in hierarchy.folders if folder_visible(i, grants, hierarchy)
            ),
        )

    async def credential_criteria(self, db, caller):
        chain = await self.valid_chain(db, caller)
        if chain.is_empty:
            return None
        return and_(
            Credential.company_id == caller.company_id,
            or_(
                Credential.folder_id.in_(chain.folder_ids),
                and_(
                    Credential.folder_id.is_(None),
                    Credential.collection_id.in_(chain.collection_ids),
                ),
            ),
        )

    async def recheck(self, db, caller, credentials):
        own = [c for c in credentials if c.company_id == caller.company_id]
        if not own:
            return []
        hierarchy = await load_referenced_hierarchy(db, caller.company_id, own)
        visible = [c for c in own if credential_visible(c, caller.grants, hierarchy)]
        if len(visible) != len(credentials):
            logger.warning(
                "Strict permission re-check dropped rows from broad filter",
                user_id=caller.id,
                dropped=len(credentials) - len(visible),
            )
        return visible

    async def hierarchy_criteria(self, db, caller, model):
        chain = await self.valid_chain(db, caller)
        ids: AbstractSet[str] = {
            Organization: chain.organization_ids,
            Collection: chain.collection_ids,
            Folder: chain.folder_ids,
        }[model]
        if not ids:
            return None
        return and_(model.company_id == caller.company_id, model.id.in_(ids))

    async def can_place(self, db, caller, folder_id, collection_id):
        chain = await self.valid_chain(db, caller)
        if folder_id:
            return folder_id in chain.folder_ids
        return collection_id is not None and collection_id in chain.collection_ids


# ── Resolver ──────────────────────────────────────────────────────────────────

class PermissionResolver:

    _policies: dict[UserRole, AccessPolicy] = {
        UserRole.master_admin: MasterAdminPolicy(),
        UserRole.company_super_admin: CompanySuperAdminPolicy(),
        UserRole.company_user: CompanyUserPolicy(),
    }

    @classmethod
    def policy_for(cls, caller: Caller) -> AccessPolicy:
        return cls._policies[caller.role]

    @staticmethod
    async def load_user(db: AsyncSession, identity: Identity) -> User:
        """
        Re-read the caller from storage and check it may act at all.

        Raises:
            Forbidden: missing or inactive user, inactive company, or a token
                whose role/company no longer matches the stored record.
        """
        result = await db.execute(select(User).where(User.id == identity.id))
        user = result.scalar_one_or_none()
        if user is None:
            logger.warning("Caller from valid token not found", user_id=identity.id)
            raise Forbidden("Account not found")
        if not user.is_active:
            logger.warning("Inactive caller rejected", user_id=user.id)
            raise Forbidden("Account is inactive")
        if user.role != identity.role or user.company_id != identity.company_id:
            logger.warning(
                "Token identity does not match stored account",
                user_id=user.id,
                token_company_id=identity.company_id,
            )
            raise Forbidden("Token does not match account")
        if user.company_id is not None:
            company_active = await db.scalar(
                select(Company.is_active).where(Company.id == user.company_id)
            )
            if not company_active:
                raise Forbidden("Company is inactive")
        return user

    @classmethod
    async def resolve(
        cls,
        db: AsyncSession,
        caller: Caller,
        *criteria: ColumnElement[bool],
    ) -> list[Credential]:
        """
        Every credential the caller may see that also satisfies `criteria`,
        most recently updated first. An empty grant set yields [] rather
        than an error.
        """
        policy = cls.policy_for(caller)
        broad = await policy.credential_criteria(db, caller)
        if broad is None:
            return []
        result = await db.execute(
            select(Credential)
            .where(broad, *criteria)
            .order_by(Credential.updated_at.desc(), Credential.id)
        )
        candidates = list(result.scalars().all())
        return await policy.recheck(db, caller, candidates)

    @classmethod
    async def get_visible(cls, db: AsyncSession, caller: Caller, credential_id: str) -> Credential:
        """
        Raises:
            NotFound: for a missing credential and an invisible one alike.
        """
        rows = await cls.resolve(db, caller, Credential.id == credential_id)
        if not rows:
            raise NotFound("Credential not found or access denied")
        return rows[0]

    @classmethod
    async def hierarchy_criteria(
        cls, db: AsyncSession, caller: Caller, model: Any
    ) -> Optional[ColumnElement[bool]]:
        """WHERE clause limiting Organization/Collection/Folder rows; None = nothing."""
        return await cls.policy_for(caller).hierarchy_criteria(db, caller, model)

    @classmethod
    async def can_place(
        cls,
        db: AsyncSession,
        caller: Caller,
        folder_id: Optional[str],
        collection_id: Optional[str],
    ) -> bool:
        """Whether the caller may store a credential at this placement."""
        return await cls.policy_for(caller).can_place(db, caller, folder_id, collection_id)
