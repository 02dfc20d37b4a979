"""Tests for the grant-chain permission resolver.

Pure chain rules are tested against in-memory Hierarchy slices; the role
policies and the two-pass resolve are tested against SQLite.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from vault.core.exceptions import Forbidden, NotFound
from vault.core.security import Identity
from vault.models.user import UserRole
from vault.services.permission_resolver import (
    Caller,
    CompanyUserPolicy,
    Grants,
    Hierarchy,
    PermissionResolver,
    collection_visible,
    credential_visible,
    folder_visible,
)


def _hierarchy():
    """O1 ← C1 ← F1, plus F2 hanging straight off O1."""
    return Hierarchy(
        organizations={"O1": SimpleNamespace(id="O1")},
        collections={"C1": SimpleNamespace(id="C1", organization_id="O1")},
        folders={
            "F1": SimpleNamespace(id="F1", collection_id="C1", organization_id="O1"),
            "F2": SimpleNamespace(id="F2", collection_id=None, organization_id="O1"),
        },
    )


def _credential(folder_id=None, collection_id=None):
    return SimpleNamespace(folder_id=folder_id, collection_id=collection_id)


# =============================================================================
# Pure chain rules
# =============================================================================


class TestChainRules:

    def test_full_folder_chain_visible(self):
        """Folder, its collection and its organization all granted."""
        grants = Grants(frozenset({"O1"}), frozenset({"C1"}), frozenset({"F1"}))
        assert credential_visible(_credential("F1", "C1"), grants, _hierarchy())

    def test_folder_without_collection_grant(self):
        """A granted folder whose collection is not granted hides its credentials."""
        grants = Grants(frozenset({"O1"}), frozenset(), frozenset({"F1"}))
        assert not credential_visible(_credential("F1", "C1"), grants, _hierarchy())

    def test_folder_without_organization_grant(self):
        """The organization link is checked too."""
        grants = Grants(frozenset(), frozenset({"C1"}), frozenset({"F1"}))
        assert not folder_visible("F1", grants, _hierarchy())

    def test_folder_directly_under_organization(self):
        """A folder with no collection needs only itself and its organization."""
        grants = Grants(frozenset({"O1"}), frozenset(), frozenset({"F2"}))
        assert credential_visible(_credential("F2"), grants, _hierarchy())

    def test_collection_credential(self):
        """A credential with no folder checks collection then organization."""
        grants = Grants(frozenset({"O1"}), frozenset({"C1"}), frozenset())
        assert credential_visible(_credential(collection_id="C1"), grants, _hierarchy())

    def test_folder_takes_precedence_over_collection(self):
        """With a folder set, a collection grant alone is not enough."""
        grants = Grants(frozenset({"O1"}), frozenset({"C1"}), frozenset())
        assert not credential_visible(_credential("F1", "C1"), grants, _hierarchy())

    def test_organization_grant_alone_shows_nothing(self):
        grants = Grants(frozenset({"O1"}), frozenset(), frozenset())
        assert not credential_visible(_credential("F1", "C1"), grants, _hierarchy())
        assert not credential_visible(_credential(collection_id="C1"), grants, _hierarchy())

    def test_loose_credential_never_visible(self):
        """No folder and no collection: invisible whatever the grants."""
        grants = Grants(frozenset({"O1"}), frozenset({"C1"}), frozenset({"F1", "F2"}))
        assert not credential_visible(_credential(), grants, _hierarchy())

    def test_dangling_link_is_missing(self):
        """A granted collection whose organization row is gone is not visible."""
        hierarchy = Hierarchy(
            organizations={},
            collections={"C1": SimpleNamespace(id="C1", organization_id="O1")},
        )
        grants = Grants(frozenset({"O1"}), frozenset({"C1"}), frozenset())
        assert not collection_visible("C1", grants, hierarchy)

    def test_grants_from_permissions(self):
        """Missing levels become empty sets; ids are stringified."""
        grants = Grants.from_permissions({"folders": ["F1"], "collections": None})
        assert grants.folders == frozenset({"F1"})
        assert grants.collections == frozenset()
        assert not grants.is_empty
        assert Grants.from_permissions(None).is_empty


# =============================================================================
# Resolve against storage
# =============================================================================


class TestResolve:

    async def test_scenario_folder_without_collection_grant(self, db, factory):
        """folders=[F1], collections=[]: credential in F1 is not visible."""
        company = await factory.company()
        org = await factory.organization(company)
        coll = await factory.collection(company, org)
        folder = await factory.folder(company, coll)
        await factory.credential(company, folder=folder)
        user = await factory.user(company, organizations=[org], folders=[folder])

        assert await PermissionResolver.resolve(db, Caller.from_user(user)) == []

    async def test_full_chain_visible(self, db, factory):
        """Every link granted: the credential comes back."""
        company = await factory.company()
        org = await factory.organization(company)
        coll = await factory.collection(company, org)
        folder = await factory.folder(company, coll)
        cred = await factory.credential(company, folder=folder)
        user = await factory.user(
            company, organizations=[org], collections=[coll], folders=[folder]
        )

        rows = await PermissionResolver.resolve(db, Caller.from_user(user))
        assert [r.id for r in rows] == [cred.id]

    async def test_empty_grants_yield_nothing(self, db, factory):
        """A new user sees nothing, and it is not an error."""
        company = await factory.company()
        coll = await factory.collection(company, await factory.organization(company))
        await factory.credential(company, collection=coll)
        user = await factory.user(company)

        assert await PermissionResolver.resolve(db, Caller.from_user(user)) == []

    async def test_super_admin_sees_own_company_only(self, db, factory):
        """Loose credentials included, other companies excluded."""
        acme = await factory.company()
        other = await factory.company()
        mine = await factory.credential(acme)
        await factory.credential(other)
        admin = await factory.user(acme, UserRole.company_super_admin)

        rows = await PermissionResolver.resolve(db, Caller.from_user(admin))
        assert [r.id for r in rows] == [mine.id]

    async def test_master_admin_sees_everything(self, db, factory):
        acme = await factory.company()
        other = await factory.company()
        await factory.credential(acme)
        await factory.credential(other)
        root = await factory.master_admin()

        rows = await PermissionResolver.resolve(db, Caller.from_user(root))
        assert len(rows) == 2

    async def test_grants_into_other_company_ignored(self, db, factory):
        """Ids granted from another company never form a chain."""
        acme = await factory.company()
        other = await factory.company()
        org = await factory.organization(other)
        coll = await factory.collection(other, org)
        await factory.credential(other, collection=coll)
        user = await factory.user(acme, organizations=[org], collections=[coll])

        assert await PermissionResolver.resolve(db, Caller.from_user(user)) == []

    async def test_most_recent_first(self, db, factory):
        """Ordering is by updated_at, newest first."""
        company = await factory.company()
        old = await factory.credential(company, age=30)
        new = await factory.credential(company, age=1)
        admin = await factory.user(company, UserRole.company_super_admin)

        rows = await PermissionResolver.resolve(db, Caller.from_user(admin))
        assert [r.id for r in rows] == [new.id, old.id]

    async def test_strict_pass_drops_broad_false_positives(self, db, factory):
        """Rows let through by the broad filter are re-checked per credential."""
        company = await factory.company()
        org = await factory.organization(company)
        coll = await factory.collection(company, org)
        other_coll = await factory.collection(company, org, name="Other")
        folder = await factory.folder(company, coll)
        # Folder is valid, but the credential claims a folder under a
        # collection the user never got: only the strict pass sees it.
        cred = await factory.credential(company, folder=folder)
        user = await factory.user(
            company, organizations=[org], collections=[coll], folders=[folder]
        )
        caller = Caller.from_user(user)

        hidden = Hierarchy(
            organizations={org.id: org},
            collections={other_coll.id: other_coll},
            folders={folder.id: SimpleNamespace(id=folder.id, collection_id=other_coll.id)},
        )
        with patch(
            "vault.services.permission_resolver.load_referenced_hierarchy",
            return_value=hidden,
        ):
            assert await PermissionResolver.resolve(db, caller) == []

        rows = await PermissionResolver.resolve(db, caller)
        assert [r.id for r in rows] == [cred.id]

    async def test_get_visible_hides_existence(self, db, factory):
        """Missing and invisible are the same NotFound."""
        company = await factory.company()
        cred = await factory.credential(company)
        user = await factory.user(company)
        caller = Caller.from_user(user)

        with pytest.raises(NotFound):
            await PermissionResolver.get_visible(db, caller, cred.id)
        with pytest.raises(NotFound):
            await PermissionResolver.get_visible(db, caller, "no-such-id")


class TestHierarchyCriteria:

    async def test_company_user_hierarchy_scope(self, db, factory):
        """Only rows with a valid chain are listed at each level."""
        company = await factory.company()
        org = await factory.organization(company)
        coll = await factory.collection(company, org)
        ungranted = await factory.collection(company, org, name="Ungranted")
        user = await factory.user(company, organizations=[org], collections=[coll, ungranted.id + "x"])
        chain = await CompanyUserPolicy().valid_chain(db, Caller.from_user(user))

        assert chain.organization_ids == frozenset({org.id})
        assert chain.collection_ids == frozenset({coll.id})
        assert chain.folder_ids == frozenset()

    async def test_can_place(self, db, factory):
        company = await factory.company()
        org = await factory.organization(company)
        coll = await factory.collection(company, org)
        other = await factory.collection(company, org, name="Other")
        user = await factory.user(company, organizations=[org], collections=[coll])
        caller = Caller.from_user(user)

        assert await PermissionResolver.can_place(db, caller, None, coll.id)
        assert not await PermissionResolver.can_place(db, caller, None, other.id)
        assert not await PermissionResolver.can_place(db, caller, None, None)


# =============================================================================
# Caller loading
# =============================================================================


class TestLoadUser:

    async def test_active_user_loaded(self, db, factory):
        company = await factory.company()
        user = await factory.user(company)
        identity = Identity(id=user.id, role=user.role, company_id=company.id)
        loaded = await PermissionResolver.load_user(db, identity)
        assert loaded.id == user.id

    async def test_inactive_user_forbidden(self, db, factory):
        company = await factory.company()
        user = await factory.user(company, is_active=False)
        with pytest.raises(Forbidden):
            await PermissionResolver.load_user(
                db, Identity(id=user.id, role=user.role, company_id=company.id)
            )

    async def test_company_mismatch_forbidden(self, db, factory):
        """A token naming another company is rejected even for a real user."""
        company = await factory.company()
        other = await factory.company()
        user = await factory.user(company)
        with pytest.raises(Forbidden):
            await PermissionResolver.load_user(
                db, Identity(id=user.id, role=user.role, company_id=other.id)
            )

    async def test_inactive_company_forbidden(self, db, factory):
        company = await factory.company(is_active=False)
        user = await factory.user(company)
        with pytest.raises(Forbidden):
            await PermissionResolver.load_user(
                db, Identity(id=user.id, role=user.role, company_id=company.id)
            )

    async def test_unknown_user_forbidden(self, db):
        with pytest.raises(Forbidden):
            await PermissionResolver.load_user(
                db, Identity(id="ghost", role="company_user", company_id=None)
            )
