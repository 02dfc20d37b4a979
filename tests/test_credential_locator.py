"""Tests for CredentialLocator and the selection coordinator."""

import pytest

from vault.core.exceptions import MissingHost, NotFound
from vault.models.user import UserRole
from vault.services.credential_locator import CredentialLocator, stored_spellings
from vault.services.credential_service import CredentialService
from vault.services.permission_resolver import Caller
from vault.services.selection_service import (
    SOURCE_HINT,
    SOURCE_MOST_RECENT,
    SOURCE_REMEMBERED,
    SOURCE_SINGLE,
    SelectionCoordinator,
    choose,
    selection_key,
)


@pytest.fixture
async def granted(factory):
    """A company, a fully granted folder chain and a user holding it."""
    company = await factory.company()
    org = await factory.organization(company)
    coll = await factory.collection(company, org)
    folder = await factory.folder(company, coll)
    user = await factory.user(company, organizations=[org], collections=[coll], folders=[folder])
    return company, folder, Caller.from_user(user)


# =============================================================================
# Locate
# =============================================================================


class TestLocate:

    async def test_only_visible_match_returned(self, db, factory, granted):
        """Organization-only placement is hidden; the folder-chain one is shown."""
        company, folder, _ = granted
        org_only = await factory.organization(company, name="Sales")
        sales = await factory.collection(company, org_only, name="Sales logins")
        await factory.credential(company, collection=sales, urls=("https://app.example.com",))
        visible = await factory.credential(company, folder=folder, urls=("app.example.com/login",))
        user = await factory.user(
            company,
            organizations=[folder.organization_id, org_only],
            collections=[folder.collection_id],
            folders=[folder],
        )
        caller = Caller.from_user(user)

        result = await CredentialLocator.locate(db, caller, "app.example.com")

        assert [m.id for m in result.matches] == [visible.id]
        assert result.count == 1
        assert result.selection_source == SOURCE_SINGLE

    async def test_recency_order_and_remembered_pick(self, db, factory, granted):
        """Three matches newest first; a stored pick wins over recency."""
        company, folder, caller = granted
        first = await factory.credential(company, folder=folder, age=1)
        second = await factory.credential(company, folder=folder, age=2)
        third = await factory.credential(company, folder=folder, age=3)

        result = await CredentialLocator.locate(db, caller, "https://app.example.com/")
        assert [m.id for m in result.matches] == [first.id, second.id, third.id]
        assert result.selected.id == first.id
        assert result.selection_source == SOURCE_MOST_RECENT
        assert result.has_multiple

        await SelectionCoordinator.set_selection(db, caller, "app.example.com", second.id)
        result = await CredentialLocator.locate(db, caller, "app.example.com")
        assert result.selected.id == second.id
        assert result.selection_source == SOURCE_REMEMBERED

    async def test_deleted_selection_falls_back(self, db, factory, granted):
        """A remembered credential that is gone is ignored, not an error."""
        company, folder, caller = granted
        newest = await factory.credential(company, folder=folder, age=1)
        picked = await factory.credential(company, folder=folder, age=5)
        await SelectionCoordinator.set_selection(db, caller, "app.example.com", picked.id)

        await CredentialService.delete_credential(db, caller, picked.id)

        result = await CredentialLocator.locate(db, caller, "app.example.com")
        assert [m.id for m in result.matches] == [newest.id]
        assert result.selected.id == newest.id

    async def test_hint_among_matches_wins(self, db, factory, granted):
        company, folder, caller = granted
        await factory.credential(company, folder=folder, age=1)
        older = await factory.credential(company, folder=folder, age=2)

        result = await CredentialLocator.locate(db, caller, "app.example.com", older.id)
        assert result.selected.id == older.id
        assert result.selection_source == SOURCE_HINT

    async def test_locate_is_idempotent(self, db, factory, granted):
        """Two calls with no writes in between agree, and nothing is stored."""
        company, folder, caller = granted
        await factory.credential(company, folder=folder, age=1)
        hinted = await factory.credential(company, folder=folder, age=2)

        first = await CredentialLocator.locate(db, caller, "app.example.com", hinted.id)
        second = await CredentialLocator.locate(db, caller, "app.example.com", hinted.id)

        assert [m.id for m in first.matches] == [m.id for m in second.matches]
        assert first.selected.id == second.selected.id
        assert await SelectionCoordinator.get_selection(db, caller, "app.example.com") is None

    async def test_subdomains_share_credentials(self, db, factory, granted):
        """A mail.google.com credential is offered on accounts.google.com."""
        company, folder, caller = granted
        cred = await factory.credential(company, folder=folder, urls=("https://mail.google.com",))

        result = await CredentialLocator.locate(db, caller, "accounts.google.com")
        assert result.base_host == "google.com"
        assert [m.id for m in result.matches] == [cred.id]

    async def test_lookalike_domain_excluded(self, db, factory, granted):
        """The substring pre-filter over-matches; exact base comparison drops it."""
        company, folder, caller = granted
        await factory.credential(company, folder=folder, urls=("https://notgoogle.com",))

        result = await CredentialLocator.locate(db, caller, "google.com")
        assert result.matches == []
        assert result.selected is None
        assert result.selection_source is None

    async def test_internationalized_domain_matches(self, db, factory, granted):
        """Non-ASCII hosts are found although the URL list is stored \\u-escaped."""
        company, folder, caller = granted
        cred = await factory.credential(company, folder=folder, urls=("https://bücher.de/login",))
        await factory.credential(company, folder=folder, urls=("https://buecher.de",))

        result = await CredentialLocator.locate(db, caller, "https://www.bücher.de")
        assert result.base_host == "bücher.de"
        assert [m.id for m in result.matches] == [cred.id]

    def test_stored_spellings(self):
        assert stored_spellings("acme.io") == ["acme.io"]
        assert stored_spellings("bücher.de") == ["bücher.de", "b\\u00fccher.de"]

    async def test_like_wildcards_escaped(self, db, factory, granted):
        """Underscores in the host are literal, not single-char wildcards."""
        company, folder, caller = granted
        await factory.credential(company, folder=folder, urls=("https://myxsite.com",))

        result = await CredentialLocator.locate(db, caller, "my_site.com")
        assert result.matches == []

    async def test_decrypted_fields_and_label(self, db, factory, granted):
        company, folder, caller = granted
        await factory.credential(
            company, folder=folder, item_name="Gmail", username="bob", secret="hunter2"
        )

        result = await CredentialLocator.locate(db, caller, "app.example.com")
        match = result.matches[0]
        assert (match.username, match.secret) == ("bob", "hunter2")
        assert match.display_label == "Gmail (bob)"

    async def test_any_stored_url_may_match(self, db, factory, granted):
        """A credential matches when one of its URLs does, malformed ones ignored."""
        company, folder, caller = granted
        cred = await factory.credential(
            company, folder=folder, urls=("http://[broken", "https://portal.example.com")
        )
        result = await CredentialLocator.locate(db, caller, "app.example.com")
        assert [m.id for m in result.matches] == [cred.id]

    @pytest.mark.parametrize("host", [None, "", "   "])
    async def test_missing_host(self, db, granted, host):
        _, _, caller = granted
        with pytest.raises(MissingHost):
            await CredentialLocator.locate(db, caller, host)

    async def test_super_admin_sees_loose_credentials(self, db, factory):
        """Credentials outside any collection or folder are admin-only."""
        company = await factory.company()
        loose = await factory.credential(company)
        admin = await factory.user(company, UserRole.company_super_admin)
        user = await factory.user(company)

        admin_result = await CredentialLocator.locate(db, Caller.from_user(admin), "app.example.com")
        user_result = await CredentialLocator.locate(db, Caller.from_user(user), "app.example.com")
        assert [m.id for m in admin_result.matches] == [loose.id]
        assert user_result.matches == []


# =============================================================================
# Selection
# =============================================================================


class TestChoose:

    def test_empty(self):
        assert choose([]) == (None, None)

    def test_stale_ids_ignored(self):
        """Hint and remembered ids no longer among the matches are skipped."""
        a, b = _Item("a"), _Item("b")
        assert choose([a, b], remembered_id="gone", hint_id="also-gone") == (a, SOURCE_MOST_RECENT)

    def test_hint_beats_remembered(self):
        a, b, c = _Item("a"), _Item("b"), _Item("c")
        assert choose([a, b, c], remembered_id="b", hint_id="c") == (c, SOURCE_HINT)


class _Item:
    def __init__(self, id):
        self.id = id


class TestSelectionCoordinator:

    def test_selection_key_normalises(self):
        """URLs, case and www. all collapse to one key; subdomains stay distinct."""
        assert selection_key("https://WWW.Example.com/login") == "example.com"
        assert selection_key(" app.example.com ") == "app.example.com"

    async def test_last_write_wins(self, db, factory, granted):
        company, folder, caller = granted
        one = await factory.credential(company, folder=folder)
        two = await factory.credential(company, folder=folder)

        await SelectionCoordinator.set_selection(db, caller, "www.app.example.com", one.id)
        await SelectionCoordinator.set_selection(db, caller, "https://app.example.com/x", two.id)

        assert await SelectionCoordinator.get_selection(db, caller, "app.example.com") == two.id

    async def test_invisible_credential_rejected(self, db, factory, granted):
        """Remembering a credential the caller cannot see is a NotFound."""
        company, _, caller = granted
        hidden = await factory.credential(company)
        with pytest.raises(NotFound):
            await SelectionCoordinator.set_selection(db, caller, "app.example.com", hidden.id)

    async def test_blank_host_rejected(self, db, factory, granted):
        company, folder, caller = granted
        cred = await factory.credential(company, folder=folder)
        with pytest.raises(MissingHost):
            await SelectionCoordinator.set_selection(db, caller, "  ", cred.id)
