"""API tests for stored credentials and the password generator."""

import pytest
from conftest import auth_headers

from vault.models.user import UserRole


@pytest.fixture
async def chain(factory):
    """Company with one fully granted folder chain and an ungranted collection."""
    company = await factory.company()
    org = await factory.organization(company)
    coll = await factory.collection(company, org)
    folder = await factory.folder(company, coll)
    hidden = await factory.collection(company, org, name="Hidden")
    user = await factory.user(company, organizations=[org], collections=[coll], folders=[folder])
    admin = await factory.user(company, UserRole.company_super_admin)
    return {
        "company": company,
        "org": org,
        "coll": coll,
        "folder": folder,
        "hidden": hidden,
        "user": auth_headers(user),
        "admin": auth_headers(admin),
    }


class TestCredentials:

    async def test_create_read_update(self, client, chain):
        """Stored encrypted, returned decrypted, placement filled in from the folder."""
        body = {
            "item_name": "Router",
            "username": "admin",
            "secret": "pa55",
            "notes": "rack 4",
            "website_urls": ["https://router.example.com", "  ", ""],
            "folder_id": chain["folder"].id,
        }
        created = await client.post("/credentials", json=body, headers=chain["user"])
        assert created.status_code == 201
        data = created.json()
        assert data["secret"] == "pa55"
        assert data["website_urls"] == ["https://router.example.com"]
        assert data["collection_id"] == chain["coll"].id
        assert data["organization_id"] == chain["org"].id
        assert data["display_label"] == "Router (admin)"

        updated = await client.put(
            f"/credentials/{data['id']}", json={"secret": "n3w"}, headers=chain["user"]
        )
        assert updated.status_code == 200
        assert updated.json()["secret"] == "n3w"
        assert updated.json()["username"] == "admin"

        fetched = await client.get(f"/credentials/{data['id']}", headers=chain["admin"])
        assert fetched.json()["notes"] == "rack 4"

    async def test_restricted_user_cannot_place_outside_grants(self, client, chain):
        body = {
            "item_name": "Sneaky",
            "username": "x",
            "secret": "y",
            "collection_id": chain["hidden"].id,
        }
        response = await client.post("/credentials", json=body, headers=chain["user"])
        assert response.status_code == 403

    async def test_restricted_user_needs_a_placement(self, client, chain):
        body = {"item_name": "Loose", "username": "x", "secret": "y"}
        response = await client.post("/credentials", json=body, headers=chain["user"])
        assert response.status_code == 403

    async def test_admin_may_store_loose(self, client, chain):
        body = {"item_name": "Loose", "username": "x", "secret": "y"}
        response = await client.post("/credentials", json=body, headers=chain["admin"])
        assert response.status_code == 201
        assert response.json()["folder_id"] is None

    async def test_inconsistent_placement_rejected(self, client, chain):
        """A folder and a collection that do not belong together."""
        body = {
            "item_name": "Bad",
            "username": "x",
            "secret": "y",
            "folder_id": chain["folder"].id,
            "collection_id": chain["hidden"].id,
        }
        response = await client.post("/credentials", json=body, headers=chain["admin"])
        assert response.status_code == 400

    async def test_invisible_is_404_for_every_verb(self, client, factory, chain):
        cred = await factory.credential(chain["company"], collection=chain["hidden"])
        headers = chain["user"]
        assert (await client.get(f"/credentials/{cred.id}", headers=headers)).status_code == 404
        assert (
            await client.put(f"/credentials/{cred.id}", json={"notes": "x"}, headers=headers)
        ).status_code == 404
        assert (await client.delete(f"/credentials/{cred.id}", headers=headers)).status_code == 404

    async def test_list_search_and_paging(self, client, factory, chain):
        company = chain["company"]
        await factory.credential(company, item_name="GitHub", urls=("github.com",), age=1)
        await factory.credential(company, item_name="GitLab", urls=("gitlab.com",), age=2)
        await factory.credential(company, item_name="Jira", urls=("atlassian.net",), age=3)

        listed = await client.get("/credentials", params={"q": "git"}, headers=chain["admin"])
        assert listed.json()["total"] == 2
        assert [i["item_name"] for i in listed.json()["items"]] == ["GitHub", "GitLab"]

        page = await client.get(
            "/credentials", params={"skip": 1, "limit": 1}, headers=chain["admin"]
        )
        assert page.json()["total"] == 3
        assert [i["item_name"] for i in page.json()["items"]] == ["GitLab"]
        assert "secret" not in page.json()["items"][0]

    async def test_list_for_restricted_user(self, client, factory, chain):
        company = chain["company"]
        mine = await factory.credential(company, folder=chain["folder"])
        await factory.credential(company, collection=chain["hidden"])
        await factory.credential(company)

        listed = await client.get("/credentials", headers=chain["user"])
        assert [i["id"] for i in listed.json()["items"]] == [mine.id]

    async def test_master_admin_cannot_create(self, client, factory):
        root = await factory.master_admin()
        body = {"item_name": "X", "username": "x", "secret": "y"}
        response = await client.post("/credentials", json=body, headers=auth_headers(root))
        assert response.status_code == 403


@pytest.fixture
async def second_chain(factory, chain):
    """Another collection and folder in the same organization."""
    coll = await factory.collection(chain["company"], chain["org"], name="Ops")
    folder = await factory.folder(chain["company"], coll, name="Servers")
    return coll, folder


class TestPlacementChanges:

    async def test_new_folder_brings_its_own_collection(self, client, factory, chain, second_chain):
        """Only folder_id sent: collection and organization follow the new folder."""
        coll2, folder2 = second_chain
        cred = await factory.credential(chain["company"], folder=chain["folder"])

        response = await client.put(
            f"/credentials/{cred.id}", json={"folder_id": folder2.id}, headers=chain["admin"]
        )

        assert response.status_code == 200
        data = response.json()
        assert data["folder_id"] == folder2.id
        assert data["collection_id"] == coll2.id
        assert data["organization_id"] == chain["org"].id

    async def test_clearing_folder_clears_its_chain(self, client, factory, chain):
        cred = await factory.credential(chain["company"], folder=chain["folder"])

        response = await client.put(
            f"/credentials/{cred.id}", json={"folder_id": None}, headers=chain["admin"]
        )

        assert response.status_code == 200
        assert response.json()["folder_id"] is None
        assert response.json()["collection_id"] is None

    async def test_new_collection_drops_old_folder(self, client, factory, chain, second_chain):
        coll2, _ = second_chain
        cred = await factory.credential(chain["company"], folder=chain["folder"])

        response = await client.put(
            f"/credentials/{cred.id}", json={"collection_id": coll2.id}, headers=chain["admin"]
        )

        assert response.status_code == 200
        assert response.json()["collection_id"] == coll2.id
        assert response.json()["folder_id"] is None

    async def test_explicit_mismatch_still_rejected(self, client, factory, chain, second_chain):
        _, folder2 = second_chain
        cred = await factory.credential(chain["company"], folder=chain["folder"])

        response = await client.put(
            f"/credentials/{cred.id}",
            json={"folder_id": folder2.id, "collection_id": chain["coll"].id},
            headers=chain["admin"],
        )
        assert response.status_code == 400


# =============================================================================
# Bulk operations
# =============================================================================


def _entry(name: str, **placement) -> dict:
    return {"item_name": name, "username": "u", "secret": "p", **placement}


class TestBulkCreate:

    async def test_creates_every_item(self, client, chain):
        body = {"items": [
            _entry("One", folder_id=chain["folder"].id),
            _entry("Two", collection_id=chain["coll"].id),
        ]}

        response = await client.post("/credentials/bulk-create", json=body, headers=chain["user"])

        assert response.status_code == 201
        data = response.json()
        assert data["total"] == 2
        assert [i["item_name"] for i in data["items"]] == ["One", "Two"]
        assert data["items"][0]["collection_id"] == chain["coll"].id

    async def test_one_forbidden_item_rejects_batch(self, client, chain):
        """Nothing is stored when any placement is refused."""
        body = {"items": [
            _entry("Fine", folder_id=chain["folder"].id),
            _entry("Hidden", collection_id=chain["hidden"].id),
        ]}

        response = await client.post("/credentials/bulk-create", json=body, headers=chain["user"])

        assert response.status_code == 403
        listed = await client.get("/credentials", headers=chain["admin"])
        assert listed.json()["total"] == 0

    async def test_empty_batch_is_422(self, client, chain):
        response = await client.post(
            "/credentials/bulk-create", json={"items": []}, headers=chain["admin"]
        )
        assert response.status_code == 422


class TestBulkMove:

    async def test_moves_visible_credentials(self, client, factory, chain, second_chain):
        coll2, folder2 = second_chain
        a = await factory.credential(chain["company"], folder=chain["folder"])
        b = await factory.credential(chain["company"], collection=chain["coll"])

        response = await client.post(
            "/credentials/bulk-move",
            json={"credential_ids": [a.id, b.id, a.id], "folder_id": folder2.id},
            headers=chain["admin"],
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {i["folder_id"] for i in data["items"]} == {folder2.id}
        assert {i["collection_id"] for i in data["items"]} == {coll2.id}

    async def test_invisible_id_moves_nothing(self, client, factory, chain):
        """One hidden credential in the batch is a 404 and the others stay put."""
        mine = await factory.credential(chain["company"], folder=chain["folder"])
        hidden = await factory.credential(chain["company"], collection=chain["hidden"])

        response = await client.post(
            "/credentials/bulk-move",
            json={"credential_ids": [mine.id, hidden.id], "collection_id": chain["coll"].id},
            headers=chain["user"],
        )

        assert response.status_code == 404
        fetched = await client.get(f"/credentials/{mine.id}", headers=chain["user"])
        assert fetched.json()["folder_id"] == chain["folder"].id

    async def test_destination_must_be_placeable(self, client, factory, chain):
        mine = await factory.credential(chain["company"], folder=chain["folder"])

        response = await client.post(
            "/credentials/bulk-move",
            json={"credential_ids": [mine.id], "collection_id": chain["hidden"].id},
            headers=chain["user"],
        )
        assert response.status_code == 403

    async def test_destination_required(self, client, factory, chain):
        mine = await factory.credential(chain["company"], folder=chain["folder"])

        response = await client.post(
            "/credentials/bulk-move",
            json={"credential_ids": [mine.id], "organization_id": chain["org"].id},
            headers=chain["admin"],
        )
        assert response.status_code == 422


class TestGenerate:

    async def test_generate(self, client, chain):
        response = await client.post(
            "/credentials/generate", json={"length": 24}, headers=chain["user"]
        )
        assert response.status_code == 200
        assert response.json()["length"] == 24
        assert len(response.json()["password"]) == 24

    async def test_no_character_sets_is_422(self, client, chain):
        body = {"uppercase": False, "lowercase": False, "numbers": False, "special": False}
        response = await client.post("/credentials/generate", json=body, headers=chain["user"])
        assert response.status_code == 422

    async def test_minimums_exceeding_length_is_400(self, client, chain):
        body = {"length": 4, "min_numbers": 3, "min_special": 3}
        response = await client.post("/credentials/generate", json=body, headers=chain["user"])
        assert response.status_code == 400
