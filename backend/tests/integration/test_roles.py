# backend/tests/integration/test_roles.py
import pytest

from conftest import run
from roletag.errors import NotFoundError
from roletag.services.directory import DirectoryStore


def test_list_roles(client, seed, owner_headers):
    response = client.get("/api/v1/my/roles", headers=owner_headers)

    assert response.status_code == 200
    names = {r["name"] for r in response.json()}
    assert names == {"operators", "auditors", "partners"}


def test_get_role_structured(client, seed, owner_headers):
    response = client.get("/api/v1/my/roles/operators", headers=owner_headers)

    assert response.status_code == 200
    data = response.json()
    members = {m["login"]: m for m in data["members"]}
    assert members["alice"]["default"] is True
    assert members["bob"]["default"] is False
    assert members["alice"]["type"] == "subuser"
    assert [p["name"] for p in data["policies"]] == ["read-only"]


def test_get_role_legacy(client, seed, owner_headers):
    response = client.get(
        "/api/v1/my/roles/operators",
        headers={**owner_headers, "Accept-Version": "~8"},
    )

    data = response.json()
    assert sorted(data["members"]) == ["alice", "bob"]
    assert data["default_members"] == ["alice"]
    assert data["policies"] == ["read-only"]


def test_cross_account_member(client, seed, owner_headers):
    structured = client.get(f"/api/v1/my/roles/{seed.partners.id}", headers=owner_headers).json()
    legacy = client.get(
        f"/api/v1/my/roles/{seed.partners.id}",
        headers={**owner_headers, "Accept-Version": "8"},
    ).json()

    assert structured["members"] == [
        {"type": "account", "id": str(seed.globex.id), "login": "globex", "default": False}
    ]
    assert legacy["members"] == []


def test_get_missing_role(client, seed, owner_headers):
    response = client.get("/api/v1/my/roles/ghost", headers=owner_headers)
    assert response.status_code == 404


def test_create_role(client, seed, owner_headers):
    response = client.post(
        "/api/v1/my/roles",
        json={
            "name": "deployers",
            "members": ["alice", {"type": "account", "login": "globex"}],
            "default_members": ["bob"],
            "policies": ["read-only"],
        },
        headers={**owner_headers, "role-tag": "operators"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "deployers"
    assert {m["login"] for m in data["members"]} == {"alice", "bob", "globex"}
    assert response.headers["location"] == f"/acme/roles/{data['id']}"
    assert response.headers["role-tag"] == "operators"

    # The new role is tagged, not the collection
    response = client.get(f"/api/v1/my/roles/{data['id']}", headers=owner_headers)
    assert response.headers["role-tag"] == "operators"
    response = client.get("/api/v1/my/roles", headers=owner_headers)
    assert "role-tag" not in response.headers


def test_create_role_with_unknown_members(client, seed, owner_headers):
    response = client.post(
        "/api/v1/my/roles",
        json={"name": "deployers", "members": ["alice", "ghost", "phantom"]},
        headers=owner_headers,
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert "ghost" in detail and "phantom" in detail
    assert "alice" not in detail


def test_create_role_with_unknown_policy(client, seed, owner_headers):
    response = client.post(
        "/api/v1/my/roles",
        json={"name": "deployers", "policies": ["read-only", "write-all"]},
        headers=owner_headers,
    )

    assert response.status_code == 409
    assert "write-all" in response.json()["detail"]


def test_create_duplicate_role(client, seed, owner_headers):
    response = client.post("/api/v1/my/roles", json={"name": "operators"}, headers=owner_headers)
    assert response.status_code == 409


def test_update_role(client, seed, owner_headers):
    response = client.post(
        "/api/v1/my/roles/auditors",
        json={"default_members": ["alice"], "policies": ["read-only"]},
        headers=owner_headers,
    )

    assert response.status_code == 200
    members = {m["login"]: m["default"] for m in response.json()["members"]}
    assert members == {"bob": False, "alice": True}
    assert [p["name"] for p in response.json()["policies"]] == ["read-only"]


def test_update_role_tags_only_when_header_given(client, seed, owner_headers):
    url = "/api/v1/my/roles/auditors"
    client.post(url, json={}, headers={**owner_headers, "role-tag": "operators"})

    response = client.post(url, json={"name": "reviewers"}, headers=owner_headers)

    assert response.json()["name"] == "reviewers"
    assert response.headers["role-tag"] == "operators"


def test_delete_role_removes_its_binding(client, seed, owner_headers, session_factory):
    client.put("/api/v1/my/roles/auditors", json={"role-tag": ["operators"]}, headers=owner_headers)

    response = client.delete("/api/v1/my/roles/auditors", headers=owner_headers)

    assert response.status_code == 204
    assert client.get("/api/v1/my/roles/auditors", headers=owner_headers).status_code == 404
    with pytest.raises(NotFoundError):
        run(DirectoryStore(session_factory).get_resource(seed.acme.id, f"/acme/roles/{seed.auditors.id}"))


def test_sub_user_creation_defaults_to_active_roles(client, seed, alice_headers):
    response = client.post("/api/v1/my/roles", json={"name": "night-shift"}, headers=alice_headers)

    assert response.status_code == 201
    assert response.headers["role-tag"] == "operators"
