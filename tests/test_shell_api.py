"""
End-to-end tests for the shell descriptor endpoints.
"""

import pytest

from registry.utils import encode_identifier
from security.policy.rbac import Roles

from conftest import make_token

TENANT_A = "BPNL00000000000A"
TENANT_B = "BPNL00000000000B"
TENANT_C = "BPNL00000000000C"
WILDCARD = "PUBLIC_READABLE"

SHELLS = "/api/v3/shell-descriptors"


def grant(*tenants):
    return {"type": "ExternalReference", "keys": [{"type": "GlobalReference", "value": t} for t in tenants]}


def shell_body(shell_id, specific_asset_ids=(), submodels=()):
    return {
        "id": shell_id,
        "idShort": "gearbox",
        "description": [{"language": "en", "text": "A gearbox"}],
        "globalAssetId": f"urn:asset:{shell_id}",
        "assetKind": "Instance",
        "specificAssetIds": list(specific_asset_ids),
        "submodelDescriptors": list(submodels) or [{"id": f"{shell_id}:sm:1", "idShort": "nameplate"}],
    }


SHARED_SHELL = shell_body("urn:shell:shared", [
    {"name": "manufacturerPartId", "value": "MPN-1", "externalSubjectId": grant(WILDCARD)},
    {"name": "bpId", "value": "BP-1", "externalSubjectId": grant(TENANT_B)},
    {"name": "serial", "value": "SN-1"},
])
CLOSED_SHELL = shell_body("urn:shell:closed", [{"name": "serial", "value": "SN-2"}])


@pytest.fixture
def registered(client, auth_headers):
    for body in (SHARED_SHELL, CLOSED_SHELL):
        response = client.post(SHELLS, json=body, headers=auth_headers(TENANT_A))
        assert response.status_code == 201
    return client


def shell_url(shell_id):
    return f"{SHELLS}/{encode_identifier(shell_id)}"


class TestAuthentication:
    def test_missing_token(self, client):
        assert client.get(SHELLS).status_code == 401

    def test_token_with_wrong_secret(self, client):
        token = make_token(secret="some-other-secret-that-is-long-enough")
        assert client.get(SHELLS, headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_role_missing_for_operation(self, client, auth_headers):
        headers = auth_headers(TENANT_A, roles=[Roles.VIEW])
        assert client.get(SHELLS, headers=headers).status_code == 200
        assert client.post(SHELLS, json=SHARED_SHELL, headers=headers).status_code == 403

    def test_roles_for_other_client_do_not_count(self, client):
        token = make_token(client_id="some-other-client")
        assert client.get(SHELLS, headers={"Authorization": f"Bearer {token}"}).status_code == 403

    def test_health_needs_no_token(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "ok"


class TestCreate:
    def test_owner_gets_everything_back(self, client, auth_headers):
        response = client.post(SHELLS, json=SHARED_SHELL, headers=auth_headers(TENANT_A))
        assert response.status_code == 201
        body = response.json()
        assert body["idShort"] == "gearbox"
        assert len(body["specificAssetIds"]) == 3
        assert body["specificAssetIds"][1]["externalSubjectId"]["keys"][0]["value"] == TENANT_B

    def test_duplicate_id_conflicts(self, registered, auth_headers):
        response = registered.post(SHELLS, json=SHARED_SHELL, headers=auth_headers(TENANT_B))
        assert response.status_code == 409

    def test_without_tenant_header_the_operator_owns_it(self, client, auth_headers):
        assert client.post(SHELLS, json=CLOSED_SHELL, headers=auth_headers()).status_code == 201
        assert client.get(shell_url(CLOSED_SHELL["id"]), headers=auth_headers(TENANT_A)).status_code == 200

    def test_without_any_owner(self, client, auth_headers, monkeypatch):
        from registry.config import reload_settings

        monkeypatch.setenv("REGISTRY_OWNING_TENANT_ID", "")
        reload_settings()
        assert client.post(SHELLS, json=CLOSED_SHELL, headers=auth_headers()).status_code == 400

    def test_malformed_specific_asset_id(self, client, auth_headers):
        body = shell_body("urn:shell:bad", [{"name": "", "value": "x"}])
        assert client.post(SHELLS, json=body, headers=auth_headers(TENANT_A)).status_code == 422


class TestRead:
    def test_explicit_grant_gives_full_descriptor(self, registered, auth_headers):
        body = registered.get(shell_url(SHARED_SHELL["id"]), headers=auth_headers(TENANT_B)).json()
        assert body["idShort"] == "gearbox"
        assert body["globalAssetId"] == "urn:asset:urn:shell:shared"
        assert [a["name"] for a in body["specificAssetIds"]] == ["manufacturerPartId", "bpId"]
        assert all("externalSubjectId" not in a for a in body["specificAssetIds"])

    def test_public_only_gives_restricted_descriptor(self, registered, auth_headers):
        body = registered.get(shell_url(SHARED_SHELL["id"]), headers=auth_headers(TENANT_C)).json()
        assert set(body) == {"id", "specificAssetIds", "submodelDescriptors"}
        assert body["specificAssetIds"] == [{"name": "manufacturerPartId", "value": "MPN-1"}]
        assert body["submodelDescriptors"][0]["id"] == "urn:shell:shared:sm:1"

    def test_no_tenant_header_sees_public_only(self, registered, auth_headers):
        body = registered.get(shell_url(SHARED_SHELL["id"]), headers=auth_headers()).json()
        assert "idShort" not in body

    def test_hidden_shell_looks_missing(self, registered, auth_headers):
        url = shell_url(CLOSED_SHELL["id"])
        hidden = registered.get(url, headers=auth_headers(TENANT_B))

        assert registered.delete(url, headers=auth_headers(TENANT_A)).status_code == 204
        missing = registered.get(url, headers=auth_headers(TENANT_B))

        assert hidden.status_code == missing.status_code == 404
        assert hidden.json() == missing.json()

    def test_list_is_tenant_scoped(self, registered, auth_headers):
        def ids(tenant):
            body = registered.get(SHELLS, headers=auth_headers(tenant)).json()
            return [shell["id"] for shell in body["result"]]

        assert ids(TENANT_A) == ["urn:shell:closed", "urn:shell:shared"]
        assert ids(TENANT_B) == ["urn:shell:shared"]
        assert ids(TENANT_C) == ["urn:shell:shared"]

    def test_list_paging(self, registered, auth_headers):
        first = registered.get(SHELLS, params={"limit": 1}, headers=auth_headers(TENANT_A)).json()
        assert [s["id"] for s in first["result"]] == ["urn:shell:closed"]
        cursor = first["paging_metadata"]["cursor"]

        second = registered.get(SHELLS, params={"limit": 1, "cursor": cursor}, headers=auth_headers(TENANT_A)).json()
        assert [s["id"] for s in second["result"]] == ["urn:shell:shared"]
        assert "cursor" not in second["paging_metadata"]

    def test_invalid_limit(self, registered, auth_headers):
        assert registered.get(SHELLS, params={"limit": 0}, headers=auth_headers(TENANT_A)).status_code == 400

    def test_identifier_not_base64(self, registered, auth_headers):
        assert registered.get(f"{SHELLS}/not%20base64!", headers=auth_headers(TENANT_A)).status_code == 400


class TestUpdateAndDelete:
    def test_replace_keeps_owner(self, registered, auth_headers):
        url = shell_url(CLOSED_SHELL["id"])
        replacement = dict(CLOSED_SHELL, idShort="renamed")

        assert registered.put(url, json=replacement, headers=auth_headers(TENANT_B)).status_code == 204

        assert registered.get(url, headers=auth_headers(TENANT_B)).status_code == 404
        assert registered.get(url, headers=auth_headers(TENANT_A)).json()["idShort"] == "renamed"

    def test_replace_with_mismatched_id(self, registered, auth_headers):
        url = shell_url(CLOSED_SHELL["id"])
        assert registered.put(url, json=SHARED_SHELL, headers=auth_headers(TENANT_A)).status_code == 400

    def test_replace_missing(self, client, auth_headers):
        url = shell_url("urn:shell:none")
        assert client.put(url, json=shell_body("urn:shell:none"), headers=auth_headers(TENANT_A)).status_code == 404

    def test_delete(self, registered, auth_headers):
        url = shell_url(SHARED_SHELL["id"])
        assert registered.delete(url, headers=auth_headers(TENANT_A, roles=[Roles.VIEW])).status_code == 403
        assert registered.delete(url, headers=auth_headers(TENANT_A)).status_code == 204
        assert registered.delete(url, headers=auth_headers(TENANT_A)).status_code == 404

    def test_delete_ignores_visibility(self, registered, auth_headers):
        url = shell_url(CLOSED_SHELL["id"])
        assert registered.get(url, headers=auth_headers(TENANT_B)).status_code == 404
        assert registered.delete(url, headers=auth_headers(TENANT_B)).status_code == 204
        assert registered.get(url, headers=auth_headers(TENANT_A)).status_code == 404
        assert registered.delete(shell_url("urn:shell:none"), headers=auth_headers(TENANT_B)).status_code == 404


class TestSubmodels:
    def submodels_url(self, shell_id, submodel_id=None):
        url = f"{shell_url(shell_id)}/submodel-descriptors"
        if submodel_id is not None:
            url = f"{url}/{encode_identifier(submodel_id)}"
        return url

    def test_restricted_tenant_still_lists_submodels(self, registered, auth_headers):
        body = registered.get(self.submodels_url(SHARED_SHELL["id"]), headers=auth_headers(TENANT_C)).json()
        assert [s["id"] for s in body["result"]] == ["urn:shell:shared:sm:1"]

    def test_hidden_shell_submodels_look_missing(self, registered, auth_headers):
        url = self.submodels_url(CLOSED_SHELL["id"], "urn:shell:closed:sm:1")
        assert registered.get(url, headers=auth_headers(TENANT_B)).status_code == 404
        assert registered.get(url, headers=auth_headers(TENANT_A)).status_code == 200

    def test_crud(self, registered, auth_headers):
        shell_id = SHARED_SHELL["id"]
        headers = auth_headers(TENANT_A)
        new = {"id": "urn:sm:new", "idShort": "bom", "semanticId": grant("urn:semantic:bom")}

        assert registered.post(self.submodels_url(shell_id), json=new, headers=headers).status_code == 201
        assert registered.post(self.submodels_url(shell_id), json=new, headers=headers).status_code == 409

        url = self.submodels_url(shell_id, "urn:sm:new")
        assert registered.get(url, headers=headers).json()["idShort"] == "bom"

        assert registered.put(url, json=dict(new, idShort="bom2"), headers=headers).status_code == 204
        assert registered.get(url, headers=headers).json()["idShort"] == "bom2"

        assert registered.delete(url, headers=headers).status_code == 204
        assert registered.get(url, headers=headers).status_code == 404

    def test_paging(self, registered, auth_headers):
        shell_id = SHARED_SHELL["id"]
        headers = auth_headers(TENANT_A)
        registered.post(self.submodels_url(shell_id), json={"id": "urn:sm:2"}, headers=headers)

        first = registered.get(self.submodels_url(shell_id), params={"limit": 1}, headers=headers).json()
        assert len(first["result"]) == 1
        second = registered.get(
            self.submodels_url(shell_id),
            params={"limit": 1, "cursor": first["paging_metadata"]["cursor"]},
            headers=headers,
        ).json()
        assert [s["id"] for s in second["result"]] == ["urn:sm:2"]


class TestServiceSurface:
    def test_description(self, client, auth_headers):
        body = client.get("/api/v3/description", headers=auth_headers()).json()
        assert len(body["profiles"]) == 2

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
