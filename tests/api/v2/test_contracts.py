"""
Tests for the contracts API endpoints (/api/v2/contracts).

The service collaborators (template renderer, converter, storage) are
replaced with the in-memory fakes from conftest.
"""
import uuid

import pytest

from backoffice.api.deps import create_access_token
from backoffice.exceptions import StorageError
from backoffice.models.user import User
from tests.factories import ContractPayloadFactory, UserFactory

CONTRACTS_PREFIX = "/api/v2/contracts"


def _payload(**overrides):
    payload = ContractPayloadFactory(units=[{"name": "U1", "consumptions": [100, 200, 300]}])
    payload.update(overrides)
    return payload


async def _create(client, headers, **overrides):
    response = await client.post(CONTRACTS_PREFIX, json=_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["contract_id"]


class TestAuth:
    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.post(CONTRACTS_PREFIX, json=_payload())

        assert response.status_code == 401
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["code"] == "AUTH_001"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_rejects_invalid_token(self, client):
        response = await client.get(CONTRACTS_PREFIX, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["code"] == "AUTH_001"

    @pytest.mark.asyncio
    async def test_disabled_user_is_forbidden(self, client, test_db):
        user = User(**UserFactory(is_active=False))
        test_db.add(user)
        await test_db.commit()
        await test_db.refresh(user)
        token = create_access_token(data={"sub": str(user.id)})

        response = await client.get(CONTRACTS_PREFIX, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["code"] == "AUTH_002"
        assert response.json()["detail"] == "User account is disabled"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client, seller_headers):
        headers = {**seller_headers, "X-Request-ID": "req-123"}
        response = await client.get(CONTRACTS_PREFIX, headers=headers)
        assert response.headers["X-Request-ID"] == "req-123"


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_does_not_persist(self, client, seller_headers):
        response = await client.post(
            f"{CONTRACTS_PREFIX}/preview",
            json={"priceKwh": 1.0, "discountPercent": 20, "units": [{"name": "U1", "consumptions": [100, 200, 300]}]},
            headers=seller_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["consumption_avg_total"] == 200
        assert data["price_kwh_final"] == pytest.approx(0.8)
        assert data["rental_value_total"] == 160
        assert data["panels_total"] == 3

        listing = await client.get(CONTRACTS_PREFIX, headers=seller_headers)
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_preview_validation(self, client, seller_headers):
        response = await client.post(
            f"{CONTRACTS_PREFIX}/preview",
            json={"priceKwh": -1, "discountPercent": 20, "units": []},
            headers=seller_headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"

    @pytest.mark.asyncio
    async def test_preview_rejects_out_of_range_values(self, client, seller_headers):
        response = await client.post(
            f"{CONTRACTS_PREFIX}/preview",
            json={"priceKwh": 1e200, "discountPercent": 0, "units": [{"name": "U1", "consumptions": [1e200]}]},
            headers=seller_headers,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"
        fields = {error["field"] for error in response.json()["errors"]}
        assert fields == {"body.priceKwh", "body.units.0.consumptions.0"}


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_contract(self, client, seller_headers):
        response = await client.post(CONTRACTS_PREFIX, json=_payload(), headers=seller_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "DRAFT"
        assert data["version"] == 1
        uuid.UUID(data["contract_id"])

    @pytest.mark.asyncio
    async def test_create_validation_error(self, client, seller_headers):
        response = await client.post(CONTRACTS_PREFIX, json=_payload(priceKwh=0, units=[]), headers=seller_headers)

        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "VAL_001"
        assert "priceKwh" in data["errors"]
        assert "units" in data["errors"]

    @pytest.mark.asyncio
    async def test_get_contract_and_units(self, client, seller_headers):
        contract_id = await _create(client, seller_headers)

        response = await client.get(f"{CONTRACTS_PREFIX}/{contract_id}", headers=seller_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == contract_id
        assert data["status"] == "DRAFT"
        assert data["calculation_data"]["rental_value_total"] == 160
        assert data["html_content"]

        response = await client.get(f"{CONTRACTS_PREFIX}/{contract_id}/units", headers=seller_headers)
        assert response.status_code == 200
        units = response.json()
        assert units[0]["unit_name"] == "U1"
        assert units[0]["consumption_avg"] == 200

    @pytest.mark.asyncio
    async def test_get_unknown_contract(self, client, seller_headers):
        response = await client.get(f"{CONTRACTS_PREFIX}/{uuid.uuid4()}", headers=seller_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "RES_001"

    @pytest.mark.asyncio
    async def test_list_contracts(self, client, seller_headers):
        await _create(client, seller_headers)
        await _create(client, seller_headers, clientName="Outra Pessoa")

        response = await client.get(CONTRACTS_PREFIX, params={"page_size": 1}, headers=seller_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert len(data["items"]) == 1
        assert data["items"][0]["rental_value_total"] == 160
        assert data["page_size"] == 1

    @pytest.mark.asyncio
    async def test_from_unknown_indicacao(self, client, seller_headers):
        response = await client.post(f"{CONTRACTS_PREFIX}/from-indicacao/{uuid.uuid4()}", headers=seller_headers)

        assert response.status_code == 404
        assert response.json()["error_code"] == "RES_001"


class TestDraftAndApproval:
    @pytest.mark.asyncio
    async def test_save_draft(self, client, seller_headers):
        contract_id = await _create(client, seller_headers)

        response = await client.put(
            f"{CONTRACTS_PREFIX}/{contract_id}/draft",
            json={"html_content": "<p>editado</p>", "expected_version": 1},
            headers=seller_headers,
        )

        assert response.status_code == 200
        assert response.json()["version"] == 2

        stale = await client.put(
            f"{CONTRACTS_PREFIX}/{contract_id}/draft",
            json={"html_content": "<p>antigo</p>", "expected_version": 1},
            headers=seller_headers,
        )
        assert stale.status_code == 409
        assert stale.json()["error_code"] == "RES_003"

    @pytest.mark.asyncio
    async def test_seller_cannot_approve(self, client, seller_headers):
        contract_id = await _create(client, seller_headers)

        response = await client.post(
            f"{CONTRACTS_PREFIX}/{contract_id}/approve",
            json={"html_content": "<p>final</p>"},
            headers=seller_headers,
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_002"

    @pytest.mark.asyncio
    async def test_approve_then_contract_is_frozen(self, client, seller_headers, admin_headers):
        contract_id = await _create(client, seller_headers)

        response = await client.post(
            f"{CONTRACTS_PREFIX}/{contract_id}/approve",
            json={"html_content": "<p>final</p>"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "APPROVED"
        assert data["docx_url"].endswith(f"/documents/contracts/{contract_id}_final.docx")

        again = await client.post(
            f"{CONTRACTS_PREFIX}/{contract_id}/approve",
            json={"html_content": "<p>final</p>"},
            headers=admin_headers,
        )
        assert again.status_code == 409
        assert again.json()["error_code"] == "BIZ_004"

        edit = await client.put(
            f"{CONTRACTS_PREFIX}/{contract_id}/draft",
            json={"html_content": "<p>depois</p>"},
            headers=seller_headers,
        )
        assert edit.status_code == 409

        detail = await client.get(f"{CONTRACTS_PREFIX}/{contract_id}", headers=seller_headers)
        assert detail.json()["status"] == "APPROVED"
        assert detail.json()["html_content"] == "<p>final</p>"
        assert detail.json()["expires_at"] is not None

    @pytest.mark.asyncio
    async def test_storage_failure_is_bad_gateway(self, client, seller_headers, admin_headers, storage):
        contract_id = await _create(client, seller_headers)
        storage.upload_error = StorageError("Erro ao salvar arquivo final.")

        response = await client.post(
            f"{CONTRACTS_PREFIX}/{contract_id}/approve",
            json={"html_content": "<p>final</p>"},
            headers=admin_headers,
        )

        assert response.status_code == 502
        assert response.json()["message"] == "Erro ao salvar arquivo final."

        detail = await client.get(f"{CONTRACTS_PREFIX}/{contract_id}", headers=seller_headers)
        assert detail.json()["status"] == "DRAFT"


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
