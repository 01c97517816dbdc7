"""
Tests for Audit Log and Invoice API Endpoints
"""
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.db.models.invoice_record import InvoiceRecord, InvoiceStatus
from app.domain.services.invoicing import InvoiceResult
from app.domain.services.wash_session_service import WashSessionService
from tests.conftest import API_HEADERS, DRIVER_ACTOR, OPERATOR, FakeInvoiceProvider, tractor_trailer_input


def _headers(world) -> dict[str, str]:
    return {"X-Network-ID": str(world.network.id), **API_HEADERS}


async def _locked_session(db_session, world):
    service = WashSessionService(db_session)
    session = await service.create(world.network.id, tractor_trailer_input(world), DRIVER_ACTOR)
    await service.authorize(world.network.id, session.id, OPERATOR)
    await service.start(world.network.id, session.id, OPERATOR)
    await service.complete(world.network.id, session.id, OPERATOR)
    return await service.lock(world.network.id, session.id)


def _period_body(world) -> dict:
    now = datetime.utcnow()
    return {
        "partner_account_id": world.partner.id,
        "period_start": (now - timedelta(days=1)).isoformat(),
        "period_end": (now + timedelta(days=1)).isoformat(),
    }


class TestAuditLogAPI:

    @pytest.mark.integration
    async def test_list_all_entries(self, test_client: AsyncClient, db_session, wash_world):
        session = await _locked_session(db_session, wash_world)

        response = await test_client.get("/api/audit-logs/", headers=_headers(wash_world))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 5
        assert {item["wash_session_id"] for item in body["items"]} == {session.id}
        assert body["items"][-1]["action"] == "create"

    @pytest.mark.integration
    async def test_filter_by_action_and_actor(self, test_client: AsyncClient, db_session, wash_world):
        await _locked_session(db_session, wash_world)

        locks = await test_client.get(
            "/api/audit-logs/", params={"action": "lock"}, headers=_headers(wash_world)
        )
        by_operator = await test_client.get(
            "/api/audit-logs/",
            params={"actor_type": "user", "actor_id": "operator-1"},
            headers=_headers(wash_world),
        )

        lock_items = locks.json()["items"]
        assert [item["actor_type"] for item in lock_items] == ["system"]
        assert by_operator.json()["total"] == 3

    @pytest.mark.integration
    async def test_pagination(self, test_client: AsyncClient, db_session, wash_world):
        await _locked_session(db_session, wash_world)

        response = await test_client.get(
            "/api/audit-logs/", params={"limit": 2, "offset": 4}, headers=_headers(wash_world)
        )

        body = response.json()
        assert body["total"] == 5
        assert len(body["items"]) == 1

    @pytest.mark.integration
    async def test_requires_network_header(self, test_client: AsyncClient, wash_world):
        response = await test_client.get("/api/audit-logs/", headers=API_HEADERS)

        assert response.status_code == 400


class TestInvoiceAPI:

    @pytest.mark.integration
    async def test_issue_invoice(self, test_client: AsyncClient, db_session, wash_world):
        session = await _locked_session(db_session, wash_world)
        provider = FakeInvoiceProvider()

        with patch("app.domain.services.invoice_service.get_invoice_provider", return_value=provider):
            response = await test_client.post(
                "/api/invoices/", json=_period_body(wash_world), headers=_headers(wash_world)
            )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "issued"
        assert data["provider"] == "fake"
        assert data["external_reference"] == "INV-2026-0001"
        assert data["line_count"] == 2
        assert Decimal(data["total"]) == Decimal("10000")
        assert data["sessions"] == [{"wash_session_id": session.id}]

    @pytest.mark.integration
    async def test_unconfigured_provider_returns_502(self, test_client: AsyncClient, db_session, wash_world):
        await _locked_session(db_session, wash_world)

        response = await test_client.post(
            "/api/invoices/", json=_period_body(wash_world), headers=_headers(wash_world)
        )

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "ERR_5001"
        records = (await db_session.execute(select(InvoiceRecord))).scalars().all()
        assert [r.status for r in records] == [InvoiceStatus.FAILED]
        assert error["details"]["invoice_record_id"] == records[0].id

    @pytest.mark.integration
    async def test_declined_invoice_returns_502(self, test_client: AsyncClient, db_session, wash_world):
        await _locked_session(db_session, wash_world)
        provider = FakeInvoiceProvider(result=InvoiceResult(success=False, error="customer blocked"))

        with patch("app.domain.services.invoice_service.get_invoice_provider", return_value=provider):
            response = await test_client.post(
                "/api/invoices/", json=_period_body(wash_world), headers=_headers(wash_world)
            )

        assert response.status_code == 502
        assert "customer blocked" in response.json()["error"]["message"]

    @pytest.mark.integration
    async def test_nothing_to_invoice_returns_409(self, test_client: AsyncClient, wash_world):
        with patch("app.domain.services.invoice_service.get_invoice_provider", return_value=FakeInvoiceProvider()):
            response = await test_client.post(
                "/api/invoices/", json=_period_body(wash_world), headers=_headers(wash_world)
            )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ERR_2003"

    @pytest.mark.integration
    async def test_unknown_partner_returns_404(self, test_client: AsyncClient, wash_world):
        body = {**_period_body(wash_world), "partner_account_id": 99999}

        response = await test_client.post("/api/invoices/", json=body, headers=_headers(wash_world))

        assert response.status_code == 404

    @pytest.mark.integration
    async def test_inverted_period_is_schema_error(self, test_client: AsyncClient, wash_world):
        body = _period_body(wash_world)
        body["period_start"], body["period_end"] = body["period_end"], body["period_start"]

        response = await test_client.post("/api/invoices/", json=body, headers=_headers(wash_world))

        assert response.status_code == 422


class TestHealth:

    @pytest.mark.integration
    async def test_health(self, test_client: AsyncClient):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
