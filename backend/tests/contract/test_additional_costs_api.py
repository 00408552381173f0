"""Contract tests for additional-cost and order endpoints."""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from fakes import API_PREFIX


pytestmark = pytest.mark.contract


@pytest.fixture
def quotation_id(client: TestClient, sample_items) -> str:
    response = client.post(f"{API_PREFIX}/quotations", json={"items": sample_items})
    return response.json()["data"]["quotation"]["id"]


@pytest.fixture
def order_id(client: TestClient) -> str:
    session_id = client.post(f"{API_PREFIX}/selections", json={"customer_id": "CUST1"}).json()["data"]["id"]
    for tier, value in (
        ("category", "C1"),
        ("subcategory", "S1"),
        ("provider", "P1"),
        ("service_address", "A1"),
    ):
        client.put(f"{API_PREFIX}/selections/{session_id}/tiers/{tier}", json={"value": value})
    response = client.post(f"{API_PREFIX}/selections/{session_id}/orders", json={})
    assert response.status_code == 201
    return response.json()["data"]["id"]


def add_cost(client: TestClient, kind: str, parent_id: str, **fields):
    payload = {"item_name": "Ladder hire", "unit_price": "100", **fields}
    return client.post(f"{API_PREFIX}/{kind}/{parent_id}/additional-costs", json=payload)


def decide(client: TestClient, cost_id: str, status: str):
    return client.put(f"{API_PREFIX}/additional-costs/{cost_id}/status", json={"status": status})


class TestAddCost:
    """Contract tests for POST /api/v1/{parent}/{id}/additional-costs."""

    def test_cost_added_as_pending(self, client: TestClient, quotation_id):
        response = add_cost(client, "quotations", quotation_id, quantity=2)

        assert response.status_code == 201
        cost = response.json()["data"]
        assert cost["status"] == "pending"
        assert cost["quotation_id"] == quotation_id
        assert cost["order_id"] is None
        assert Decimal(cost["total_amount"]) == Decimal("200")

    def test_unknown_parent_not_found(self, client: TestClient):
        response = add_cost(client, "orders", "missing")

        assert response.status_code == 404
        assert response.json()["error_code"] == "ORDER_NOT_FOUND"

    def test_blank_name_rejected(self, client: TestClient, quotation_id):
        response = add_cost(client, "quotations", quotation_id, item_name="  ")

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestDecisions:
    """Contract tests for PUT /api/v1/additional-costs/{id}/status."""

    def test_approved_costs_reach_grand_total(self, client: TestClient, quotation_id):
        approved = add_cost(client, "quotations", quotation_id, quantity=2).json()["data"]
        add_cost(client, "quotations", quotation_id, item_name="Disposal")
        rejected = add_cost(client, "quotations", quotation_id, item_name="Parking", unit_price="50").json()["data"]
        late = add_cost(client, "quotations", quotation_id, item_name="Extra visit").json()["data"]
        assert decide(client, approved["id"], "approved").status_code == 200
        assert decide(client, rejected["id"], "rejected").status_code == 200
        assert decide(client, late["id"], "approved").status_code == 200

        ledger = client.get(f"{API_PREFIX}/quotations/{quotation_id}/additional-costs").json()["data"]
        assert Decimal(ledger["approved_total"]) == Decimal("300")
        assert Decimal(ledger["pending_total"]) == Decimal("100")
        assert Decimal(ledger["rejected_total"]) == Decimal("50")
        assert ledger["locked"] is False

        detail = client.get(f"{API_PREFIX}/quotations/{quotation_id}").json()["data"]
        assert Decimal(detail["approved_additional_cost_total"]) == Decimal("300")
        assert Decimal(detail["grand_total"]) == Decimal("949.00")

    def test_second_decision_is_conflict(self, client: TestClient, quotation_id):
        cost = add_cost(client, "quotations", quotation_id).json()["data"]
        decide(client, cost["id"], "approved")

        response = decide(client, cost["id"], "rejected")

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "ALREADY_RESOLVED"
        assert body["details"]["status"] == "approved"

    def test_pending_is_not_a_decision(self, client: TestClient, quotation_id):
        cost = add_cost(client, "quotations", quotation_id).json()["data"]

        assert decide(client, cost["id"], "pending").status_code == 422

    def test_unknown_cost_not_found(self, client: TestClient):
        response = decide(client, "missing", "approved")

        assert response.status_code == 404
        assert response.json()["error_code"] == "ADDITIONAL_COST_NOT_FOUND"


class TestParentLock:
    """Approved or rejected parents refuse ledger changes."""

    def test_approved_quotation_locks_ledger(self, client: TestClient, quotation_id):
        cost = add_cost(client, "quotations", quotation_id).json()["data"]
        client.post(f"{API_PREFIX}/quotations/{quotation_id}/send", json={})
        client.post(f"{API_PREFIX}/quotations/{quotation_id}/approve", json={})

        added = add_cost(client, "quotations", quotation_id, item_name="Parking")
        edited = client.put(f"{API_PREFIX}/additional-costs/{cost['id']}", json={"quantity": 3})
        removed = client.delete(f"{API_PREFIX}/additional-costs/{cost['id']}")

        for response in (added, edited, removed):
            assert response.status_code == 409
            assert response.json()["error_code"] == "PARENT_LOCKED"
        ledger = client.get(f"{API_PREFIX}/quotations/{quotation_id}/additional-costs").json()["data"]
        assert ledger["locked"] is True
        assert len(ledger["costs"]) == 1

    def test_open_parent_allows_edit_and_remove(self, client: TestClient, quotation_id):
        cost = add_cost(client, "quotations", quotation_id).json()["data"]

        edited = client.put(f"{API_PREFIX}/additional-costs/{cost['id']}", json={"quantity": 3})
        assert edited.status_code == 200
        assert Decimal(edited.json()["data"]["total_amount"]) == Decimal("300")

        removed = client.delete(f"{API_PREFIX}/additional-costs/{cost['id']}")
        assert removed.status_code == 200

    def test_approved_order_locks_ledger(self, client: TestClient, order_id):
        assert add_cost(client, "orders", order_id).status_code == 201

        approved = client.post(f"{API_PREFIX}/orders/{order_id}/approve", json={"note": "go"})
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "approved"

        response = add_cost(client, "orders", order_id, item_name="Night shift")
        assert response.status_code == 409
        assert response.json()["details"]["parent_kind"] == "order"


class TestOrders:
    """Contract tests for /api/v1/orders."""

    def test_list_and_get(self, client: TestClient, order_id):
        rows = client.get(f"{API_PREFIX}/orders").json()["data"]
        assert [row["id"] for row in rows] == [order_id]

        order = client.get(f"{API_PREFIX}/orders/{order_id}").json()["data"]
        assert Decimal(order["final_amount"]) == Decimal("590.00")

    def test_decided_order_cannot_be_decided_again(self, client: TestClient, order_id):
        assert client.post(f"{API_PREFIX}/orders/{order_id}/reject", json={"note": "duplicate"}).status_code == 200

        response = client.post(f"{API_PREFIX}/orders/{order_id}/approve", json={})

        assert response.status_code == 409
        assert response.json()["details"] == {"from": "rejected", "to": "approved"}

    def test_unknown_order_not_found(self, client: TestClient):
        response = client.get(f"{API_PREFIX}/orders/missing")

        assert response.status_code == 404
        assert response.json()["error_code"] == "ORDER_NOT_FOUND"
