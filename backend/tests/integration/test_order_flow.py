"""Integration test for the selection -> order -> quotation -> costs flow."""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from fakes import API_PREFIX


pytestmark = pytest.mark.integration


class TestOrderToQuotationFlow:
    """One operator session from first click to an approved quotation."""

    def test_complete_flow(self, client: TestClient, pricing):
        # Step 1: Open a session and walk the cascade
        session = client.post(f"{API_PREFIX}/selections", json={"customer_id": "CUST1"})
        assert session.status_code == 201
        session_id = session.json()["data"]["id"]

        for tier, value in (
            ("category", "C1"),
            ("subcategory", "S1"),
            ("filter_attribute", "FA1"),
            ("filter_option", "FO1"),
            ("provider", "P1"),
            ("service_address", "A2"),
        ):
            response = client.put(
                f"{API_PREFIX}/selections/{session_id}/tiers/{tier}", json={"value": value}
            )
            assert response.status_code == 200, response.json()

        view = response.json()["data"]
        assert [o["id"] for o in view["options"]["provider"]] == ["P1"]
        assert view["price_status"] == "ready"

        # Step 2: Quantity and a negotiated unit price
        client.put(f"{API_PREFIX}/selections/{session_id}/quantity", json={"quantity": 2})
        view = client.put(
            f"{API_PREFIX}/selections/{session_id}/custom-price", json={"custom_price": "900"}
        ).json()["data"]
        assert Decimal(view["price"]["final_amount"]) == Decimal("2124.00")
        assert pricing.requests[-1].filter_option_id == "FO1"

        # Step 3: Commit the order
        order = client.post(
            f"{API_PREFIX}/selections/{session_id}/orders",
            json={"customer_name": "Acme Facilities", "service_name": "Deep cleaning"},
        )
        assert order.status_code == 201
        order = order.json()["data"]
        assert Decimal(order["final_amount"]) == Decimal("2124.00")
        assert Decimal(order["custom_price"]) == Decimal("900")
        assert order["filter_option_id"] == "FO1"
        assert order["service_address_id"] == "A2"

        # Step 4: Quote the job against the order
        quotation = client.post(
            f"{API_PREFIX}/quotations",
            json={
                "b2b_booking_id": order["id"],
                "items": [
                    {"service": "Deep cleaning", "quantity": 3, "rate": "100"},
                    {"service": "Pest control", "quantity": 1, "rate": "250"},
                ],
            },
        ).json()["data"]["quotation"]
        quotation_id = quotation["id"]
        assert quotation["b2b_booking_id"] == order["id"]

        # Step 5: Extra costs, decided one by one
        costs_url = f"{API_PREFIX}/quotations/{quotation_id}/additional-costs"
        ladder = client.post(costs_url, json={"item_name": "Ladder hire", "unit_price": "100", "quantity": 2}).json()["data"]
        parking = client.post(costs_url, json={"item_name": "Parking", "unit_price": "50"}).json()["data"]
        client.put(f"{API_PREFIX}/additional-costs/{ladder['id']}/status", json={"status": "approved"})
        client.put(f"{API_PREFIX}/additional-costs/{parking['id']}/status", json={"status": "rejected"})

        # Step 6: Send, negotiate, resend and approve
        client.post(f"{API_PREFIX}/quotations/{quotation_id}/send", json={"send_via": "email"})
        client.post(f"{API_PREFIX}/quotations/{quotation_id}/negotiate", json={"note": "discount asked"})
        edit = client.put(
            f"{API_PREFIX}/quotations/{quotation_id}", json={"admin_notes": "no discount"}
        )
        assert edit.status_code == 409
        client.post(f"{API_PREFIX}/quotations/{quotation_id}/send", json={"send_via": "whatsapp"})
        approved = client.post(f"{API_PREFIX}/quotations/{quotation_id}/approve", json={})
        assert approved.status_code == 200

        detail = approved.json()["data"]
        assert detail["quotation"]["status"] == "approved"
        assert detail["quotation"]["version"] == 1
        assert Decimal(detail["grand_total"]) == Decimal("849.00")

        # Step 7: The ledger is now frozen
        locked = client.post(costs_url, json={"item_name": "Late extra", "unit_price": "10"})
        assert locked.status_code == 409
        assert locked.json()["error_code"] == "PARENT_LOCKED"
