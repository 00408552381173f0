"""Async client for the marketplace backend that owns catalog, pricing and B2B records."""

import httpx
import logging
from typing import Any, Callable, Dict, List, Optional

from ..config import settings
from ..models import (
    AdditionalCost,
    CatalogOption,
    Order,
    ParentRef,
    PriceRequest,
    ProviderOption,
    Quotation,
)
from .service_factory import service_factory


logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


class MarketplaceError(Exception):
    """Transport failure or an envelope the backend marked unsuccessful."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MarketplaceClient:
    """
    Asynchronous client for the marketplace admin API.

    Implements the catalog and pricing gateways used by the selection and
    price resolvers, plus the remote quotation, additional-cost and order
    endpoints the services mirror to.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000/admin",
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Marketplace admin API base URL
            token_provider: Callable returning the admin credential for each request
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider or (lambda: None)
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "admin-auth-token": self._token_provider() or "",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request and unwrap the ``{status|success, message, data}`` envelope.

        Returns:
            The envelope's ``data`` member

        Raises:
            MarketplaceError: On transport errors, non-2xx responses, or an
                envelope flagged unsuccessful
        """
        try:
            response = await self.client.request(method, path, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response) or str(e)
            logger.error(f"{method} {path} failed with {e.response.status_code}: {message}")
            raise MarketplaceError(message, e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise MarketplaceError(str(e)) from e

        if response.status_code == 204 or not response.content:
            return None

        body = response.json()
        if isinstance(body, dict):
            flag = body.get("status", body.get("success", True))
            if flag is False:
                message = body.get("message") or f"{method} {path} was rejected"
                logger.error(f"{method} {path} rejected: {message}")
                raise MarketplaceError(message, response.status_code)
            if "data" in body:
                return body["data"]
        return body

    async def _list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self._request("GET", path, params=_compact(params or {}))
        if isinstance(data, dict):
            # Paginated endpoints wrap the rows once more
            data = data.get("rows") or data.get("items") or data.get("data") or []
        return list(data or [])

    # ===== Catalog =====

    async def list_categories(self) -> List[CatalogOption]:
        rows = await self._list("/category/all")
        return [CatalogOption.from_remote(row) for row in rows]

    async def list_subcategories(self, category_id: str) -> List[CatalogOption]:
        rows = await self._list(f"/sub-category/category/{category_id}")
        return [CatalogOption.from_remote(row) for row in rows]

    async def list_filter_attributes(
        self, category_id: str, subcategory_id: Optional[str] = None
    ) -> List[CatalogOption]:
        rows = await self._list(
            "/filter/attributes",
            {"category_id": category_id, "subcategory_id": subcategory_id},
        )
        return [CatalogOption.from_remote(row, "name", "attribute_name") for row in rows]

    async def list_filter_options(self, attribute_id: str) -> List[CatalogOption]:
        rows = await self._list(f"/filter/attributes/{attribute_id}/options")
        return [CatalogOption.from_remote(row, "name", "option_name", "value") for row in rows]

    async def list_segments(self, category_id: str, subcategory_id: str) -> List[CatalogOption]:
        rows = await self._list(
            "/service-segments",
            {"category_id": category_id, "subcategory_id": subcategory_id},
        )
        return [CatalogOption.from_remote(row, "segment_name", "name") for row in rows]

    async def list_providers(
        self,
        category_id: str,
        subcategory_id: str,
        filter_attribute_id: Optional[str] = None,
        filter_option_id: Optional[str] = None,
    ) -> List[ProviderOption]:
        rows = await self._list(
            "/providers/by-filters",
            {
                "category_id": category_id,
                "subcategory_id": subcategory_id,
                "filter_attribute_id": filter_attribute_id,
                "filter_option_id": filter_option_id,
                "page": 1,
                "size": 50,
            },
        )
        return [ProviderOption.from_remote(row) for row in rows]

    async def list_service_addresses(self, customer_id: str) -> List[CatalogOption]:
        rows = await self._list(f"/b2b/customers/{customer_id}/service-addresses")
        return [
            CatalogOption.from_remote(row, "address_label", "name", "address")
            for row in rows
        ]

    # ===== Pricing =====

    async def compute_price(self, request: PriceRequest) -> Dict[str, Any]:
        """
        Ask the backend for the rate card price of a selection.

        The calculate-price endpoint answers without the data envelope, so
        the raw body is returned and checked for ``basePrice``.
        """
        try:
            response = await self.client.post(
                "/booking/calculate-price",
                json=request.model_dump(),
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response) or str(e)
            logger.error(f"Price calculation failed with {e.response.status_code}: {message}")
            raise MarketplaceError(message, e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"Price calculation failed: {e}")
            raise MarketplaceError(str(e)) from e

        body = response.json()
        if not body.get("status", True) or body.get("basePrice") is None:
            raise MarketplaceError(body.get("message") or "No rate card price for this selection")
        return body

    # ===== Quotations =====

    async def create_quotation(self, quotation: Quotation) -> Quotation:
        data = await self._request("POST", "/b2b/quotations", json=_quotation_payload(quotation))
        return _quotation_from_remote(data)

    async def update_quotation(self, quotation: Quotation) -> Quotation:
        data = await self._request(
            "PUT", f"/b2b/quotations/{quotation.id}", json=_quotation_payload(quotation)
        )
        return _quotation_from_remote(data)

    async def send_quotation(self, quotation_id: str, send_via: str) -> Quotation:
        data = await self._request(
            "POST", f"/b2b/quotations/{quotation_id}/send", json={"send_via": send_via}
        )
        return _quotation_from_remote(data)

    async def negotiate_quotation(self, quotation_id: str, notes: Optional[str] = None) -> Quotation:
        data = await self._request(
            "POST", f"/b2b/quotations/{quotation_id}/negotiate", json={"admin_notes": notes}
        )
        return _quotation_from_remote(data)

    async def approve_quotation(self, quotation_id: str, notes: Optional[str] = None) -> Quotation:
        data = await self._request(
            "POST", f"/b2b/quotations/{quotation_id}/approve", json={"admin_notes": notes}
        )
        return _quotation_from_remote(data)

    async def reject_quotation(
        self, quotation_id: str, reason: str, notes: Optional[str] = None
    ) -> Quotation:
        data = await self._request(
            "POST",
            f"/b2b/quotations/{quotation_id}/reject",
            json={"rejection_reason": reason, "admin_notes": notes},
        )
        return _quotation_from_remote(data)

    # ===== Additional costs =====

    async def list_additional_costs(self, parent: ParentRef) -> List[AdditionalCost]:
        rows = await self._list(f"/b2b/{parent.kind}s/{parent.id}/additional-costs")
        return [_cost_from_remote(row, parent) for row in rows]

    async def create_additional_cost(self, cost: AdditionalCost) -> AdditionalCost:
        parent = cost.parent
        data = await self._request(
            "POST",
            f"/b2b/{parent.kind}s/{parent.id}/additional-costs",
            json=_cost_payload(cost),
        )
        return _cost_from_remote(data, parent)

    async def update_additional_cost(self, cost: AdditionalCost) -> AdditionalCost:
        data = await self._request(
            "PUT", f"/b2b/additional-costs/{cost.id}", json=_cost_payload(cost)
        )
        return _cost_from_remote(data, cost.parent)

    async def set_additional_cost_status(
        self, cost: AdditionalCost, status: str, notes: Optional[str] = None
    ) -> AdditionalCost:
        data = await self._request(
            "PUT",
            f"/b2b/additional-costs/{cost.id}",
            json={"status": status, "notes": notes},
        )
        return _cost_from_remote(data, cost.parent)

    async def delete_additional_cost(self, cost_id: str) -> None:
        await self._request("DELETE", f"/b2b/additional-costs/{cost_id}")

    # ===== Orders =====

    async def create_order(self, order: Order) -> Order:
        data = await self._request("POST", "/b2b/orders", json=order.to_payload())
        merged = {**order.model_dump(), **(data or {})}
        return Order.model_validate(merged)


@service_factory
def get_marketplace_client() -> MarketplaceClient:
    """Process-wide client configured from settings."""
    return MarketplaceClient(
        base_url=settings.marketplace_api_url,
        token_provider=lambda: settings.marketplace_api_token,
        timeout=settings.marketplace_timeout_seconds,
    )


def _compact(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v not in (None, "")}


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message")
    return None


def _quotation_payload(quotation: Quotation) -> Dict[str, Any]:
    payload = quotation.model_dump(mode="json")
    payload["quotation_items"] = payload.pop("items")
    return payload


def _quotation_from_remote(data: Dict[str, Any]) -> Quotation:
    data = dict(data or {})
    if "items" not in data and "quotation_items" in data:
        data["items"] = data.pop("quotation_items")
    return Quotation.model_validate(data)


def _cost_payload(cost: AdditionalCost) -> Dict[str, Any]:
    return cost.model_dump(
        mode="json",
        include={"item_name", "description", "quantity", "unit_price", "notes", "total_amount"},
    )


def _cost_from_remote(data: Dict[str, Any], parent: ParentRef) -> AdditionalCost:
    data = dict(data or {})
    added_by = data.pop("addedBy", None)
    if added_by and not data.get("added_by"):
        data["added_by"] = (
            added_by.get("full_name") or added_by.get("username") or added_by.get("email") or "admin"
        )
    data[f"{parent.kind}_id"] = data.get(f"{parent.kind}_id") or parent.id
    data.pop("order_id" if parent.kind == "quotation" else "quotation_id", None)
    return AdditionalCost.model_validate(data)
