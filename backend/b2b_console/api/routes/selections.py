"""Selection session API routes (order-creation form)."""

import logging
from typing import Any, List, Literal, Optional
from fastapi import APIRouter, Query
from pydantic import BaseModel

from ...models import APIResponse, Tier
from ...api.dependencies import CatalogDep, OrderServiceDep, PricingDep, StoreDep
from ...config import settings
from ...services.selection_session import SelectionSession
from ...utils import CatalogFetchFailed, log_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Selections"])


class CreateSelectionRequest(BaseModel):
    """Request model for opening a selection session."""
    customer_id: Optional[str] = None
    pricing_path: Literal["rate_card", "scenario"] = "rate_card"


class SetTierRequest(BaseModel):
    """Request model for choosing (or clearing) a tier."""
    value: Optional[str] = None


class SetCustomerRequest(BaseModel):
    customer_id: Optional[str] = None


class SetQuantityRequest(BaseModel):
    quantity: int


class SetCustomPriceRequest(BaseModel):
    """Per-unit override; null or empty clears it."""
    custom_price: Optional[Any] = None


class CreateOrderRequest(BaseModel):
    """Customer and scheduling details committed with the order."""
    service_name: Optional[str] = None
    service_date: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None


def _message(default: str, failures: List[CatalogFetchFailed]) -> str:
    if not failures:
        return default
    return f"{default}; " + "; ".join(f.message for f in failures)


async def _respond(session: SelectionSession, message: str, wait: bool) -> dict:
    if wait:
        await session.wait_for_price()
    return {
        "success": True,
        "message": message,
        "data": session.view().model_dump(mode="json"),
    }


@router.post(
    "/selections",
    status_code=201,
    response_model=APIResponse,
    summary="Open a selection session",
)
async def create_selection(
    request: CreateSelectionRequest,
    store: StoreDep,
    catalog: CatalogDep,
    pricing: PricingDep,
) -> dict:
    """
    Open an order-creation session and load the category options.

    - **customer_id**: B2B customer whose service addresses are offered
    - **pricing_path**: `rate_card` (immediate) or `scenario` (debounced)
    """
    try:
        session = SelectionSession(
            catalog,
            pricing,
            debounce_seconds=settings.price_debounce_seconds(request.pricing_path),
            customer_id=request.customer_id,
        )
        failures = await session.start()
        store.add_session(session)
        return await _respond(session, _message("Selection session opened", failures), wait=False)

    except Exception as e:
        log_error(e, context="Create selection session")
        raise


@router.get(
    "/selections/{session_id}",
    response_model=APIResponse,
    summary="Get a selection session",
)
async def get_selection(
    session_id: str,
    store: StoreDep,
    wait: bool = Query(False, description="Wait for an outstanding price computation"),
) -> dict:
    """Current selection, option lists and displayed price."""
    try:
        session = store.get_session(session_id)
        return await _respond(session, "Selection session retrieved", wait)

    except Exception as e:
        log_error(e, context=f"Get selection: {session_id}")
        raise


@router.delete(
    "/selections/{session_id}",
    response_model=APIResponse,
    summary="Close a selection session",
)
async def delete_selection(session_id: str, store: StoreDep) -> dict:
    try:
        store.delete_session(session_id)
        return {"success": True, "message": "Selection session closed", "data": None}

    except Exception as e:
        log_error(e, context=f"Delete selection: {session_id}")
        raise


@router.put(
    "/selections/{session_id}/customer",
    response_model=APIResponse,
    summary="Switch the customer context",
)
async def set_customer(
    session_id: str,
    request: SetCustomerRequest,
    store: StoreDep,
) -> dict:
    """Clears the chosen service address and reloads the customer's addresses."""
    try:
        session = store.get_session(session_id)
        failures = await session.set_customer(request.customer_id)
        return await _respond(session, _message("Customer updated", failures), wait=True)

    except Exception as e:
        log_error(e, context=f"Set customer: {session_id}")
        raise


@router.put(
    "/selections/{session_id}/tiers/{tier}",
    response_model=APIResponse,
    summary="Choose a tier value",
)
async def set_tier(
    session_id: str,
    tier: Tier,
    request: SetTierRequest,
    store: StoreDep,
    wait: bool = Query(True, description="Wait for the resulting price computation"),
) -> dict:
    """
    Set one tier of the cascade.

    Every tier downstream of it is cleared and the dependent option lists
    are reloaded. Catalog failures are reported in the message and leave
    the affected option list empty.
    """
    try:
        session = store.get_session(session_id)
        failures = await session.set_tier(tier, request.value)
        return await _respond(session, _message(f"{tier.value} updated", failures), wait)

    except Exception as e:
        log_error(e, context=f"Set tier {tier.value}: {session_id}")
        raise


@router.put(
    "/selections/{session_id}/quantity",
    response_model=APIResponse,
    summary="Set the quantity",
)
async def set_quantity(
    session_id: str,
    request: SetQuantityRequest,
    store: StoreDep,
    wait: bool = Query(True, description="Wait for the resulting price computation"),
) -> dict:
    try:
        session = store.get_session(session_id)
        session.set_quantity(request.quantity)
        return await _respond(session, "Quantity updated", wait)

    except Exception as e:
        log_error(e, context=f"Set quantity: {session_id}")
        raise


@router.put(
    "/selections/{session_id}/custom-price",
    response_model=APIResponse,
    summary="Set or clear the per-unit price override",
)
async def set_custom_price(
    session_id: str,
    request: SetCustomPriceRequest,
    store: StoreDep,
) -> dict:
    """The override is reconciled locally; no price computation is triggered."""
    try:
        session = store.get_session(session_id)
        session.set_custom_price(request.custom_price)
        return await _respond(session, "Custom price updated", wait=False)

    except Exception as e:
        log_error(e, context=f"Set custom price: {session_id}")
        raise


@router.post(
    "/selections/{session_id}/price",
    response_model=APIResponse,
    summary="Recalculate the price now",
)
async def refresh_price(session_id: str, store: StoreDep) -> dict:
    """
    Compute the price for the current selection immediately.

    A failed computation is not an HTTP error: the response carries the
    failed (or stale) price status and the reason.
    """
    try:
        session = store.get_session(session_id)
        outcome = await session.refresh_price()
        message = outcome.error.message if outcome.error else f"Price {outcome.status.value}"
        return await _respond(session, message, wait=False)

    except Exception as e:
        log_error(e, context=f"Refresh price: {session_id}")
        raise


@router.post(
    "/selections/{session_id}/orders",
    status_code=201,
    response_model=APIResponse,
    summary="Create an order from the selection",
)
async def create_order(
    session_id: str,
    request: CreateOrderRequest,
    store: StoreDep,
    orders: OrderServiceDep,
) -> dict:
    """
    Commit the priced selection as a pending B2B order.

    Rejected with 422 before any remote call when a required tier is
    missing, no current price exists, or the effective price is not positive.
    """
    try:
        session = store.get_session(session_id)
        await session.wait_for_price()
        order = await orders.create_from_session(session, **request.model_dump(exclude_none=True))
        return {
            "success": True,
            "message": f"Order {order.order_number} created",
            "data": order.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Create order from selection: {session_id}")
        raise
