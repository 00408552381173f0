"""Order API routes."""

import logging
from typing import Optional
from fastapi import APIRouter, Query
from pydantic import BaseModel

from ...models import APIResponse, OrderStatus
from ...api.dependencies import OrderServiceDep
from ...utils import log_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Orders"])


class OrderDecisionRequest(BaseModel):
    note: Optional[str] = None


@router.get(
    "/orders",
    response_model=APIResponse,
    summary="List orders",
)
async def list_orders(
    service: OrderServiceDep,
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
) -> dict:
    try:
        orders = service.list(status=status)[:limit]
        return {
            "success": True,
            "message": f"{len(orders)} orders",
            "data": [o.model_dump(mode="json") for o in orders],
        }

    except Exception as e:
        log_error(e, context="List orders")
        raise


@router.get(
    "/orders/{order_id}",
    response_model=APIResponse,
    summary="Get an order",
)
async def get_order(order_id: str, service: OrderServiceDep) -> dict:
    try:
        order = service.get(order_id)
        return {
            "success": True,
            "message": "Order retrieved",
            "data": order.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Get order: {order_id}")
        raise


@router.post(
    "/orders/{order_id}/approve",
    response_model=APIResponse,
    summary="Approve a pending order",
)
async def approve_order(
    order_id: str,
    request: OrderDecisionRequest,
    service: OrderServiceDep,
) -> dict:
    """Approving an order also locks its additional costs."""
    try:
        order = service.approve(order_id, request.note)
        return {
            "success": True,
            "message": "Order approved",
            "data": order.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Approve order: {order_id}")
        raise


@router.post(
    "/orders/{order_id}/reject",
    response_model=APIResponse,
    summary="Reject a pending order",
)
async def reject_order(
    order_id: str,
    request: OrderDecisionRequest,
    service: OrderServiceDep,
) -> dict:
    try:
        order = service.reject(order_id, request.note)
        return {
            "success": True,
            "message": "Order rejected",
            "data": order.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Reject order: {order_id}")
        raise
