"""Additional-cost ledger API routes."""

import logging
from decimal import Decimal
from typing import Literal, Optional
from fastapi import APIRouter
from pydantic import BaseModel

from ...models import APIResponse, ParentRef
from ...api.dependencies import LedgerDep
from ...utils import log_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Additional Costs"])

PARENT_KINDS = {"quotations": "quotation", "orders": "order"}


class CreateCostRequest(BaseModel):
    """Request model for adding a cost line."""
    item_name: str
    unit_price: Decimal
    quantity: int = 1
    description: Optional[str] = None
    notes: Optional[str] = None
    added_by: str = "admin"


class UpdateCostRequest(BaseModel):
    """Omitted fields stay as they are."""
    item_name: Optional[str] = None
    unit_price: Optional[Decimal] = None
    quantity: Optional[int] = None
    description: Optional[str] = None
    notes: Optional[str] = None


class CostStatusRequest(BaseModel):
    status: str
    notes: Optional[str] = None


@router.get(
    "/{parent_kind}/{parent_id}/additional-costs",
    response_model=APIResponse,
    summary="List a parent's additional costs",
)
async def list_costs(
    parent_kind: Literal["quotations", "orders"],
    parent_id: str,
    ledger: LedgerDep,
) -> dict:
    """Costs with approved, pending and rejected totals."""
    try:
        view = ledger.view(ParentRef(PARENT_KINDS[parent_kind], parent_id))
        return {
            "success": True,
            "message": f"{len(view.costs)} additional costs",
            "data": view.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"List additional costs: {parent_kind}/{parent_id}")
        raise


@router.post(
    "/{parent_kind}/{parent_id}/additional-costs",
    status_code=201,
    response_model=APIResponse,
    summary="Add an additional cost",
)
async def create_cost(
    parent_kind: Literal["quotations", "orders"],
    parent_id: str,
    request: CreateCostRequest,
    ledger: LedgerDep,
) -> dict:
    """
    Add a pending cost line.

    Refused with 409 when the quotation or order is approved or rejected.
    """
    try:
        cost = await ledger.add(
            ParentRef(PARENT_KINDS[parent_kind], parent_id), **request.model_dump()
        )
        return {
            "success": True,
            "message": "Additional cost added",
            "data": cost.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Add additional cost: {parent_kind}/{parent_id}")
        raise


@router.put(
    "/additional-costs/{cost_id}",
    response_model=APIResponse,
    summary="Edit an additional cost",
)
async def update_cost(
    cost_id: str,
    request: UpdateCostRequest,
    ledger: LedgerDep,
) -> dict:
    try:
        cost = await ledger.update(cost_id, **request.model_dump(exclude_none=True))
        return {
            "success": True,
            "message": "Additional cost updated",
            "data": cost.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Update additional cost: {cost_id}")
        raise


@router.put(
    "/additional-costs/{cost_id}/status",
    response_model=APIResponse,
    summary="Approve or reject an additional cost",
)
async def set_cost_status(
    cost_id: str,
    request: CostStatusRequest,
    ledger: LedgerDep,
) -> dict:
    """A cost is decided once; a second decision is refused with 409."""
    try:
        cost = await ledger.set_status(cost_id, request.status, request.notes)
        return {
            "success": True,
            "message": f"Additional cost {cost.status.value}",
            "data": cost.model_dump(mode="json"),
        }

    except Exception as e:
        log_error(e, context=f"Set additional cost status: {cost_id}")
        raise


@router.delete(
    "/additional-costs/{cost_id}",
    response_model=APIResponse,
    summary="Remove an additional cost",
)
async def delete_cost(cost_id: str, ledger: LedgerDep) -> dict:
    try:
        await ledger.remove(cost_id)
        return {"success": True, "message": "Additional cost removed", "data": None}

    except Exception as e:
        log_error(e, context=f"Remove additional cost: {cost_id}")
        raise
