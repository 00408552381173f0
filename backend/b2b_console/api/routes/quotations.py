"""Quotation API routes."""

import logging
from typing import List, Literal, Optional
from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from ...models import APIResponse, QuotationStatus
from ...api.dependencies import QuotationServiceDep
from ...utils import log_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Quotations"])


class CreateQuotationRequest(BaseModel):
    """Request model for drafting a quotation."""
    items: List[dict] = Field(default_factory=list)
    validity_days: Optional[int] = None
    terms_and_conditions: Optional[str] = None
    sp_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    b2b_booking_id: Optional[str] = None


class UpdateQuotationRequest(BaseModel):
    """Request model for editing a draft; omitted fields stay as they are."""
    items: Optional[List[dict]] = None
    validity_days: Optional[int] = None
    terms_and_conditions: Optional[str] = None
    sp_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    b2b_booking_id: Optional[str] = None


class SendQuotationRequest(BaseModel):
    send_via: str = "both"


class NoteRequest(BaseModel):
    note: Optional[str] = None


class RejectQuotationRequest(BaseModel):
    reason: str = ""
    note: Optional[str] = None


def _detail(service, quotation_id: str) -> dict:
    return service.detail(quotation_id).model_dump(mode="json")


@router.post(
    "/quotations",
    status_code=201,
    response_model=APIResponse,
    summary="Draft a quotation",
)
async def create_quotation(
    request: CreateQuotationRequest,
    service: QuotationServiceDep,
) -> dict:
    """
    Draft a quotation at version 1.

    - **items**: `[{service, description?, quantity, rate}]`, at least one
    - **validity_days**: defaults to 30
    """
    try:
        quotation = await service.create(**request.model_dump(exclude_none=True))
        return {
            "success": True,
            "message": f"Quotation {quotation.quotation_number} drafted",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context="Create quotation")
        raise


@router.get(
    "/quotations",
    response_model=APIResponse,
    summary="List quotations",
)
async def list_quotations(
    service: QuotationServiceDep,
    status: Optional[QuotationStatus] = Query(None, description="Filter by effective status"),
    sort_by: Literal["created_at", "total_amount"] = Query("created_at"),
    order: Literal["asc", "desc"] = Query("desc"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number returned"),
) -> dict:
    """Quotations with their effective (expiry-aware) status."""
    try:
        quotations = service.list(
            status=status, sort_by=sort_by, descending=order == "desc", limit=limit
        )
        now = service.lifecycle.clock()
        return {
            "success": True,
            "message": f"{len(quotations)} quotations",
            "data": [
                {
                    **q.model_dump(mode="json"),
                    "effective_status": q.effective_status(now).value,
                }
                for q in quotations
            ],
        }

    except Exception as e:
        log_error(e, context="List quotations")
        raise


@router.get(
    "/quotations/{quotation_id}",
    response_model=APIResponse,
    summary="Get a quotation",
)
async def get_quotation(quotation_id: str, service: QuotationServiceDep) -> dict:
    """Quotation with allowed actions, approved additional costs and grand total."""
    try:
        return {
            "success": True,
            "message": "Quotation retrieved",
            "data": _detail(service, quotation_id),
        }

    except Exception as e:
        log_error(e, context=f"Get quotation: {quotation_id}")
        raise


@router.put(
    "/quotations/{quotation_id}",
    response_model=APIResponse,
    summary="Edit a draft quotation",
)
async def update_quotation(
    quotation_id: str,
    request: UpdateQuotationRequest,
    service: QuotationServiceDep,
) -> dict:
    try:
        fields = request.model_dump(exclude_none=True)
        items = fields.pop("items", None)
        quotation = await service.edit(quotation_id, items=items, **fields)
        return {
            "success": True,
            "message": f"Quotation at version {quotation.version}",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context=f"Update quotation: {quotation_id}")
        raise


@router.post(
    "/quotations/{quotation_id}/send",
    response_model=APIResponse,
    summary="Send a quotation to the customer",
)
async def send_quotation(
    quotation_id: str,
    request: SendQuotationRequest,
    service: QuotationServiceDep,
) -> dict:
    try:
        quotation = await service.send(quotation_id, request.send_via)
        return {
            "success": True,
            "message": f"Quotation sent via {quotation.sent_via}",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context=f"Send quotation: {quotation_id}")
        raise


@router.post(
    "/quotations/{quotation_id}/negotiate",
    response_model=APIResponse,
    summary="Open negotiation",
)
async def negotiate_quotation(
    quotation_id: str,
    request: NoteRequest,
    service: QuotationServiceDep,
) -> dict:
    try:
        quotation = await service.negotiate(quotation_id, request.note)
        return {
            "success": True,
            "message": "Quotation under negotiation",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context=f"Negotiate quotation: {quotation_id}")
        raise


@router.post(
    "/quotations/{quotation_id}/approve",
    response_model=APIResponse,
    summary="Approve a quotation",
)
async def approve_quotation(
    quotation_id: str,
    request: NoteRequest,
    service: QuotationServiceDep,
) -> dict:
    try:
        quotation = await service.approve(quotation_id, request.note)
        return {
            "success": True,
            "message": "Quotation approved",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context=f"Approve quotation: {quotation_id}")
        raise


@router.post(
    "/quotations/{quotation_id}/reject",
    response_model=APIResponse,
    summary="Reject a quotation",
)
async def reject_quotation(
    quotation_id: str,
    request: RejectQuotationRequest,
    service: QuotationServiceDep,
) -> dict:
    try:
        quotation = await service.reject(quotation_id, request.reason, request.note)
        return {
            "success": True,
            "message": "Quotation rejected",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context=f"Reject quotation: {quotation_id}")
        raise


@router.post(
    "/quotations/{quotation_id}/expire",
    response_model=APIResponse,
    summary="Persist expiry of a lapsed quotation",
)
async def expire_quotation(quotation_id: str, service: QuotationServiceDep) -> dict:
    try:
        quotation = await service.expire(quotation_id)
        return {
            "success": True,
            "message": "Quotation expired",
            "data": _detail(service, quotation.id),
        }

    except Exception as e:
        log_error(e, context=f"Expire quotation: {quotation_id}")
        raise
