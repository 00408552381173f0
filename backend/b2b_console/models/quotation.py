"""Quotation data model."""

from pydantic import BaseModel, Field, computed_field
from typing import List, Optional, Literal
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
import uuid

from ..utils.money import ZERO, gst_for, total_with_gst


class QuotationStatus(str, Enum):
    """Quotation lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    NEGOTIATING = "negotiating"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset(
    {QuotationStatus.APPROVED, QuotationStatus.REJECTED, QuotationStatus.EXPIRED}
)

SendChannel = Literal["whatsapp", "email", "both"]


class QuotationItem(BaseModel):
    """One priced line of a quotation."""

    service: str = Field(..., description="Service name")
    description: Optional[str] = Field(None, description="Line description")
    quantity: int = Field(1, ge=0)
    rate: Decimal = Field(..., ge=0, description="Per-unit rate")

    @computed_field
    @property
    def amount(self) -> Decimal:
        """quantity x rate, always derived."""
        return self.quantity * self.rate


class Quotation(BaseModel):
    """Priced proposal sent to a B2B customer."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique ID (UUID)")
    quotation_number: Optional[str] = Field(None, description="Human readable number")
    b2b_booking_id: Optional[str] = Field(None, description="Linked order, if any")

    items: List[QuotationItem] = Field(default_factory=list)

    status: QuotationStatus = QuotationStatus.DRAFT
    version: int = Field(1, ge=1)
    validity_days: int = Field(30, ge=1)

    terms_and_conditions: Optional[str] = None
    sp_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    status_note: Optional[str] = Field(None, description="Note left with the last status change")

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    sent_at: Optional[datetime] = None
    sent_via: Optional[SendChannel] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @computed_field
    @property
    def initial_amount(self) -> Decimal:
        """Pre-tax subtotal of all items."""
        return sum((item.amount for item in self.items), ZERO)

    @computed_field
    @property
    def gst_amount(self) -> Decimal:
        return gst_for(self.initial_amount)

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        """Subtotal grossed up by 18% GST."""
        return total_with_gst(self.initial_amount)

    @computed_field
    @property
    def final_amount(self) -> Decimal:
        """Negotiated pre-tax amount; equals the subtotal."""
        return self.initial_amount

    @computed_field
    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(days=self.validity_days)

    def is_past_validity(self, now: Optional[datetime] = None) -> bool:
        """True once the validity window has elapsed."""
        return (now or datetime.now()) > self.expires_at

    def effective_status(self, now: Optional[datetime] = None) -> QuotationStatus:
        """
        Status as every read path reports it.

        A non-terminal quotation past its validity window reads as expired
        without anything having been written.
        """
        if self.status not in TERMINAL_STATUSES and self.is_past_validity(now):
            return QuotationStatus.EXPIRED
        return self.status

    class Config:
        """Pydantic configuration."""
        json_schema_extra = {
            "example": {
                "b2b_booking_id": "order-123",
                "items": [
                    {"service": "Deep cleaning", "quantity": 3, "rate": "100"},
                    {"service": "Pest control", "quantity": 1, "rate": "250"},
                ],
                "validity_days": 30,
            }
        }
