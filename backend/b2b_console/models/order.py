"""B2B order data model."""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
import uuid


class OrderStatus(str, Enum):
    """Order approval states relevant to the additional-cost lock."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Order(BaseModel):
    """Order committed from a priced selection."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique ID (UUID)")
    order_number: Optional[str] = None

    b2b_customer_id: Optional[str] = None
    service_address_id: Optional[str] = None

    category_id: str
    subcategory_id: str
    filter_attribute_id: Optional[str] = None
    filter_option_id: Optional[str] = None
    segment_id: Optional[str] = None
    provider_id: str

    rate_card_id: Optional[str] = None
    base_price: Decimal = Field(..., ge=0, description="Rate card price")
    custom_price: Optional[Decimal] = Field(None, ge=0, description="Manual override, if any")
    final_price: Decimal = Field(..., ge=0, description="Effective per-unit price")
    quantity: int = Field(1, ge=1)
    total_amount: Decimal = Field(..., ge=0, description="final_price x quantity")
    gst_amount: Decimal = Field(..., ge=0)
    final_amount: Decimal = Field(..., ge=0)

    # Remote breakdown kept for audit
    b2c_base_price: Optional[Decimal] = None
    b2c_gst_amount: Optional[Decimal] = None
    b2c_calculated_price: Optional[Decimal] = None

    service_name: Optional[str] = None
    service_date: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    payment_terms: str = "Net 30 days"
    notes: Optional[str] = None

    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict for the marketplace create-order endpoint."""
        return self.model_dump(
            mode="json",
            exclude={"id", "order_number", "status", "created_at", "approved_at", "rejected_at"},
        )
