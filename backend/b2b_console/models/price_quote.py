"""Price quote and displayed price breakdown models."""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ..utils.money import ZERO, gst_for, to_decimal


class PriceStatus(str, Enum):
    """What the price panel should show."""

    INELIGIBLE = "ineligible"  # select more
    AWAITING = "awaiting"  # recalculating
    READY = "ready"
    STALE = "stale"  # last good quote kept after a failed refresh
    FAILED = "failed"  # no quote and the last computation failed


class PriceQuote(BaseModel):
    """Authoritative price computed remotely for one selection."""

    base_price: Decimal = Field(..., ge=0, description="Per-unit rate card price")
    item_total: Decimal = Field(..., ge=0, description="base_price x quantity")
    gst_amount: Decimal = Field(..., ge=0)
    convenience_charge: Decimal = Field(ZERO, ge=0)
    final_amount: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    rate_card_id: Optional[str] = Field(None, description="Resolved rate card")
    source_selection_fingerprint: str = Field(..., description="Selection that produced this quote")
    computed_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_remote(
        cls, payload: Dict[str, Any], quantity: int, fingerprint: str
    ) -> "PriceQuote":
        """
        Build a quote from the calculate-price response.

        Missing itemTotal / gstAmount / finalAmount are derived from basePrice;
        amounts the provider supplied are kept as-is.
        """
        base_price = to_decimal(payload.get("basePrice"), ZERO)
        item_total = to_decimal(payload.get("itemTotal"), base_price * quantity)
        gst_amount = to_decimal(payload.get("gstAmount"), gst_for(item_total))
        convenience = to_decimal(payload.get("convenienceCharge"), ZERO)
        final_amount = to_decimal(
            payload.get("finalAmount"), item_total + gst_amount + convenience
        )
        rate_card_id = payload.get("rateCardId")
        return cls(
            base_price=base_price,
            item_total=item_total,
            gst_amount=gst_amount,
            convenience_charge=convenience,
            final_amount=final_amount,
            quantity=quantity,
            rate_card_id=str(rate_card_id) if rate_card_id else None,
            source_selection_fingerprint=fingerprint,
        )


class PriceBreakdown(BaseModel):
    """Amounts shown to the operator after override reconciliation."""

    unit_price: Decimal = Field(..., description="Effective per-unit price")
    base_price: Decimal = Field(..., description="Rate card price from the quote")
    quantity: int
    item_total: Decimal
    gst_amount: Decimal
    convenience_charge: Decimal
    final_amount: Decimal
    override_applied: bool = False
    rate_card_id: Optional[str] = None
    source_selection_fingerprint: str
