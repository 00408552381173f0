"""Additional cost data model."""

from pydantic import BaseModel, Field, computed_field, model_validator
from typing import Literal, NamedTuple, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
import uuid


class CostStatus(str, Enum):
    """Approval state of an additional cost."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


ParentKind = Literal["order", "quotation"]


class ParentRef(NamedTuple):
    """The quotation or order an additional cost belongs to."""

    kind: ParentKind
    id: str


class AdditionalCost(BaseModel):
    """Supplementary line item with its own approval decision."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique ID (UUID)")

    # Exactly one of these is set
    quotation_id: Optional[str] = None
    order_id: Optional[str] = None

    item_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    quantity: int = Field(1, ge=0)
    unit_price: Decimal = Field(..., ge=0)

    status: CostStatus = CostStatus.PENDING
    notes: Optional[str] = None

    added_by: str = Field("admin", description="Actor who added the cost")
    added_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    approved_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_single_parent(self) -> "AdditionalCost":
        """A cost belongs to one quotation or one order, never both."""
        if (self.quotation_id is None) == (self.order_id is None):
            raise ValueError("additional cost needs exactly one of quotation_id or order_id")
        return self

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        """quantity x unit_price, always derived."""
        return self.quantity * self.unit_price

    @property
    def parent(self) -> ParentRef:
        if self.quotation_id is not None:
            return ParentRef("quotation", self.quotation_id)
        return ParentRef("order", self.order_id)
