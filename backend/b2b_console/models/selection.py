"""Cascading service selection state.

The tiers form a fixed chain::

    category -> subcategory -> filter_attribute -> filter_option
             -> segment -> provider -> service_address

Changing a tier clears every tier after it. Filter attribute, filter option
and segment are optional links: a later tier may be chosen while they are
empty, but never while a required upstream tier is empty.
"""

import hashlib
import json
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class Tier(str, Enum):
    """Selection tiers in cascade order."""

    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    FILTER_ATTRIBUTE = "filter_attribute"
    FILTER_OPTION = "filter_option"
    SEGMENT = "segment"
    PROVIDER = "provider"
    SERVICE_ADDRESS = "service_address"

    @property
    def field_name(self) -> str:
        """Name of the SelectionState attribute holding this tier's identifier."""
        return f"{self.value}_id"


TIER_ORDER: List[Tier] = list(Tier)

OPTIONAL_TIERS = frozenset({Tier.FILTER_ATTRIBUTE, Tier.FILTER_OPTION, Tier.SEGMENT})

# Tiers that must hold a value before the keyed tier may be chosen
TIER_PREREQUISITES: Dict[Tier, tuple] = {
    Tier.CATEGORY: (),
    Tier.SUBCATEGORY: (Tier.CATEGORY,),
    Tier.FILTER_ATTRIBUTE: (Tier.CATEGORY, Tier.SUBCATEGORY),
    Tier.FILTER_OPTION: (Tier.CATEGORY, Tier.SUBCATEGORY, Tier.FILTER_ATTRIBUTE),
    Tier.SEGMENT: (Tier.CATEGORY, Tier.SUBCATEGORY),
    Tier.PROVIDER: (Tier.CATEGORY, Tier.SUBCATEGORY),
    Tier.SERVICE_ADDRESS: (Tier.CATEGORY, Tier.SUBCATEGORY, Tier.PROVIDER),
}

PRICE_REQUIRED_TIERS = (Tier.CATEGORY, Tier.SUBCATEGORY, Tier.PROVIDER)

# The service address is where the work happens, not what it costs
PRICE_INPUT_TIERS = tuple(t for t in Tier if t != Tier.SERVICE_ADDRESS)


def downstream_of(tier: Tier) -> List[Tier]:
    """Tiers strictly after ``tier`` in cascade order."""
    return TIER_ORDER[TIER_ORDER.index(tier) + 1:]


def upstream_of(tier: Tier) -> List[Tier]:
    """Tiers strictly before ``tier`` in cascade order."""
    return TIER_ORDER[:TIER_ORDER.index(tier)]


class PriceRequest(BaseModel):
    """Snapshot of the selection fields the remote price calculation needs."""

    category_id: str
    subcategory_id: str
    provider_id: str
    segment_id: Optional[str] = None
    filter_attribute_id: Optional[str] = None
    filter_option_id: Optional[str] = None
    quantity: int = Field(1, ge=1)


class SelectionState(BaseModel):
    """Current cascading choice plus quantity and manual price override."""

    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    filter_attribute_id: Optional[str] = None
    filter_option_id: Optional[str] = None
    segment_id: Optional[str] = None
    provider_id: Optional[str] = None
    service_address_id: Optional[str] = None

    quantity: int = Field(1, ge=1, description="Number of service units")
    custom_price_override: Optional[Decimal] = Field(
        None, ge=0, description="Per-unit manual price; takes precedence when > 0"
    )

    # Bumped on every change that affects the remote price
    revision: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_prerequisites(self) -> "SelectionState":
        """Reject orphaned deep selections."""
        for tier in TIER_ORDER:
            if self.get(tier) is None:
                continue
            missing = [p.value for p in TIER_PREREQUISITES[tier] if self.get(p) is None]
            if missing:
                raise ValueError(f"{tier.value} requires {', '.join(missing)}")
        return self

    def get(self, tier: Tier) -> Optional[str]:
        """Identifier currently chosen for ``tier``."""
        return getattr(self, tier.field_name)

    def with_tier(self, tier: Tier, value: Optional[str]) -> "SelectionState":
        """
        Return a new state with ``tier`` set and every downstream tier cleared.

        Setting a tier to the value it already holds returns ``self`` so no
        recomputation is triggered.

        Raises:
            ValueError: If a required upstream tier is empty
        """
        value = value or None
        if value == self.get(tier):
            return self
        if value is not None:
            missing = [p.value for p in TIER_PREREQUISITES[tier] if self.get(p) is None]
            if missing:
                raise ValueError(f"{tier.value} requires {', '.join(missing)}")

        update = {tier.field_name: value}
        if tier in PRICE_INPUT_TIERS:
            update["revision"] = self.revision + 1
        for later in downstream_of(tier):
            update[later.field_name] = None
        return self.model_copy(update=update)

    def with_quantity(self, quantity: int) -> "SelectionState":
        """Return a new state with a different quantity."""
        if quantity < 1:
            raise ValueError("quantity must be a positive integer")
        if quantity == self.quantity:
            return self
        return self.model_copy(update={"quantity": quantity, "revision": self.revision + 1})

    def with_custom_price(self, override: Optional[Decimal]) -> "SelectionState":
        """Return a new state with a different override; does not bump the revision."""
        if override is not None and not override.is_finite():
            raise ValueError("custom price must be a finite number")
        if override is not None and override < 0:
            raise ValueError("custom price cannot be negative")
        return self.model_copy(update={"custom_price_override": override})

    @property
    def is_price_eligible(self) -> bool:
        """Category, subcategory and provider are all chosen."""
        return all(self.get(t) is not None for t in PRICE_REQUIRED_TIERS)

    @property
    def missing_for_price(self) -> List[str]:
        """Required tiers still empty for price calculation."""
        return [t.value for t in PRICE_REQUIRED_TIERS if self.get(t) is None]

    @property
    def fingerprint(self) -> str:
        """
        Opaque token identifying this exact selection's price inputs.

        Combines the monotonically increasing revision with a digest of the
        price inputs, so going back to an earlier combination still yields a
        new fingerprint.
        """
        inputs = {t.field_name: self.get(t) for t in PRICE_INPUT_TIERS}
        inputs["quantity"] = self.quantity
        digest = hashlib.sha1(
            json.dumps(inputs, sort_keys=True).encode("utf-8")
        ).hexdigest()[:12]
        return f"r{self.revision}-{digest}"

    def price_request(self) -> PriceRequest:
        """
        Build the remote price request.

        Raises:
            ValueError: If the selection is not eligible for pricing
        """
        if not self.is_price_eligible:
            raise ValueError(f"selection is missing {', '.join(self.missing_for_price)}")
        return PriceRequest(
            category_id=self.category_id,
            subcategory_id=self.subcategory_id,
            provider_id=self.provider_id,
            segment_id=self.segment_id,
            filter_attribute_id=self.filter_attribute_id,
            filter_option_id=self.filter_option_id,
            quantity=self.quantity,
        )

    class Config:
        """Pydantic configuration."""
        json_schema_extra = {
            "example": {
                "category_id": "cat-1",
                "subcategory_id": "sub-1",
                "provider_id": "prov-1",
                "quantity": 2,
                "custom_price_override": "900",
            }
        }
