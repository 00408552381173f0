"""Selection session: one operator's order-creation form state."""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import (
    CatalogOption,
    Order,
    PriceBreakdown,
    PriceQuote,
    PriceStatus,
    SelectionState,
    Tier,
    TIER_ORDER,
)
from ..utils import CatalogFetchFailed, ValidationFailed
from ..utils.money import gst_for, money, to_decimal
from .gateways import CatalogGateway, PricingGateway
from .price_resolver import PriceOutcome, PriceResolver
from .pricing import effective_unit_price, has_override
from .selection_resolver import OptionLoadStatus, SelectionResolver

logger = logging.getLogger(__name__)

ORDER_REQUIRED_TIERS = (Tier.CATEGORY, Tier.SUBCATEGORY, Tier.PROVIDER, Tier.SERVICE_ADDRESS)


class SessionView(BaseModel):
    """Read model handed to the console UI."""

    id: str
    customer_id: Optional[str] = None
    selection: SelectionState
    fingerprint: str
    options: Dict[str, List[CatalogOption]] = Field(default_factory=dict)
    option_status: Dict[str, OptionLoadStatus] = Field(default_factory=dict)
    catalog_errors: Dict[str, str] = Field(default_factory=dict)
    price_status: PriceStatus
    price_error: Optional[str] = None
    quote: Optional[PriceQuote] = None
    price: Optional[PriceBreakdown] = None
    missing_for_price: List[str] = Field(default_factory=list)


class SelectionSession:
    """
    Couples a SelectionResolver with a PriceResolver.

    Every selection change is forwarded to the price resolver synchronously,
    before any await, so a response that was already in flight is stale the
    moment the operator changes something.
    """

    def __init__(
        self,
        catalog: CatalogGateway,
        pricing: PricingGateway,
        debounce_seconds: float = 0.0,
        customer_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.resolver = SelectionResolver(catalog, customer_id=customer_id)
        self.price = PriceResolver(pricing, debounce_seconds=debounce_seconds)
        self.created_at = datetime.now()
        self.resolver.subscribe(self._on_selection_change)

    @property
    def state(self) -> SelectionState:
        return self.resolver.state

    def _on_selection_change(self, previous: SelectionState, current: SelectionState) -> None:
        if previous.fingerprint == current.fingerprint:
            # Override only: display re-derives, nothing to fetch
            return
        tiers_changed = any(previous.get(t) != current.get(t) for t in TIER_ORDER)
        self.price.schedule(current, clear_quote=tiers_changed)

    async def start(self) -> List[CatalogFetchFailed]:
        """Load the first tier (and service addresses when a customer is known)."""
        failures = []
        loads = [Tier.CATEGORY]
        if self.resolver.customer_id:
            loads.append(Tier.SERVICE_ADDRESS)
        for tier in loads:
            try:
                await self.resolver.load_options_for(tier)
            except CatalogFetchFailed as e:
                failures.append(e)
        return failures

    async def set_customer(self, customer_id: Optional[str]) -> List[CatalogFetchFailed]:
        return await self.resolver.set_customer(customer_id)

    async def set_tier(self, tier: Tier, value: Optional[str]) -> List[CatalogFetchFailed]:
        return await self.resolver.set_tier(tier, value)

    def set_quantity(self, quantity: int) -> None:
        self.resolver.set_quantity(quantity)

    def set_custom_price(self, value: Any) -> None:
        """Set or clear (None / empty) the per-unit override."""
        override = to_decimal(value)
        if value not in (None, "") and override is None:
            raise ValidationFailed("custom_price_override", f"'{value}' is not a number")
        self.resolver.set_custom_price(override)

    async def refresh_price(self) -> PriceOutcome:
        """Recompute now for the current selection."""
        return await self.price.recompute(self.state)

    async def wait_for_price(self) -> Optional[PriceOutcome]:
        return await self.price.wait()

    def close(self) -> None:
        self.price.close()

    def view(self) -> SessionView:
        state = self.state
        return SessionView(
            id=self.id,
            customer_id=self.resolver.customer_id,
            selection=state,
            fingerprint=state.fingerprint,
            options={t.value: self.resolver.options[t] for t in TIER_ORDER},
            option_status={t.value: self.resolver.load_status[t] for t in TIER_ORDER},
            catalog_errors={t.value: e.message for t, e in self.resolver.failures.items()},
            price_status=self.price.status,
            price_error=self.price.last_error.message if self.price.last_error else None,
            quote=self.price.quote,
            price=self.price.breakdown(state),
            missing_for_price=state.missing_for_price,
        )

    def build_order(self, **details: Any) -> Order:
        """
        Validate the session and produce the order to commit.

        The committed amounts always follow effective unit price x quantity
        plus 18% GST; the remote breakdown is kept alongside for audit.

        Args:
            **details: Customer and scheduling fields copied onto the order

        Raises:
            ValidationFailed: Missing selection, no current quote, or a
                non-positive effective price
        """
        state = self.state
        for tier in ORDER_REQUIRED_TIERS:
            if state.get(tier) is None:
                raise ValidationFailed(tier.field_name, f"{tier.value} is required")

        quote = self.price.quote
        if quote is None:
            raise ValidationFailed(
                "price", "select all required fields to calculate the price before submitting"
            )
        if quote.source_selection_fingerprint != state.fingerprint:
            raise ValidationFailed("price", "price is being recalculated for the latest selection")

        unit_price = effective_unit_price(quote, state.custom_price_override)
        if unit_price <= 0:
            raise ValidationFailed("final_price", "price must be greater than zero")

        total = unit_price * state.quantity
        gst = gst_for(total)
        custom: Optional[Decimal] = (
            state.custom_price_override if has_override(state.custom_price_override) else None
        )
        order = Order(
            b2b_customer_id=self.resolver.customer_id,
            service_address_id=state.service_address_id,
            category_id=state.category_id,
            subcategory_id=state.subcategory_id,
            filter_attribute_id=state.filter_attribute_id,
            filter_option_id=state.filter_option_id,
            segment_id=state.segment_id,
            provider_id=state.provider_id,
            rate_card_id=quote.rate_card_id,
            base_price=quote.base_price,
            custom_price=custom,
            final_price=unit_price,
            quantity=state.quantity,
            total_amount=money(total),
            gst_amount=gst,
            final_amount=money(total + gst),
            b2c_base_price=quote.item_total,
            b2c_gst_amount=quote.gst_amount,
            b2c_calculated_price=quote.final_amount,
            **details,
        )
        logger.info(
            f"Order built from session {self.id}: unit={unit_price} qty={state.quantity} "
            f"final={order.final_amount}"
        )
        return order
