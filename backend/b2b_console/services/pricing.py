"""Override reconciliation for the displayed price."""

import logging
from decimal import Decimal
from typing import Optional

from ..models import PriceBreakdown, PriceQuote
from ..utils.money import ZERO, gst_for, money

logger = logging.getLogger(__name__)


def has_override(custom_price: Optional[Decimal]) -> bool:
    """An override only counts when it is set and greater than zero."""
    return custom_price is not None and custom_price > ZERO


def effective_unit_price(quote: PriceQuote, custom_price: Optional[Decimal]) -> Decimal:
    """Override when present, otherwise the quote's rate card price."""
    return custom_price if has_override(custom_price) else quote.base_price


def reconcile(
    quote: PriceQuote,
    quantity: int,
    custom_price: Optional[Decimal] = None,
) -> PriceBreakdown:
    """
    Combine a resolved quote with the operator's manual override.

    With an override, item total, GST and final amount are recomputed from
    the override as the unit price; the convenience charge belongs to the
    rate card path and is dropped. Without one, the remote amounts are used
    unchanged. The rate card ID is carried through either way. Final amounts
    are rounded here, at display time, and not before.

    Args:
        quote: Last valid quote
        quantity: Current selection quantity
        custom_price: Per-unit manual override

    Returns:
        PriceBreakdown for display or commit
    """
    if has_override(custom_price):
        item_total = custom_price * quantity
        gst = gst_for(item_total)
        return PriceBreakdown(
            unit_price=custom_price,
            base_price=quote.base_price,
            quantity=quantity,
            item_total=money(item_total),
            gst_amount=gst,
            convenience_charge=ZERO,
            final_amount=money(item_total + gst),
            override_applied=True,
            rate_card_id=quote.rate_card_id,
            source_selection_fingerprint=quote.source_selection_fingerprint,
        )

    if quantity != quote.quantity:
        # Quantity changed since the quote; show base price x quantity until
        # the recomputed quote lands
        item_total = quote.base_price * quantity
        gst = gst_for(item_total)
        final_amount = item_total + gst + quote.convenience_charge
    else:
        item_total = quote.item_total
        gst = quote.gst_amount
        final_amount = quote.final_amount

    return PriceBreakdown(
        unit_price=quote.base_price,
        base_price=quote.base_price,
        quantity=quantity,
        item_total=money(item_total),
        gst_amount=money(gst),
        convenience_charge=money(quote.convenience_charge),
        final_amount=money(final_amount),
        override_applied=False,
        rate_card_id=quote.rate_card_id,
        source_selection_fingerprint=quote.source_selection_fingerprint,
    )
