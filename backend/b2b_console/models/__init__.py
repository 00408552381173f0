"""Models package."""

from .catalog import CatalogOption, ProviderOption
from .selection import (
    Tier,
    TIER_ORDER,
    OPTIONAL_TIERS,
    PriceRequest,
    SelectionState,
    downstream_of,
    upstream_of,
)
from .price_quote import PriceQuote, PriceBreakdown, PriceStatus
from .quotation import (
    Quotation,
    QuotationItem,
    QuotationStatus,
    TERMINAL_STATUSES,
    SendChannel,
)
from .additional_cost import AdditionalCost, CostStatus, ParentRef, ParentKind
from .order import Order, OrderStatus
from .responses import APIResponse, ErrorResponse

__all__ = [
    "CatalogOption",
    "ProviderOption",
    "Tier",
    "TIER_ORDER",
    "OPTIONAL_TIERS",
    "PriceRequest",
    "SelectionState",
    "downstream_of",
    "upstream_of",
    "PriceQuote",
    "PriceBreakdown",
    "PriceStatus",
    "Quotation",
    "QuotationItem",
    "QuotationStatus",
    "TERMINAL_STATUSES",
    "SendChannel",
    "AdditionalCost",
    "CostStatus",
    "ParentRef",
    "ParentKind",
    "Order",
    "OrderStatus",
    "APIResponse",
    "ErrorResponse",
]
