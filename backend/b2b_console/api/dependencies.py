"""API dependencies and injection."""

from typing import Annotated, Optional
from fastapi import Depends
import logging

from ..store import InMemoryStore, get_store
from ..config import settings
from ..services.gateways import CatalogGateway, PricingGateway
from ..services.marketplace_client import MarketplaceClient, get_marketplace_client
from ..services.quotation_service import QuotationService
from ..services.additional_cost_ledger import AdditionalCostLedger
from ..services.order_service import OrderService


logger = logging.getLogger(__name__)


def get_store_dependency() -> InMemoryStore:
    """
    Dependency to get the in-memory store.

    Returns:
        InMemoryStore instance
    """
    return get_store(cache_ttl=settings.session_ttl_seconds, max_sessions=settings.max_sessions)


def get_catalog_gateway() -> CatalogGateway:
    """Option source for selection sessions."""
    return get_marketplace_client()


def get_pricing_gateway() -> PricingGateway:
    """Remote price authority for selection sessions."""
    return get_marketplace_client()


def get_remote_client() -> Optional[MarketplaceClient]:
    """
    Client that lifecycle and ledger writes are mirrored to.

    Returns:
        The marketplace client, or None when ``sync_remote`` is off
    """
    if not settings.sync_remote:
        return None
    return get_marketplace_client()


StoreDep = Annotated[InMemoryStore, Depends(get_store_dependency)]
RemoteDep = Annotated[Optional[MarketplaceClient], Depends(get_remote_client)]
CatalogDep = Annotated[CatalogGateway, Depends(get_catalog_gateway)]
PricingDep = Annotated[PricingGateway, Depends(get_pricing_gateway)]


def get_quotation_service(store: StoreDep, remote: RemoteDep) -> QuotationService:
    return QuotationService(store, remote=remote)


def get_additional_cost_ledger(store: StoreDep, remote: RemoteDep) -> AdditionalCostLedger:
    return AdditionalCostLedger(store, remote=remote)


def get_order_service(store: StoreDep, remote: RemoteDep) -> OrderService:
    return OrderService(store, remote=remote)


# Type aliases for common dependencies
QuotationServiceDep = Annotated[QuotationService, Depends(get_quotation_service)]
LedgerDep = Annotated[AdditionalCostLedger, Depends(get_additional_cost_ledger)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
