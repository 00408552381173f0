"""Typed contracts for the remote collaborators the resolvers depend on."""

from typing import Any, Dict, List, Optional, Protocol

from ..models import CatalogOption, PriceRequest, ProviderOption


class CatalogGateway(Protocol):
    """Option sources for each selection tier."""

    async def list_categories(self) -> List[CatalogOption]: ...

    async def list_subcategories(self, category_id: str) -> List[CatalogOption]: ...

    async def list_filter_attributes(
        self, category_id: str, subcategory_id: Optional[str] = None
    ) -> List[CatalogOption]: ...

    async def list_filter_options(self, attribute_id: str) -> List[CatalogOption]: ...

    async def list_segments(
        self, category_id: str, subcategory_id: str
    ) -> List[CatalogOption]: ...

    async def list_providers(
        self,
        category_id: str,
        subcategory_id: str,
        filter_attribute_id: Optional[str] = None,
        filter_option_id: Optional[str] = None,
    ) -> List[ProviderOption]: ...

    async def list_service_addresses(self, customer_id: str) -> List[CatalogOption]: ...


class PricingGateway(Protocol):
    """Opaque remote price authority."""

    async def compute_price(self, request: PriceRequest) -> Dict[str, Any]:
        """Return the raw calculate-price payload (camelCase keys)."""
        ...
