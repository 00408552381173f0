"""Selection resolver: cascading tier choices and their option sets."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models import CatalogOption, SelectionState, Tier, TIER_ORDER
from ..utils import CatalogFetchFailed, ValidationFailed
from .gateways import CatalogGateway

logger = logging.getLogger(__name__)

SelectionListener = Callable[[SelectionState, SelectionState], None]


class OptionLoadStatus(str, Enum):
    """Load state of one tier's option list."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


# Inputs each tier's option list is fetched from: (required, optional).
# "customer" is session context rather than a tier.
OPTION_INPUTS: Dict[Tier, Tuple[tuple, tuple]] = {
    Tier.CATEGORY: ((), ()),
    Tier.SUBCATEGORY: ((Tier.CATEGORY,), ()),
    Tier.FILTER_ATTRIBUTE: ((Tier.CATEGORY, Tier.SUBCATEGORY), ()),
    Tier.FILTER_OPTION: ((Tier.FILTER_ATTRIBUTE,), ()),
    Tier.SEGMENT: ((Tier.CATEGORY, Tier.SUBCATEGORY), ()),
    Tier.PROVIDER: (
        (Tier.CATEGORY, Tier.SUBCATEGORY),
        (Tier.FILTER_ATTRIBUTE, Tier.FILTER_OPTION),
    ),
    Tier.SERVICE_ADDRESS: (("customer",), ()),
}


def dependents_of(source: Any) -> List[Tier]:
    """Tiers whose option list must be refetched when ``source`` changes."""
    return [
        tier
        for tier, (required, optional) in OPTION_INPUTS.items()
        if source in required or source in optional
    ]


class SelectionResolver:
    """
    Keeps the selection cascade consistent and loads each tier's options.

    Every selection change goes through one reducer (``SelectionState.with_tier``)
    so downstream tiers are cleared atomically. Option responses are applied
    only if the inputs they were requested for are still current; a late
    answer for an abandoned upstream choice is dropped.
    """

    def __init__(self, catalog: CatalogGateway, customer_id: Optional[str] = None):
        """
        Initialize the resolver.

        Args:
            catalog: Option source for every tier
            customer_id: B2B customer whose service addresses are offered
        """
        self.catalog = catalog
        self.customer_id = customer_id
        self.state = SelectionState()
        self.options: Dict[Tier, List[CatalogOption]] = {t: [] for t in TIER_ORDER}
        self.load_status: Dict[Tier, OptionLoadStatus] = {
            t: OptionLoadStatus.IDLE for t in TIER_ORDER
        }
        self.failures: Dict[Tier, CatalogFetchFailed] = {}
        # Inputs each tier's current option list (or failure) belongs to
        self._option_keys: Dict[Tier, tuple] = {}
        self._listeners: List[SelectionListener] = []

    def subscribe(self, listener: SelectionListener) -> None:
        """Register a callback invoked with (previous, current) after every change."""
        self._listeners.append(listener)

    def _commit(self, new_state: SelectionState) -> bool:
        if new_state is self.state:
            return False
        previous, self.state = self.state, new_state
        for listener in self._listeners:
            listener(previous, new_state)
        return True

    # ===== Reducer =====

    def apply(self, tier: Tier, value: Optional[str]) -> bool:
        """
        Set ``tier`` and clear everything downstream, without loading options.

        Returns:
            True if the selection changed

        Raises:
            ValidationFailed: If a required upstream tier is empty or the value
                is not among the loaded options
        """
        value = value or None
        if (
            value is not None
            and self.load_status[tier] == OptionLoadStatus.LOADED
            and value not in {o.id for o in self.options[tier]}
        ):
            raise ValidationFailed(tier.field_name, f"'{value}' is not an available {tier.value}")
        try:
            new_state = self.state.with_tier(tier, value)
        except ValueError as e:
            raise ValidationFailed(tier.field_name, str(e)) from e

        changed = self._commit(new_state)
        if changed:
            self._drop_stale_options()
            logger.debug(f"Tier {tier.value} set to {value!r} (revision {new_state.revision})")
        return changed

    def set_quantity(self, quantity: int) -> bool:
        try:
            return self._commit(self.state.with_quantity(quantity))
        except ValueError as e:
            raise ValidationFailed("quantity", str(e)) from e

    def set_custom_price(self, override: Any) -> bool:
        try:
            return self._commit(self.state.with_custom_price(override))
        except ValueError as e:
            raise ValidationFailed("custom_price_override", str(e)) from e

    async def set_tier(self, tier: Tier, value: Optional[str]) -> List[CatalogFetchFailed]:
        """
        Set a tier, clear everything downstream, and reload dependent option lists.

        Catalog failures are recovered locally: the affected tier's options
        become empty and the failure is returned (and kept in ``failures``).

        Returns:
            Catalog failures raised while reloading dependent tiers
        """
        if not self.apply(tier, value):
            return []
        return await self._reload(dependents_of(tier))

    async def set_customer(self, customer_id: Optional[str]) -> List[CatalogFetchFailed]:
        """Switch the customer context; clears the chosen service address."""
        customer_id = customer_id or None
        if customer_id == self.customer_id:
            return []
        self.customer_id = customer_id
        self.apply(Tier.SERVICE_ADDRESS, None)
        return await self._reload(dependents_of("customer"))

    async def _reload(self, tiers: List[Tier]) -> List[CatalogFetchFailed]:
        loadable = [t for t in tiers if self._inputs_ready(t)]
        for tier in tiers:
            if tier not in loadable:
                self._reset_options(tier)
        if not loadable:
            return []

        results = await asyncio.gather(
            *(self.load_options_for(t) for t in loadable), return_exceptions=True
        )
        failures = []
        for result in results:
            if isinstance(result, CatalogFetchFailed):
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
        return failures

    # ===== Option loading =====

    def _input_value(self, source: Any) -> Optional[str]:
        if source == "customer":
            return self.customer_id
        return self.state.get(source)

    def _inputs_ready(self, tier: Tier) -> bool:
        required, _ = OPTION_INPUTS[tier]
        return all(self._input_value(s) is not None for s in required)

    def _option_key(self, tier: Tier) -> tuple:
        """Current values of everything ``tier``'s options are fetched from."""
        required, optional = OPTION_INPUTS[tier]
        return tuple(self._input_value(s) for s in required + optional)

    def _reset_options(self, tier: Tier) -> None:
        self.options[tier] = []
        self.load_status[tier] = OptionLoadStatus.IDLE
        self.failures.pop(tier, None)
        self._option_keys.pop(tier, None)

    def _drop_stale_options(self) -> None:
        """Empty every option list fetched for inputs that no longer hold."""
        for tier in TIER_ORDER:
            if tier in self._option_keys and self._option_keys[tier] != self._option_key(tier):
                self._reset_options(tier)

    async def _fetch(self, tier: Tier) -> List[CatalogOption]:
        s = self.state
        if tier == Tier.CATEGORY:
            return await self.catalog.list_categories()
        if tier == Tier.SUBCATEGORY:
            return await self.catalog.list_subcategories(s.category_id)
        if tier == Tier.FILTER_ATTRIBUTE:
            return await self.catalog.list_filter_attributes(s.category_id, s.subcategory_id)
        if tier == Tier.FILTER_OPTION:
            return await self.catalog.list_filter_options(s.filter_attribute_id)
        if tier == Tier.SEGMENT:
            return await self.catalog.list_segments(s.category_id, s.subcategory_id)
        if tier == Tier.PROVIDER:
            return await self.catalog.list_providers(
                s.category_id,
                s.subcategory_id,
                s.filter_attribute_id,
                s.filter_option_id,
            )
        return await self.catalog.list_service_addresses(self.customer_id)

    async def load_options_for(self, tier: Tier) -> List[CatalogOption]:
        """
        Fetch the valid choices for ``tier`` given the current upstream values.

        An empty answer is a valid (empty) option set. If the current choice
        for the tier is missing from the refreshed set it is cleared.

        Returns:
            The tier's option list after this load

        Raises:
            CatalogFetchFailed: On transport failure; the tier's options are
                emptied and its choice (plus everything downstream) cleared
        """
        if not self._inputs_ready(tier):
            self._reset_options(tier)
            return []

        key = self._option_key(tier)
        self._option_keys[tier] = key
        self.load_status[tier] = OptionLoadStatus.LOADING
        try:
            result = await self._fetch(tier)
        except Exception as e:
            if self._option_key(tier) != key:
                logger.debug(f"Ignoring failed {tier.value} load for superseded inputs {key}")
                return self.options[tier]
            error = CatalogFetchFailed(tier.value, str(e))
            self.options[tier] = []
            self.load_status[tier] = OptionLoadStatus.FAILED
            self.failures[tier] = error
            if self.state.get(tier) is not None:
                self.apply(tier, None)
            logger.warning(f"Catalog fetch failed for {tier.value}: {e}")
            raise error from e

        if self._option_key(tier) != key:
            logger.debug(f"Discarding {tier.value} options for superseded inputs {key}")
            return self.options[tier]

        options = list(result or [])
        self.options[tier] = options
        self.load_status[tier] = OptionLoadStatus.LOADED
        self.failures.pop(tier, None)

        current = self.state.get(tier)
        if current is not None and current not in {o.id for o in options}:
            logger.info(f"Current {tier.value} {current!r} no longer offered; clearing it")
            self.apply(tier, None)

        logger.debug(f"Loaded {len(options)} {tier.value} options")
        return options
