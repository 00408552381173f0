"""Price resolver: debounced remote pricing with stale-response rejection."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from ..models import PriceBreakdown, PriceQuote, PriceStatus, SelectionState
from ..utils import PriceComputationFailed
from .gateways import PricingGateway
from .pricing import reconcile

logger = logging.getLogger(__name__)


@dataclass
class PriceOutcome:
    """Result of one price computation as seen by its caller.

    Attributes:
        status: Resolver status after the computation
        quote: Quote now displayed (may be an older one)
        applied: The response was applied to displayed state
        discarded: The response arrived for a superseded selection
        error: Failure recorded for the current selection
    """

    status: PriceStatus
    quote: Optional[PriceQuote] = None
    applied: bool = False
    discarded: bool = False
    error: Optional[PriceComputationFailed] = None


class PriceResolver:
    """
    Computes the authoritative price for the current selection.

    Every outbound request is tagged with the fingerprint of the selection
    that triggered it. A response is applied only if that fingerprint still
    matches the latest observed selection, so the last issued selection wins
    regardless of arrival order. Superseded requests are not aborted; their
    answers are dropped on arrival.
    """

    def __init__(self, pricing: PricingGateway, debounce_seconds: float = 0.0):
        """
        Initialize the resolver.

        Args:
            pricing: Remote price authority
            debounce_seconds: Quiet period before a scheduled computation is sent
        """
        self.pricing = pricing
        self.debounce_seconds = debounce_seconds
        self.quote: Optional[PriceQuote] = None
        self.status = PriceStatus.INELIGIBLE
        self.last_error: Optional[PriceComputationFailed] = None
        self.discarded_responses = 0
        self._current: Optional[SelectionState] = None
        self._debounce_task: Optional[asyncio.Task] = None
        # Tasks past their debounce window whose request is on the wire
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def current_fingerprint(self) -> Optional[str]:
        return self._current.fingerprint if self._current is not None else None

    def observe(self, selection: SelectionState, clear_quote: bool = False) -> None:
        """
        Record the latest selection without computing anything.

        From this point any in-flight response for an older selection is stale.
        ``clear_quote`` drops the displayed quote (tier changes); a quantity
        change keeps it so the display can fall back to its base price.
        """
        self._current = selection
        if not selection.is_price_eligible:
            self._clear()
            return
        if clear_quote:
            self.quote = None
        self.last_error = None
        self.status = PriceStatus.AWAITING

    def _clear(self) -> None:
        self._cancel_debounce()
        self.quote = None
        self.last_error = None
        self.status = PriceStatus.INELIGIBLE

    def _cancel_debounce(self) -> None:
        task = self._debounce_task
        if task is not None and not task.done():
            if task in self._in_flight:
                logger.debug("Superseded price request already sent; its answer will be discarded")
            else:
                task.cancel()
                logger.debug("Pending price computation superseded before it was sent")
        self._debounce_task = None

    def close(self) -> None:
        """Drop any computation still waiting out its debounce window."""
        self._cancel_debounce()

    def schedule(
        self, selection: SelectionState, clear_quote: bool = False
    ) -> Optional[asyncio.Task]:
        """
        Observe ``selection`` and compute its price after the debounce window.

        A newer call inside the window replaces the pending one. Must be
        called from a running event loop.

        Returns:
            The pending task, or None if the selection is ineligible
        """
        self.observe(selection, clear_quote=clear_quote)
        if not selection.is_price_eligible:
            return None
        self._cancel_debounce()
        self._debounce_task = asyncio.create_task(self._debounced(selection))
        return self._debounce_task

    async def _debounced(self, selection: SelectionState) -> PriceOutcome:
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
        task = asyncio.current_task()
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return await self._compute(selection)

    async def recompute(self, selection: SelectionState) -> PriceOutcome:
        """
        Compute the price for ``selection`` now, bypassing the debounce.

        Ineligible selections clear the quote and make no remote call.
        """
        self.observe(selection)
        if not selection.is_price_eligible:
            logger.debug(f"Selection missing {selection.missing_for_price}; no quote")
            return PriceOutcome(status=self.status)
        self._cancel_debounce()
        return await self._compute(selection)

    async def wait(self) -> Optional[PriceOutcome]:
        """Await the pending debounced computation, following any that supersede it."""
        task = self._debounce_task
        outcome = None
        while task is not None:
            try:
                outcome = await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                outcome = None
            if self._debounce_task is task:
                break
            task = self._debounce_task
        return outcome

    async def _compute(self, selection: SelectionState) -> PriceOutcome:
        fingerprint = selection.fingerprint
        request = selection.price_request()
        logger.debug(f"Requesting price for {fingerprint}")

        try:
            payload = await self.pricing.compute_price(request)
            quote = PriceQuote.from_remote(payload, selection.quantity, fingerprint)
        except Exception as e:
            if fingerprint != self.current_fingerprint:
                return self._discard(fingerprint)
            error = PriceComputationFailed(str(e))
            self.last_error = error
            # Keep the previous quote on transient failure
            self.status = PriceStatus.STALE if self.quote is not None else PriceStatus.FAILED
            logger.warning(f"Price computation failed for {fingerprint}: {e}")
            return PriceOutcome(status=self.status, quote=self.quote, error=error)

        if fingerprint != self.current_fingerprint:
            return self._discard(fingerprint)

        self.quote = quote
        self.status = PriceStatus.READY
        self.last_error = None
        logger.info(
            f"Price ready for {fingerprint}: base={quote.base_price} final={quote.final_amount}"
        )
        return PriceOutcome(status=self.status, quote=quote, applied=True)

    def _discard(self, fingerprint: str) -> PriceOutcome:
        self.discarded_responses += 1
        logger.debug(f"Discarding price response for superseded selection {fingerprint}")
        return PriceOutcome(status=self.status, quote=self.quote, discarded=True)

    def breakdown(self, selection: Optional[SelectionState] = None) -> Optional[PriceBreakdown]:
        """Displayed amounts: last valid quote reconciled with the override."""
        selection = selection or self._current
        if self.quote is None or selection is None:
            return None
        return reconcile(self.quote, selection.quantity, selection.custom_price_override)
