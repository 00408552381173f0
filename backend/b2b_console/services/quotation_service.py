"""Quotation service: lifecycle transitions persisted to the store."""

import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Literal, Optional, TypeVar

from pydantic import BaseModel

from ..models import ParentRef, Quotation, QuotationStatus
from ..store import InMemoryStore
from ..utils import RemoteCallFailed
from .additional_cost_ledger import AdditionalCostLedger
from .marketplace_client import MarketplaceClient, MarketplaceError
from .quotation_lifecycle import QuotationAction, QuotationLifecycle

logger = logging.getLogger(__name__)

T = TypeVar("T")

SortKey = Literal["created_at", "total_amount"]


class QuotationDetail(BaseModel):
    """Quotation as the console shows it."""

    quotation: Quotation
    effective_status: QuotationStatus
    allowed_actions: List[QuotationAction]
    approved_additional_cost_total: Decimal
    grand_total: Decimal


def _adopt(local: Quotation, remote: Quotation) -> Quotation:
    """Overlay the fields the backend actually returned onto the local result."""
    return Quotation.model_validate({**local.model_dump(), **remote.model_dump(exclude_unset=True)})


class QuotationService:
    """
    Runs QuotationLifecycle operations against stored quotations.

    A failed transition (local or remote) leaves the stored quotation as it
    was; only a fully successful one is written back.
    """

    def __init__(
        self,
        store: InMemoryStore,
        lifecycle: Optional[QuotationLifecycle] = None,
        remote: Optional[MarketplaceClient] = None,
    ):
        self.store = store
        self.lifecycle = lifecycle or QuotationLifecycle()
        self.remote = remote
        self.ledger = AdditionalCostLedger(store, remote=remote, clock=self.lifecycle.clock)

    async def _mirror(self, operation: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        if self.remote is None:
            return None
        try:
            return await call()
        except MarketplaceError as e:
            raise RemoteCallFailed(operation, str(e)) from e

    async def _commit(
        self,
        previous: Quotation,
        updated: Quotation,
        operation: str,
        call: Callable[[], Awaitable[Quotation]],
    ) -> Quotation:
        remote_result = await self._mirror(operation, call)
        if remote_result is not None:
            updated = _adopt(updated, remote_result)
        self.store.update_quotation(updated, previous_id=previous.id)
        return updated

    def get(self, quotation_id: str) -> Quotation:
        return self.store.get_quotation(quotation_id)

    def list(
        self,
        status: Optional[QuotationStatus] = None,
        sort_by: SortKey = "created_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Quotation]:
        """
        List quotations.

        Args:
            status: Keep only quotations whose effective status matches
            sort_by: created_at or total_amount
            descending: Newest / largest first
            limit: Maximum number returned
        """
        now = self.lifecycle.clock()
        quotations = self.store.list_quotations()
        if status is not None:
            quotations = [q for q in quotations if q.effective_status(now) == status]
        quotations.sort(key=lambda q: getattr(q, sort_by), reverse=descending)
        if limit is not None:
            quotations = quotations[:limit]
        return quotations

    def detail(self, quotation_id: str) -> QuotationDetail:
        quotation = self.get(quotation_id)
        approved = self.ledger.approved_total(ParentRef("quotation", quotation.id))
        return QuotationDetail(
            quotation=quotation,
            effective_status=quotation.effective_status(self.lifecycle.clock()),
            allowed_actions=self.lifecycle.allowed_actions(quotation),
            approved_additional_cost_total=approved,
            grand_total=quotation.total_amount + approved,
        )

    async def create(self, items: List[Any], **fields: Any) -> Quotation:
        """Draft a quotation, number it and store it."""
        quotation = self.lifecycle.create(
            items,
            quotation_number=self.store.next_quotation_number(self.lifecycle.clock()),
            **fields,
        )
        remote_result = await self._mirror(
            "create_quotation", lambda: self.remote.create_quotation(quotation)
        )
        if remote_result is not None:
            quotation = _adopt(quotation, remote_result)
        self.store.add_quotation(quotation)
        return quotation

    async def edit(self, quotation_id: str, items: Optional[List[Any]] = None, **fields: Any) -> Quotation:
        current = self.get(quotation_id)
        updated = self.lifecycle.edit(current, items=items, **fields)
        if updated is current:
            return current
        return await self._commit(
            current, updated, "update_quotation", lambda: self.remote.update_quotation(updated)
        )

    async def send(self, quotation_id: str, channel: str = "both") -> Quotation:
        current = self.get(quotation_id)
        updated = self.lifecycle.send(current, channel)
        return await self._commit(
            current, updated, "send_quotation", lambda: self.remote.send_quotation(current.id, channel)
        )

    async def negotiate(self, quotation_id: str, note: Optional[str] = None) -> Quotation:
        current = self.get(quotation_id)
        updated = self.lifecycle.negotiate(current, note)
        return await self._commit(
            current, updated, "negotiate_quotation",
            lambda: self.remote.negotiate_quotation(current.id, note),
        )

    async def approve(self, quotation_id: str, note: Optional[str] = None) -> Quotation:
        current = self.get(quotation_id)
        updated = self.lifecycle.approve(current, note)
        return await self._commit(
            current, updated, "approve_quotation",
            lambda: self.remote.approve_quotation(current.id, note),
        )

    async def reject(self, quotation_id: str, reason: str, note: Optional[str] = None) -> Quotation:
        current = self.get(quotation_id)
        updated = self.lifecycle.reject(current, reason, note)
        return await self._commit(
            current, updated, "reject_quotation",
            lambda: self.remote.reject_quotation(current.id, reason, note),
        )

    async def expire(self, quotation_id: str) -> Quotation:
        """Persist passive expiry. Local only: the backend derives expiry itself."""
        current = self.get(quotation_id)
        updated = self.lifecycle.expire(current)
        self.store.update_quotation(updated)
        return updated
