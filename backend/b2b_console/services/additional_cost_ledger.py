"""Additional-cost ledger: per-parent cost lines with independent approval."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..models import (
    AdditionalCost,
    CostStatus,
    OrderStatus,
    ParentRef,
    Quotation,
    QuotationStatus,
)
from ..store import InMemoryStore
from ..utils import AlreadyResolved, ParentLocked, RemoteCallFailed, ValidationFailed
from ..utils.money import ZERO
from .marketplace_client import MarketplaceClient, MarketplaceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Parent statuses that freeze the ledger
LOCKED_STATUSES = frozenset(
    {QuotationStatus.APPROVED.value, QuotationStatus.REJECTED.value,
     OrderStatus.APPROVED.value, OrderStatus.REJECTED.value}
)

EDITABLE_FIELDS = ("item_name", "description", "quantity", "unit_price", "notes")


class LedgerView(BaseModel):
    """Costs of one parent with their running totals."""

    parent_kind: str
    parent_id: str
    locked: bool = False
    costs: List[AdditionalCost] = Field(default_factory=list)
    approved_total: Decimal = ZERO
    pending_total: Decimal = ZERO
    rejected_total: Decimal = ZERO


def _validation_failed(e: ValidationError) -> ValidationFailed:
    first = e.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "additional_cost"
    return ValidationFailed(field, first["msg"])


class AdditionalCostLedger:
    """
    Approval ledger for supplementary costs on quotations and orders.

    Each cost is approved or rejected exactly once. Adding, editing and
    removing costs is refused once the parent itself is approved or rejected;
    approval decisions on pending costs are not.
    """

    def __init__(
        self,
        store: InMemoryStore,
        remote: Optional[MarketplaceClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the ledger.

        Args:
            store: Holds costs and their parents
            remote: When given, every write is mirrored and its answer adopted
            clock: Source of the current instant
        """
        self.store = store
        self.remote = remote
        self.clock = clock or datetime.now

    async def _mirror(self, operation: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        if self.remote is None:
            return None
        try:
            return await call()
        except MarketplaceError as e:
            raise RemoteCallFailed(operation, str(e)) from e

    def _parent_status(self, parent: ParentRef) -> str:
        if parent.kind == "quotation":
            return self.store.get_quotation(parent.id).status.value
        return self.store.get_order(parent.id).status.value

    def is_locked(self, parent: ParentRef) -> bool:
        return self._parent_status(parent) in LOCKED_STATUSES

    def _ensure_unlocked(self, parent: ParentRef) -> None:
        status = self._parent_status(parent)
        if status in LOCKED_STATUSES:
            raise ParentLocked(parent.kind, parent.id, status)

    async def add(
        self,
        parent: ParentRef,
        item_name: str,
        unit_price: Any,
        quantity: Any = 1,
        description: Optional[str] = None,
        notes: Optional[str] = None,
        added_by: str = "admin",
    ) -> AdditionalCost:
        """
        Create a pending cost on ``parent``.

        Raises:
            ParentLocked: If the parent is approved or rejected
            ValidationFailed: On a blank name or negative quantity/price
        """
        self._ensure_unlocked(parent)
        now = self.clock()
        try:
            cost = AdditionalCost.model_validate({
                f"{parent.kind}_id": parent.id,
                "item_name": (item_name or "").strip(),
                "description": description,
                "quantity": quantity,
                "unit_price": unit_price,
                "notes": notes,
                "added_by": added_by,
                "added_at": now,
                "updated_at": now,
            })
        except ValidationError as e:
            raise _validation_failed(e) from e

        remote_cost = await self._mirror("create_additional_cost", lambda: self.remote.create_additional_cost(cost))
        if remote_cost is not None:
            cost = remote_cost
        self.store.add_additional_cost(cost)
        logger.info(f"Cost '{cost.item_name}' added to {parent.kind} {parent.id}: {cost.total_amount}")
        return cost

    async def update(self, cost_id: str, **fields: Any) -> AdditionalCost:
        """
        Edit a cost's line fields; the total is re-derived.

        Allowed whatever the cost's own status, unless the parent is locked.
        """
        cost = self.store.get_additional_cost(cost_id)
        self._ensure_unlocked(cost.parent)

        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(sorted(unknown)[0], "field cannot be edited")
        changes = {k: v for k, v in fields.items() if v is not None}
        if "item_name" in changes:
            changes["item_name"] = str(changes["item_name"]).strip()
        if not changes:
            return cost

        try:
            updated = AdditionalCost.model_validate(
                {**cost.model_dump(), **changes, "updated_at": self.clock()}
            )
        except ValidationError as e:
            raise _validation_failed(e) from e

        remote_cost = await self._mirror("update_additional_cost", lambda: self.remote.update_additional_cost(updated))
        if remote_cost is not None:
            updated = remote_cost
        self.store.update_additional_cost(updated, previous_id=cost_id)
        return updated

    async def set_status(
        self, cost_id: str, status: Any, notes: Optional[str] = None
    ) -> AdditionalCost:
        """
        Approve or reject a pending cost.

        Raises:
            ValidationFailed: If ``status`` is not approved/rejected
            AlreadyResolved: If the cost was already approved or rejected
        """
        try:
            target = CostStatus(status)
        except ValueError as e:
            raise ValidationFailed("status", "status must be approved or rejected") from e
        if target == CostStatus.PENDING:
            raise ValidationFailed("status", "status must be approved or rejected")

        cost = self.store.get_additional_cost(cost_id)
        if cost.status != CostStatus.PENDING:
            raise AlreadyResolved(cost.id, cost.status.value)

        now = self.clock()
        updated = cost.model_copy(update={
            "status": target,
            "notes": notes if notes is not None else cost.notes,
            "updated_at": now,
            "approved_at": now if target == CostStatus.APPROVED else None,
        })

        remote_cost = await self._mirror(
            "set_additional_cost_status",
            lambda: self.remote.set_additional_cost_status(cost, target.value, notes),
        )
        if remote_cost is not None:
            updated = remote_cost
        self.store.update_additional_cost(updated, previous_id=cost_id)
        logger.info(f"Cost {cost_id} {target.value} ({updated.total_amount})")
        return updated

    async def remove(self, cost_id: str) -> None:
        cost = self.store.get_additional_cost(cost_id)
        self._ensure_unlocked(cost.parent)
        await self._mirror("delete_additional_cost", lambda: self.remote.delete_additional_cost(cost_id))
        self.store.delete_additional_cost(cost_id)

    def list(self, parent: ParentRef) -> List[AdditionalCost]:
        """Costs on ``parent``, oldest first. The parent must exist."""
        self._parent_status(parent)
        return self.store.costs_for_parent(parent)

    async def sync(self, parent: ParentRef) -> List[AdditionalCost]:
        """Replace the local copy of ``parent``'s costs with the remote list."""
        remote_costs = await self._mirror("list_additional_costs", lambda: self.remote.list_additional_costs(parent))
        if remote_costs is None:
            return self.list(parent)
        for stale in self.store.costs_for_parent(parent):
            self.store.delete_additional_cost(stale.id)
        for cost in remote_costs:
            self.store.add_additional_cost(cost)
        return self.store.costs_for_parent(parent)

    @staticmethod
    def _total(costs: List[AdditionalCost], status: CostStatus) -> Decimal:
        return sum((c.total_amount for c in costs if c.status == status), ZERO)

    def approved_total(self, parent: ParentRef) -> Decimal:
        """Sum of approved cost totals; pending and rejected costs add nothing."""
        return self._total(self.list(parent), CostStatus.APPROVED)

    def grand_total(self, quotation: Quotation) -> Decimal:
        """Quotation total plus its approved additional costs."""
        return quotation.total_amount + self.approved_total(ParentRef("quotation", quotation.id))

    def view(self, parent: ParentRef) -> LedgerView:
        costs = self.list(parent)
        return LedgerView(
            parent_kind=parent.kind,
            parent_id=parent.id,
            locked=self.is_locked(parent),
            costs=costs,
            approved_total=self._total(costs, CostStatus.APPROVED),
            pending_total=self._total(costs, CostStatus.PENDING),
            rejected_total=self._total(costs, CostStatus.REJECTED),
        )
