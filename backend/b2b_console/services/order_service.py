"""Order service: commit priced selections and decide on them."""

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from ..models import Order, OrderStatus
from ..store import InMemoryStore
from ..utils import InvalidTransition, RemoteCallFailed
from .marketplace_client import MarketplaceClient, MarketplaceError
from .selection_session import SelectionSession

logger = logging.getLogger(__name__)


class OrderService:
    """Creates orders from selection sessions and moves them out of pending."""

    def __init__(
        self,
        store: InMemoryStore,
        remote: Optional[MarketplaceClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.remote = remote
        self.clock = clock or datetime.now

    async def create_from_session(self, session: SelectionSession, **details: Any) -> Order:
        """
        Validate the session, build the order and store it as pending.

        Validation runs before any remote call is made.

        Raises:
            ValidationFailed: If the session cannot be committed
            RemoteCallFailed: If the backend refused the order
        """
        order = session.build_order(**details)
        order = order.model_copy(update={
            "order_number": self.store.next_order_number(self.clock()),
            "created_at": self.clock(),
        })
        if self.remote is not None:
            try:
                order = await self.remote.create_order(order)
            except MarketplaceError as e:
                raise RemoteCallFailed("create_order", str(e)) from e
        self.store.add_order(order)
        return order

    def get(self, order_id: str) -> Order:
        return self.store.get_order(order_id)

    def list(self, status: Optional[OrderStatus] = None) -> List[Order]:
        orders = sorted(self.store.list_orders(), key=lambda o: o.created_at, reverse=True)
        if status is not None:
            orders = [o for o in orders if o.status == status]
        return orders

    def _decide(self, order_id: str, target: OrderStatus, **changes: Any) -> Order:
        order = self.get(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransition(order.status.value, target.value, entity="order")
        updated = order.model_copy(update={"status": target, **changes})
        self.store.update_order(updated)
        logger.info(f"Order {order.order_number or order.id}: pending -> {target.value}")
        return updated

    def approve(self, order_id: str, note: Optional[str] = None) -> Order:
        return self._decide(
            order_id, OrderStatus.APPROVED, approved_at=self.clock(),
            **({"notes": note} if note else {}),
        )

    def reject(self, order_id: str, reason: Optional[str] = None) -> Order:
        return self._decide(
            order_id, OrderStatus.REJECTED, rejected_at=self.clock(),
            **({"notes": reason} if reason else {}),
        )
