"""In-memory store for quotations, orders, additional costs, and selection sessions."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional
from cachetools import TTLCache

from .models import AdditionalCost, Order, ParentRef, Quotation
from .utils import ErrorCode, raise_error

if TYPE_CHECKING:
    from .services.selection_session import SelectionSession


logger = logging.getLogger(__name__)

QUOTATION_NUMBER_PREFIX = "QUO"
ORDER_NUMBER_PREFIX = "ORD"


class SessionCache(TTLCache):
    """TTLCache that closes every selection session it evicts, by age or by capacity."""

    def popitem(self):
        key, session = super().popitem()
        session.close()
        logger.info(f"Selection session evicted at capacity: {key}")
        return key, session

    def expire(self, time=None):
        expired = super().expire(time)
        for _, session in expired:
            session.close()
        return expired


class InMemoryStore:
    """In-memory storage for all application data."""

    def __init__(self, cache_ttl: int = 3600, max_sessions: int = 500):
        """
        Initialize InMemoryStore.

        Args:
            cache_ttl: Idle lifetime of a selection session in seconds
            max_sessions: Upper bound on concurrently open sessions
        """
        self.quotations: Dict[str, Quotation] = {}
        self.orders: Dict[str, Order] = {}
        self.additional_costs: Dict[str, AdditionalCost] = {}

        # Selection sessions expire when left idle
        self.sessions = SessionCache(maxsize=max_sessions, ttl=cache_ttl)

        logger.info("InMemoryStore initialized")

    # ===== Quotation Management =====

    def add_quotation(self, quotation: Quotation) -> None:
        self.quotations[quotation.id] = quotation
        logger.info(f"Quotation added: {quotation.id} ({quotation.quotation_number})")

    def get_quotation(self, quotation_id: str) -> Quotation:
        """
        Get a quotation by ID.

        Raises:
            APIError: If quotation not found
        """
        if quotation_id not in self.quotations:
            raise_error(ErrorCode.QUOTATION_NOT_FOUND, status_code=404, details={"id": quotation_id})
        return self.quotations[quotation_id]

    def list_quotations(self) -> List[Quotation]:
        return list(self.quotations.values())

    def update_quotation(self, quotation: Quotation, previous_id: Optional[str] = None) -> None:
        """
        Replace a stored quotation.

        Args:
            quotation: Updated Quotation
            previous_id: Key it was stored under, when the remote side reassigned the id
        """
        key = previous_id or quotation.id
        if key not in self.quotations:
            raise_error(ErrorCode.QUOTATION_NOT_FOUND, status_code=404, details={"id": key})
        if key != quotation.id:
            del self.quotations[key]
        self.quotations[quotation.id] = quotation
        logger.info(f"Quotation updated: {quotation.id} ({quotation.status.value}, v{quotation.version})")

    # ===== Order Management =====

    def add_order(self, order: Order) -> None:
        self.orders[order.id] = order
        logger.info(f"Order added: {order.id} ({order.order_number})")

    def get_order(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            APIError: If order not found
        """
        if order_id not in self.orders:
            raise_error(ErrorCode.ORDER_NOT_FOUND, status_code=404, details={"id": order_id})
        return self.orders[order_id]

    def list_orders(self) -> List[Order]:
        return list(self.orders.values())

    def update_order(self, order: Order) -> None:
        if order.id not in self.orders:
            raise_error(ErrorCode.ORDER_NOT_FOUND, status_code=404, details={"id": order.id})
        self.orders[order.id] = order
        logger.info(f"Order updated: {order.id} ({order.status.value})")

    # ===== Additional Cost Management =====

    def add_additional_cost(self, cost: AdditionalCost) -> None:
        self.additional_costs[cost.id] = cost
        logger.info(f"Additional cost added: {cost.id} on {cost.parent.kind} {cost.parent.id}")

    def get_additional_cost(self, cost_id: str) -> AdditionalCost:
        """
        Get an additional cost by ID.

        Raises:
            APIError: If the cost is not found
        """
        if cost_id not in self.additional_costs:
            raise_error(ErrorCode.ADDITIONAL_COST_NOT_FOUND, status_code=404, details={"id": cost_id})
        return self.additional_costs[cost_id]

    def update_additional_cost(self, cost: AdditionalCost, previous_id: Optional[str] = None) -> None:
        key = previous_id or cost.id
        if key not in self.additional_costs:
            raise_error(ErrorCode.ADDITIONAL_COST_NOT_FOUND, status_code=404, details={"id": key})
        if key != cost.id:
            del self.additional_costs[key]
        self.additional_costs[cost.id] = cost
        logger.info(f"Additional cost updated: {cost.id} ({cost.status.value})")

    def delete_additional_cost(self, cost_id: str) -> None:
        if cost_id not in self.additional_costs:
            raise_error(ErrorCode.ADDITIONAL_COST_NOT_FOUND, status_code=404, details={"id": cost_id})
        del self.additional_costs[cost_id]
        logger.info(f"Additional cost deleted: {cost_id}")

    def costs_for_parent(self, parent: ParentRef) -> List[AdditionalCost]:
        """
        All additional costs attached to a quotation or order, oldest first.

        Args:
            parent: Owning quotation or order

        Returns:
            List of AdditionalCost objects
        """
        costs = [cost for cost in self.additional_costs.values() if cost.parent == parent]
        costs.sort(key=lambda c: c.added_at)
        return costs

    # ===== Selection Sessions =====

    def add_session(self, session: "SelectionSession") -> None:
        self.sessions[session.id] = session
        logger.info(f"Selection session opened: {session.id}")

    def get_session(self, session_id: str) -> "SelectionSession":
        """
        Get a live selection session; reading it restarts its idle timer.

        Raises:
            APIError: If the session is unknown or has expired
        """
        session = self.sessions.get(session_id)
        if session is None:
            raise_error(ErrorCode.SESSION_NOT_FOUND, status_code=404, details={"id": session_id})
        self.sessions[session_id] = session
        return session

    def delete_session(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        if session is None:
            raise_error(ErrorCode.SESSION_NOT_FOUND, status_code=404, details={"id": session_id})
        session.close()
        logger.info(f"Selection session closed: {session_id}")

    def purge_expired_sessions(self, now: Optional[float] = None) -> int:
        """
        Evict idle sessions and cancel their pending price computations.

        Args:
            now: Monotonic timestamp to expire against (defaults to the cache timer)

        Returns:
            Number of sessions evicted
        """
        expired = self.sessions.expire(now)
        if expired:
            logger.info(f"Purged {len(expired)} idle selection sessions")
        return len(expired)

    # ===== Numbering =====

    @staticmethod
    def _next_number(prefix: str, existing: Iterable[Optional[str]], now: datetime) -> str:
        date_part = now.strftime("%Y%m")
        stem = f"{prefix}-{date_part}-"
        last = max(
            (int(number[len(stem):]) for number in existing
             if number and number.startswith(stem) and number[len(stem):].isdigit()),
            default=0,
        )
        return f"{stem}{last + 1:04d}"

    def next_quotation_number(self, now: Optional[datetime] = None) -> str:
        return self._next_number(
            QUOTATION_NUMBER_PREFIX,
            (q.quotation_number for q in self.quotations.values()),
            now or datetime.now(),
        )

    def next_order_number(self, now: Optional[datetime] = None) -> str:
        return self._next_number(
            ORDER_NUMBER_PREFIX,
            (o.order_number for o in self.orders.values()),
            now or datetime.now(),
        )

    # ===== Utility Methods =====

    def get_stats(self) -> Dict[str, int]:
        """
        Get store statistics.

        Returns:
            Dictionary with counts of stored items
        """
        return {
            "quotations": len(self.quotations),
            "orders": len(self.orders),
            "additional_costs": len(self.additional_costs),
            "sessions": len(self.sessions),
        }


# Global store instance (singleton pattern)
_store: Optional[InMemoryStore] = None


def get_store(cache_ttl: int = 3600, max_sessions: int = 500) -> InMemoryStore:
    """
    Get or create global store instance.

    Args:
        cache_ttl: Session time-to-live in seconds
        max_sessions: Session cache capacity

    Returns:
        InMemoryStore instance
    """
    global _store
    if _store is None:
        _store = InMemoryStore(cache_ttl=cache_ttl, max_sessions=max_sessions)
    return _store
