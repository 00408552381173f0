"""Quotation lifecycle state machine.

Every operation takes a Quotation and returns an updated copy. The input is
never mutated, so a rejected transition leaves the caller's quotation intact.
Legality is always judged against the effective status, which makes a
quotation past its validity window behave as expired everywhere.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..config import settings
from ..models import Quotation, QuotationItem, QuotationStatus, TERMINAL_STATUSES
from ..utils import InvalidTransition, ValidationFailed

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

SEND_CHANNELS = ("whatsapp", "email", "both")


class QuotationAction(str, Enum):
    """Operator actions on a quotation."""

    EDIT = "edit"
    SEND = "send"
    NEGOTIATE = "negotiate"
    APPROVE = "approve"
    REJECT = "reject"


# action -> (statuses it may start from, status it leads to)
TRANSITIONS: Dict[QuotationAction, Tuple[FrozenSet[QuotationStatus], QuotationStatus]] = {
    QuotationAction.EDIT: (frozenset({QuotationStatus.DRAFT}), QuotationStatus.DRAFT),
    QuotationAction.SEND: (
        frozenset({QuotationStatus.DRAFT, QuotationStatus.NEGOTIATING}),
        QuotationStatus.SENT,
    ),
    QuotationAction.NEGOTIATE: (frozenset({QuotationStatus.SENT}), QuotationStatus.NEGOTIATING),
    QuotationAction.APPROVE: (
        frozenset({QuotationStatus.SENT, QuotationStatus.NEGOTIATING}),
        QuotationStatus.APPROVED,
    ),
    QuotationAction.REJECT: (
        frozenset({QuotationStatus.SENT, QuotationStatus.NEGOTIATING}),
        QuotationStatus.REJECTED,
    ),
}

EDITABLE_FIELDS = ("validity_days", "terms_and_conditions", "sp_notes", "admin_notes", "b2b_booking_id")


def validate_items(items: Iterable[Any]) -> List[QuotationItem]:
    """
    Normalize and check quotation items.

    Args:
        items: QuotationItem instances or plain dicts

    Returns:
        Validated QuotationItem list

    Raises:
        ValidationFailed: Empty list, blank service name, rate not above
            zero, or quantity below one
    """
    validated = []
    for index, raw in enumerate(items or []):
        field = f"items[{index}]"
        try:
            item = raw if isinstance(raw, QuotationItem) else QuotationItem.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(part) for part in first["loc"])
            raise ValidationFailed(f"{field}.{loc}" if loc else field, first["msg"]) from e

        if not item.service or not item.service.strip():
            raise ValidationFailed(f"{field}.service", "service name is required")
        if item.rate <= 0:
            raise ValidationFailed(f"{field}.rate", "rate must be greater than zero")
        if item.quantity < 1:
            raise ValidationFailed(f"{field}.quantity", "quantity must be at least 1")
        validated.append(item)

    if not validated:
        raise ValidationFailed("items", "at least one item is required")
    return validated


def _validity(days: Any) -> int:
    try:
        value = int(days)
    except (TypeError, ValueError) as e:
        raise ValidationFailed("validity_days", f"'{days}' is not a whole number of days") from e
    if value < 1:
        raise ValidationFailed("validity_days", "validity must be at least 1 day")
    return value


class QuotationLifecycle:
    """Finite state machine over the Quotation aggregate."""

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize the lifecycle.

        Args:
            clock: Source of the current instant (tests inject a fixed one)
        """
        self.clock = clock or datetime.now

    def _check(self, quotation: Quotation, action: QuotationAction) -> Tuple[QuotationStatus, datetime]:
        allowed, target = TRANSITIONS[action]
        now = self.clock()
        current = quotation.effective_status(now)
        if current not in allowed:
            raise InvalidTransition(current.value, target.value)
        return target, now

    def _apply(self, quotation: Quotation, target: QuotationStatus, now: datetime, **changes: Any) -> Quotation:
        updated = quotation.model_copy(update={"status": target, "updated_at": now, **changes})
        if target != quotation.status:
            logger.info(
                f"Quotation {quotation.quotation_number or quotation.id}: "
                f"{quotation.status.value} -> {target.value}"
            )
        return updated

    def create(
        self,
        items: Iterable[Any],
        validity_days: Optional[int] = None,
        terms_and_conditions: Optional[str] = None,
        sp_notes: Optional[str] = None,
        admin_notes: Optional[str] = None,
        b2b_booking_id: Optional[str] = None,
        quotation_number: Optional[str] = None,
    ) -> Quotation:
        """Produce a draft quotation at version 1."""
        now = self.clock()
        quotation = Quotation(
            quotation_number=quotation_number,
            b2b_booking_id=b2b_booking_id,
            items=validate_items(items),
            status=QuotationStatus.DRAFT,
            version=1,
            validity_days=_validity(
                validity_days if validity_days is not None else settings.default_validity_days
            ),
            terms_and_conditions=(
                terms_and_conditions if terms_and_conditions is not None else settings.default_terms
            ),
            sp_notes=sp_notes,
            admin_notes=admin_notes,
            created_at=now,
            updated_at=now,
        )
        logger.info(
            f"Quotation drafted with {len(quotation.items)} items, total {quotation.total_amount}"
        )
        return quotation

    def edit(
        self, quotation: Quotation, items: Optional[Iterable[Any]] = None, **fields: Any
    ) -> Quotation:
        """
        Change a draft; bumps ``version`` when anything actually changed.

        Raises:
            InvalidTransition: If the quotation is not (effectively) a draft
            ValidationFailed: On invalid items, validity or unknown fields
        """
        target, now = self._check(quotation, QuotationAction.EDIT)

        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(sorted(unknown)[0], "field cannot be edited")

        changes: Dict[str, Any] = {}
        if items is not None:
            new_items = validate_items(items)
            if [i.model_dump() for i in new_items] != [i.model_dump() for i in quotation.items]:
                changes["items"] = new_items
        for name, value in fields.items():
            if name == "validity_days" and value is not None:
                value = _validity(value)
            if value is not None and value != getattr(quotation, name):
                changes[name] = value

        if not changes:
            return quotation

        updated = self._apply(quotation, target, now, version=quotation.version + 1, **changes)
        logger.info(f"Quotation {quotation.id} edited to version {updated.version}: {sorted(changes)}")
        return updated

    def send(self, quotation: Quotation, channel: str = "both") -> Quotation:
        """Dispatch to the customer from draft or negotiating."""
        target, now = self._check(quotation, QuotationAction.SEND)
        if channel not in SEND_CHANNELS:
            raise ValidationFailed("send_via", f"channel must be one of {', '.join(SEND_CHANNELS)}")
        return self._apply(quotation, target, now, sent_at=now, sent_via=channel)

    def negotiate(self, quotation: Quotation, note: Optional[str] = None) -> Quotation:
        """Open negotiation on a sent quotation."""
        target, now = self._check(quotation, QuotationAction.NEGOTIATE)
        return self._apply(quotation, target, now, status_note=note)

    def approve(self, quotation: Quotation, note: Optional[str] = None) -> Quotation:
        target, now = self._check(quotation, QuotationAction.APPROVE)
        return self._apply(quotation, target, now, approved_at=now, status_note=note)

    def reject(self, quotation: Quotation, reason: str, note: Optional[str] = None) -> Quotation:
        """
        Reject a sent or negotiating quotation.

        Raises:
            InvalidTransition: From any other status
            ValidationFailed: If ``reason`` is blank
        """
        target, now = self._check(quotation, QuotationAction.REJECT)
        if not reason or not reason.strip():
            raise ValidationFailed("rejection_reason", "a rejection reason is required")
        return self._apply(
            quotation, target, now, rejected_at=now, rejection_reason=reason.strip(), status_note=note
        )

    def expire(self, quotation: Quotation) -> Quotation:
        """
        Persist expiry for a quotation whose validity window has elapsed.

        Reads never need this; it only makes the stored status agree with
        the effective one.
        """
        now = self.clock()
        if quotation.status in TERMINAL_STATUSES or not quotation.is_past_validity(now):
            raise InvalidTransition(quotation.effective_status(now).value, QuotationStatus.EXPIRED.value)
        return self._apply(quotation, QuotationStatus.EXPIRED, now)

    def allowed_actions(self, quotation: Quotation) -> List[QuotationAction]:
        """Legal next actions given the effective status."""
        current = quotation.effective_status(self.clock())
        return [action for action, (allowed, _) in TRANSITIONS.items() if current in allowed]
