"""Tests for quotation persistence, remote mirroring and order decisions."""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from b2b_console.models import OrderStatus, ParentRef, QuotationStatus, Tier
from b2b_console.services.marketplace_client import MarketplaceError
from b2b_console.services.order_service import OrderService
from b2b_console.services.quotation_lifecycle import QuotationAction, QuotationLifecycle
from b2b_console.services.quotation_service import QuotationService
from b2b_console.services.selection_session import SelectionSession
from b2b_console.utils import InvalidTransition, RemoteCallFailed, ValidationFailed


pytestmark = pytest.mark.unit


class FlakyRemote:
    """Marketplace stand-in that echoes writes until told to refuse them."""

    def __init__(self):
        self.refuse = False
        self.calls = []

    async def _answer(self, name, result):
        self.calls.append(name)
        if self.refuse:
            raise MarketplaceError(f"{name} refused", 503)
        return result

    async def create_quotation(self, quotation):
        return await self._answer("create_quotation", quotation.model_copy(update={"id": f"remote-{quotation.id}"}))

    async def update_quotation(self, quotation):
        return await self._answer("update_quotation", quotation)

    async def send_quotation(self, quotation_id, send_via):
        return await self._answer("send_quotation", None)

    async def approve_quotation(self, quotation_id, notes=None):
        return await self._answer("approve_quotation", None)

    async def create_order(self, order):
        return await self._answer("create_order", order)


@pytest.fixture
def service(mock_store):
    return QuotationService(mock_store)


class TestQuotationService:
    """Lifecycle transitions written back to the store."""

    @pytest.mark.asyncio
    async def test_create_numbers_and_stores(self, service, mock_store, sample_items):
        first = await service.create(sample_items)
        second = await service.create(sample_items)

        stem = datetime.now().strftime("QUO-%Y%m-")
        assert first.quotation_number == f"{stem}0001"
        assert second.quotation_number == f"{stem}0002"
        assert mock_store.get_quotation(first.id) is first

    @pytest.mark.asyncio
    async def test_detail_includes_grand_total(self, service, sample_items):
        quotation = await service.create(sample_items)
        cost = await service.ledger.add(
            ParentRef("quotation", quotation.id), "Ladder hire", unit_price="300"
        )
        await service.ledger.set_status(cost.id, "approved")

        detail = service.detail(quotation.id)

        assert detail.effective_status == QuotationStatus.DRAFT
        assert detail.allowed_actions == [QuotationAction.EDIT, QuotationAction.SEND]
        assert detail.approved_additional_cost_total == Decimal("300")
        assert detail.grand_total == Decimal("949.00")

    @pytest.mark.asyncio
    async def test_failed_transition_leaves_store_unchanged(self, service, sample_items):
        quotation = await service.create(sample_items)

        with pytest.raises(InvalidTransition):
            await service.approve(quotation.id)

        assert service.get(quotation.id).status == QuotationStatus.DRAFT

    @pytest.mark.asyncio
    async def test_unchanged_edit_keeps_version(self, service, sample_items):
        quotation = await service.create(sample_items)

        edited = await service.edit(quotation.id, items=sample_items)

        assert edited.version == 1

    @pytest.mark.asyncio
    async def test_list_filters_by_effective_status(self, mock_store, sample_items):
        now = datetime(2024, 3, 1)
        service = QuotationService(mock_store, lifecycle=QuotationLifecycle(clock=lambda: now))
        fresh = await service.create(sample_items, validity_days=30)
        old = await service.create(
            [{"service": "Audit", "quantity": 1, "rate": "1000"}], validity_days=30
        )
        mock_store.update_quotation(old.model_copy(update={"created_at": now - timedelta(days=45)}))

        assert [q.id for q in service.list(status=QuotationStatus.EXPIRED)] == [old.id]
        assert [q.id for q in service.list(status=QuotationStatus.DRAFT)] == [fresh.id]
        by_total = service.list(sort_by="total_amount", descending=True, limit=1)
        assert [q.id for q in by_total] == [old.id]

    @pytest.mark.asyncio
    async def test_expire_persists_lapsed_quotation(self, mock_store, sample_items):
        clock = {"now": datetime(2024, 3, 1)}
        service = QuotationService(mock_store, lifecycle=QuotationLifecycle(clock=lambda: clock["now"]))
        quotation = await service.create(sample_items, validity_days=7)
        clock["now"] += timedelta(days=8)

        expired = await service.expire(quotation.id)

        assert expired.status == QuotationStatus.EXPIRED
        assert service.get(quotation.id).status == QuotationStatus.EXPIRED


class TestRemoteMirroring:
    """Remote refusals surface as RemoteCallFailed and change nothing locally."""

    @pytest.mark.asyncio
    async def test_remote_id_adopted(self, mock_store, sample_items):
        service = QuotationService(mock_store, remote=FlakyRemote())

        quotation = await service.create(sample_items)

        assert quotation.id.startswith("remote-")
        assert mock_store.get_quotation(quotation.id).quotation_number == quotation.quotation_number

    @pytest.mark.asyncio
    async def test_refused_send_leaves_store_unchanged(self, mock_store, sample_items):
        remote = FlakyRemote()
        service = QuotationService(mock_store, remote=remote)
        quotation = await service.create(sample_items)
        remote.refuse = True

        with pytest.raises(RemoteCallFailed) as exc_info:
            await service.send(quotation.id, "email")

        assert exc_info.value.operation == "send_quotation"
        assert exc_info.value.status_code == 502
        assert service.get(quotation.id).status == QuotationStatus.DRAFT
        assert remote.calls[-1] == "send_quotation"

    @pytest.mark.asyncio
    async def test_refused_create_stores_nothing(self, mock_store, sample_items):
        remote = FlakyRemote()
        remote.refuse = True
        service = QuotationService(mock_store, remote=remote)

        with pytest.raises(RemoteCallFailed):
            await service.create(sample_items)

        assert mock_store.quotations == {}

    @pytest.mark.asyncio
    async def test_local_validation_precedes_remote_call(self, mock_store, sample_items):
        remote = FlakyRemote()
        service = QuotationService(mock_store, remote=remote)

        with pytest.raises(ValidationFailed):
            await service.create([])

        assert remote.calls == []


async def ready_session(catalog, pricing):
    session = SelectionSession(catalog, pricing, customer_id="CUST1")
    await session.start()
    for tier, value in (
        (Tier.CATEGORY, "C1"),
        (Tier.SUBCATEGORY, "S1"),
        (Tier.PROVIDER, "P1"),
        (Tier.SERVICE_ADDRESS, "A1"),
    ):
        await session.set_tier(tier, value)
    await session.wait_for_price()
    return session


class TestOrderService:
    """Orders are committed from sessions and decided once."""

    @pytest.mark.asyncio
    async def test_create_and_approve(self, mock_store, catalog, pricing):
        orders = OrderService(mock_store)
        session = await ready_session(catalog, pricing)

        order = await orders.create_from_session(session, customer_name="Acme")

        assert order.order_number == datetime.now().strftime("ORD-%Y%m-0001")
        assert order.final_amount == Decimal("590.00")
        assert order.status == OrderStatus.PENDING

        approved = orders.approve(order.id, note="confirmed by phone")
        assert approved.status == OrderStatus.APPROVED
        assert approved.approved_at is not None
        with pytest.raises(InvalidTransition):
            orders.reject(order.id, "too late")

    @pytest.mark.asyncio
    async def test_refused_order_not_stored(self, mock_store, catalog, pricing):
        remote = FlakyRemote()
        remote.refuse = True
        orders = OrderService(mock_store, remote=remote)
        session = await ready_session(catalog, pricing)

        with pytest.raises(RemoteCallFailed):
            await orders.create_from_session(session)

        assert orders.list() == []

    @pytest.mark.asyncio
    async def test_invalid_session_makes_no_remote_call(self, mock_store, catalog, pricing):
        remote = FlakyRemote()
        orders = OrderService(mock_store, remote=remote)
        session = SelectionSession(catalog, pricing)

        with pytest.raises(ValidationFailed):
            await orders.create_from_session(session)

        assert remote.calls == []
