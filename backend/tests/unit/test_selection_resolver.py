"""Tests for the selection resolver's cascade and option loading."""

import asyncio
import pytest

from b2b_console.models import Tier
from b2b_console.services.selection_resolver import OptionLoadStatus, SelectionResolver
from b2b_console.utils import CatalogFetchFailed, ValidationFailed

from fakes import option, settle


pytestmark = pytest.mark.unit


def ids(options):
    return [o.id for o in options]


async def resolver_at(catalog, *choices):
    """Resolver with categories loaded and the given (tier, value) pairs applied."""
    resolver = SelectionResolver(catalog)
    await resolver.load_options_for(Tier.CATEGORY)
    for tier, value in choices:
        await resolver.set_tier(tier, value)
    return resolver


class TestOptionLoading:
    """Each tier's options are fetched once its required inputs hold values."""

    @pytest.mark.asyncio
    async def test_category_loads_subcategories_only(self, catalog):
        resolver = await resolver_at(catalog, (Tier.CATEGORY, "C1"))

        assert [tier for tier, _ in catalog.calls] == ["category", "subcategory"]
        assert ids(resolver.options[Tier.SUBCATEGORY]) == ["S1", "S2"]
        assert resolver.load_status[Tier.PROVIDER] == OptionLoadStatus.IDLE

    @pytest.mark.asyncio
    async def test_subcategory_loads_filters_segments_and_providers(self, catalog):
        resolver = await resolver_at(catalog, (Tier.CATEGORY, "C1"), (Tier.SUBCATEGORY, "S1"))

        loaded = {tier for tier, _ in catalog.calls[2:]}
        assert loaded == {"filter_attribute", "segment", "provider"}
        assert ids(resolver.options[Tier.FILTER_ATTRIBUTE]) == ["FA1"]
        assert ids(resolver.options[Tier.SEGMENT]) == ["SEG1"]
        assert ids(resolver.options[Tier.PROVIDER]) == ["P1", "P2"]

    @pytest.mark.asyncio
    async def test_empty_provider_list_is_loaded(self, catalog):
        resolver = await resolver_at(catalog, (Tier.CATEGORY, "C1"), (Tier.SUBCATEGORY, "S2"))

        assert resolver.load_status[Tier.PROVIDER] == OptionLoadStatus.LOADED
        assert resolver.options[Tier.PROVIDER] == []

    @pytest.mark.asyncio
    async def test_filter_option_narrows_providers(self, catalog):
        resolver = await resolver_at(
            catalog,
            (Tier.CATEGORY, "C1"),
            (Tier.SUBCATEGORY, "S1"),
            (Tier.FILTER_ATTRIBUTE, "FA1"),
            (Tier.FILTER_OPTION, "FO1"),
        )

        assert ids(resolver.options[Tier.PROVIDER]) == ["P1"]
        assert catalog.calls[-1] == ("provider", ("C1", "S1", "FA1", "FO1"))

    @pytest.mark.asyncio
    async def test_reload_clears_choice_no_longer_offered(self, catalog):
        resolver = await resolver_at(
            catalog, (Tier.CATEGORY, "C1"), (Tier.SUBCATEGORY, "S1"), (Tier.PROVIDER, "P2")
        )
        catalog.providers[("C1", "S1")] = catalog.providers[("C1", "S1")][:1]

        await resolver.load_options_for(Tier.PROVIDER)

        assert resolver.state.provider_id is None
        assert ids(resolver.options[Tier.PROVIDER]) == ["P1"]


class TestCascade:
    """Upstream changes clear choices and option lists below them."""

    @pytest.mark.asyncio
    async def test_category_change_resets_downstream(self, catalog):
        resolver = await resolver_at(
            catalog,
            (Tier.CATEGORY, "C1"),
            (Tier.SUBCATEGORY, "S1"),
            (Tier.FILTER_ATTRIBUTE, "FA1"),
            (Tier.PROVIDER, "P1"),
        )
        assert resolver.load_status[Tier.FILTER_OPTION] == OptionLoadStatus.LOADED

        await resolver.set_tier(Tier.CATEGORY, "C2")

        state = resolver.state
        assert state.category_id == "C2"
        assert state.subcategory_id is None
        assert state.filter_attribute_id is None
        assert state.provider_id is None
        assert ids(resolver.options[Tier.SUBCATEGORY]) == ["S3"]
        for tier in (Tier.FILTER_ATTRIBUTE, Tier.FILTER_OPTION, Tier.SEGMENT, Tier.PROVIDER):
            assert resolver.options[tier] == []
            assert resolver.load_status[tier] == OptionLoadStatus.IDLE

    @pytest.mark.asyncio
    async def test_same_value_is_a_no_op(self, catalog):
        resolver = await resolver_at(catalog, (Tier.CATEGORY, "C1"))
        calls = len(catalog.calls)

        assert await resolver.set_tier(Tier.CATEGORY, "C1") == []
        assert len(catalog.calls) == calls

    @pytest.mark.asyncio
    async def test_unknown_value_rejected(self, catalog):
        resolver = await resolver_at(catalog)

        with pytest.raises(ValidationFailed) as exc_info:
            await resolver.set_tier(Tier.CATEGORY, "C9")

        assert exc_info.value.field == "category_id"
        assert resolver.state.category_id is None

    @pytest.mark.asyncio
    async def test_missing_upstream_rejected(self, catalog):
        resolver = SelectionResolver(catalog)

        with pytest.raises(ValidationFailed) as exc_info:
            await resolver.set_tier(Tier.PROVIDER, "P1")

        assert exc_info.value.field == "provider_id"
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_listeners_see_each_change(self, catalog):
        resolver = await resolver_at(catalog)
        seen = []
        resolver.subscribe(lambda previous, current: seen.append((previous.category_id, current.category_id)))

        await resolver.set_tier(Tier.CATEGORY, "C1")
        await resolver.set_tier(Tier.CATEGORY, "C2")

        assert seen == [(None, "C1"), ("C1", "C2")]


class TestCatalogFailures:
    """A failed option load empties the tier and is reported, not raised."""

    @pytest.mark.asyncio
    async def test_failure_marks_tier_failed(self, catalog):
        resolver = await resolver_at(catalog)
        catalog.fail.add("subcategory")

        failures = await resolver.set_tier(Tier.CATEGORY, "C1")

        assert len(failures) == 1
        assert isinstance(failures[0], CatalogFetchFailed)
        assert failures[0].tier == "subcategory"
        assert resolver.load_status[Tier.SUBCATEGORY] == OptionLoadStatus.FAILED
        assert resolver.options[Tier.SUBCATEGORY] == []
        assert Tier.SUBCATEGORY in resolver.failures

    @pytest.mark.asyncio
    async def test_retry_after_failure_recovers(self, catalog):
        resolver = await resolver_at(catalog)
        catalog.fail.add("subcategory")
        await resolver.set_tier(Tier.CATEGORY, "C1")
        catalog.fail.clear()

        await resolver.load_options_for(Tier.SUBCATEGORY)

        assert resolver.load_status[Tier.SUBCATEGORY] == OptionLoadStatus.LOADED
        assert Tier.SUBCATEGORY not in resolver.failures

    @pytest.mark.asyncio
    async def test_failure_clears_current_choice(self, catalog):
        resolver = await resolver_at(
            catalog, (Tier.CATEGORY, "C1"), (Tier.SUBCATEGORY, "S1"), (Tier.PROVIDER, "P1")
        )
        catalog.fail.add("provider")

        with pytest.raises(CatalogFetchFailed):
            await resolver.load_options_for(Tier.PROVIDER)

        assert resolver.state.provider_id is None
        assert resolver.state.subcategory_id == "S1"


class TestStaleOptions:
    """Option answers for abandoned inputs never overwrite current ones."""

    @pytest.mark.asyncio
    async def test_late_subcategory_answer_is_discarded(self, catalog):
        resolver = await resolver_at(catalog)
        gate = catalog.gate("subcategory")

        slow = asyncio.create_task(resolver.set_tier(Tier.CATEGORY, "C1"))
        await settle()
        assert resolver.load_status[Tier.SUBCATEGORY] == OptionLoadStatus.LOADING

        await resolver.set_tier(Tier.CATEGORY, "C2")
        gate.set()
        await slow

        assert resolver.state.category_id == "C2"
        assert ids(resolver.options[Tier.SUBCATEGORY]) == ["S3"]
        assert resolver.load_status[Tier.SUBCATEGORY] == OptionLoadStatus.LOADED

    @pytest.mark.asyncio
    async def test_late_failure_for_old_inputs_is_ignored(self, catalog):
        resolver = await resolver_at(catalog)
        gate = catalog.gate("subcategory")
        catalog.fail.add("subcategory")

        slow = asyncio.create_task(resolver.set_tier(Tier.CATEGORY, "C1"))
        await settle()
        catalog.fail.clear()
        await resolver.set_tier(Tier.CATEGORY, "C2")
        catalog.fail.add("subcategory")
        gate.set()

        assert await slow == []
        assert resolver.load_status[Tier.SUBCATEGORY] == OptionLoadStatus.LOADED
        assert Tier.SUBCATEGORY not in resolver.failures


class TestServiceAddresses:
    """Addresses come from the customer context, not the cascade."""

    @pytest.mark.asyncio
    async def test_customer_loads_addresses(self, catalog):
        resolver = SelectionResolver(catalog)

        await resolver.set_customer("CUST1")

        assert ids(resolver.options[Tier.SERVICE_ADDRESS]) == ["A1", "A2"]
        assert catalog.calls == [("service_address", "CUST1")]

    @pytest.mark.asyncio
    async def test_changing_customer_clears_address(self, catalog):
        resolver = SelectionResolver(catalog, customer_id="CUST1")
        await resolver.load_options_for(Tier.CATEGORY)
        await resolver.load_options_for(Tier.SERVICE_ADDRESS)
        for tier, value in ((Tier.CATEGORY, "C1"), (Tier.SUBCATEGORY, "S1"), (Tier.PROVIDER, "P1")):
            await resolver.set_tier(tier, value)
        await resolver.set_tier(Tier.SERVICE_ADDRESS, "A2")

        catalog.addresses["CUST2"] = [option("B1")]
        await resolver.set_customer("CUST2")

        assert resolver.state.service_address_id is None
        assert resolver.state.provider_id == "P1"
        assert ids(resolver.options[Tier.SERVICE_ADDRESS]) == ["B1"]

    @pytest.mark.asyncio
    async def test_no_customer_means_no_addresses(self, catalog):
        resolver = SelectionResolver(catalog, customer_id="CUST1")
        await resolver.load_options_for(Tier.SERVICE_ADDRESS)

        await resolver.set_customer(None)

        assert resolver.options[Tier.SERVICE_ADDRESS] == []
        assert resolver.load_status[Tier.SERVICE_ADDRESS] == OptionLoadStatus.IDLE
