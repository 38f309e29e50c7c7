"""Tiered retrieval: gating, rate limits, failures and result normalization."""

import pytest
from conftest import (
    PHONE_RESULTS,
    PRIMARY_SOURCES,
    SECONDARY_SOURCES,
    TERTIARY_SOURCES,
    FakeProvider,
    make_context,
    raw,
)

from shopsearch.entities import Availability, CategoryClassification, Intent, Tier
from shopsearch.errors import ProviderError, ProviderErrorKind
from shopsearch.query_understanding import QueryUnderstanding
from shopsearch.retriever import SourceRetriever, build_source_query, normalize_result, price_text
from shopsearch.sources import SourceSpec

QUERY = QueryUnderstanding().normalize("samsung galaxy s25")
PHONES = CategoryClassification("mobile_phones", 0.95)
ALL_SOURCES = PRIMARY_SOURCES + SECONDARY_SOURCES + TERTIARY_SOURCES


class SiteBlindProvider(FakeProvider):
    """Finds nothing for site-restricted queries, everything otherwise."""

    async def search(self, query, options):
        self.calls.append(query)
        if "site:" in query:
            return []
        return self.results[: options.max_results]


@pytest.mark.asyncio
async def test_all_tiers_run_below_thresholds(context, feed_provider, web_provider):
    """Four primary candidates stay below both thresholds, so every tier runs."""

    result = await SourceRetriever(context).retrieve_with_report(QUERY, PHONES)

    assert len(result.candidates) == 6
    assert result.report.strategies_run == ["tier:primary", "tier:secondary", "tier:tertiary"]
    assert len(feed_provider.calls) == 1
    assert len(web_provider.calls) == 3


@pytest.mark.asyncio
async def test_lower_tiers_skipped_once_threshold_met(feed_provider, web_provider):
    context = make_context([feed_provider, web_provider], ALL_SOURCES, min_results=2, target_results=3)

    result = await SourceRetriever(context).retrieve_with_report(QUERY, PHONES)

    assert result.report.strategies_run == ["tier:primary"]
    assert len(result.candidates) == 4
    assert len(web_provider.calls) == 1


@pytest.mark.asyncio
async def test_results_follow_source_priority(context):
    """Live success rates reorder dispatch but never the returned candidates."""

    context.stats.success_rates["flipkart"] = 0.99
    context.stats.success_rates["shopping_feed"] = 0.2
    retriever = SourceRetriever(context)

    assert [source.name for source in retriever.dispatch_order(Tier.PRIMARY)] == ["flipkart", "shopping_feed"]

    candidates = await retriever.retrieve(QUERY, PHONES)

    assert [c.source_name for c in candidates[:4]] == ["shopping_feed"] * 3 + ["flipkart"]
    assert [c.tier for c in candidates[4:]] == [Tier.SECONDARY, Tier.TERTIARY]


@pytest.mark.asyncio
async def test_rate_limited_source_is_skipped_not_awaited(feed_provider, web_provider):
    context = make_context([feed_provider, web_provider], PRIMARY_SOURCES, rate_limit_interval_seconds=60.0)
    retriever = SourceRetriever(context)

    await retriever.retrieve(QUERY, PHONES)
    second = await retriever.retrieve_with_report(QUERY, PHONES)

    assert second.report.skipped["shopping_feed"] == "rate limited"
    assert second.report.skipped["flipkart"] == "rate limited"
    assert len(feed_provider.calls) == 2  # first request plus the unrestricted retry

    context.clock.advance(61)
    third = await retriever.retrieve_with_report(QUERY, PHONES)

    assert "shopping_feed" in third.report.succeeded


@pytest.mark.asyncio
async def test_quota_exhausted_provider_is_not_retried():
    feed = FakeProvider("feed", error=ProviderError(ProviderErrorKind.RATE_LIMITED, "feed", "429"))
    web = FakeProvider("web")
    tertiary_feed = SourceSpec("feed_compare", Tier.TERTIARY, "feed", ("smartprix.com",), 20)
    context = make_context([feed, web], PRIMARY_SOURCES + [tertiary_feed])

    result = await SourceRetriever(context).retrieve_with_report(QUERY, PHONES)

    assert result.candidates == []
    assert len(feed.calls) == 1
    assert result.report.failed["shopping_feed"] == "rate_limited"
    assert result.report.skipped["feed_compare"] == "provider exhausted"
    assert result.report.exhausted_providers == {"feed"}
    assert len(web.calls) == 2


@pytest.mark.asyncio
async def test_unrestricted_query_is_last_resort():
    feed = FakeProvider("feed", error=ProviderError(ProviderErrorKind.UNKNOWN, "feed", "502"))
    web = SiteBlindProvider("web", PHONE_RESULTS)
    context = make_context([feed, web], PRIMARY_SOURCES)

    result = await SourceRetriever(context).retrieve_with_report(QUERY, PHONES)

    assert result.report.strategies_run[-1] == "unrestricted"
    assert len(result.candidates) == 3
    assert {c.tier for c in result.candidates} == {Tier.FALLBACK}
    assert {c.source_name for c in result.candidates} == {"unrestricted:web"}
    assert web.calls[-1] == QUERY.normalized


@pytest.mark.asyncio
async def test_slow_provider_times_out_without_blocking_siblings(web_provider):
    slow = FakeProvider("feed", PHONE_RESULTS, delay=5.0)
    context = make_context([slow, web_provider], PRIMARY_SOURCES, provider_timeout_seconds=0.05)

    result = await SourceRetriever(context).retrieve_with_report(QUERY, PHONES)

    assert result.report.failed["shopping_feed"] == "timeout"
    assert [c.source_name for c in result.candidates] == ["flipkart"]
    assert context.stats.success_rate("shopping_feed") < context.stats.initial_rate


@pytest.mark.asyncio
async def test_every_source_failing_returns_empty_list():
    feed = FakeProvider("feed", error=RuntimeError("connection reset"))
    web = FakeProvider("web", error=ProviderError(ProviderErrorKind.TIMEOUT, "web"))
    context = make_context([feed, web], PRIMARY_SOURCES)

    result = await SourceRetriever(context).retrieve_with_report(QUERY, PHONES)

    assert result.candidates == []
    assert result.report.failed["shopping_feed"] == "unknown"
    assert result.report.failed["flipkart"] == "timeout"


def test_normalize_result_prefers_structured_fields():
    candidate = normalize_result(PHONE_RESULTS[0], PRIMARY_SOURCES[1])

    assert candidate.domain == "flipkart.com"
    assert candidate.price == "₹80,999"
    assert candidate.rating == 4.5
    assert candidate.review_count == 1250
    assert candidate.availability is Availability.IN_STOCK
    assert candidate.image == "https://img.example.com/mobile/galaxy-s25-phone.jpg"
    assert candidate.has_structured_data
    assert candidate.source_provider == "web"
    assert candidate.tier is Tier.PRIMARY


def test_normalize_result_falls_back_to_snippet_text():
    candidate = normalize_result(PHONE_RESULTS[2], PRIMARY_SOURCES[0])

    assert candidate.price == "₹59,999"
    assert candidate.rating == 4.3
    assert candidate.review_count == 880
    assert not candidate.has_structured_data


def test_normalize_result_fixes_relative_urls_and_drops_unusable():
    source = PRIMARY_SOURCES[0]

    assert normalize_result(raw("Galaxy", "//www.croma.com/p/1"), source).url == "https://www.croma.com/p/1"
    assert normalize_result(raw("Galaxy", "croma.com/p/1"), source).domain == "croma.com"
    assert normalize_result(raw("", "https://croma.com/p/1"), source) is None
    assert normalize_result(raw("Galaxy", ""), source) is None


def test_price_text_renders_bare_numbers():
    assert price_text(89999, "INR") == "₹89,999"
    assert price_text("89999.50", "USD") == "USD 89,999.50"
    assert price_text("Rs. 1,299", "INR") == "Rs. 1,299"
    assert price_text("call for price", "INR") is None


def test_build_source_query_shapes():
    restricted = build_source_query(PRIMARY_SOURCES[1], QUERY)
    feed = build_source_query(PRIMARY_SOURCES[0], QUERY)
    fallback = build_source_query(SourceSpec("unrestricted:web", Tier.FALLBACK, "web"), QUERY)

    assert restricted.startswith("samsung galaxy s25 (buy OR shop OR price OR purchase) (site:flipkart.com)")
    assert "-specs" in restricted
    assert QUERY.intent is Intent.SPECIFIC_MODEL
    assert feed == QUERY.exact_match_variant
    assert fallback == "samsung galaxy s25"
