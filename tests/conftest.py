"""Shared fixtures: in-memory providers and a fresh pipeline context per test."""
from __future__ import annotations

import asyncio
from typing import Iterable, List

import pytest

from shopsearch.config import Settings
from shopsearch.context import PipelineContext
from shopsearch.entities import Candidate, RawProviderResult, Tier
from shopsearch.sources import SourceSpec


class FakeProvider:
    """SearchProvider double that records every query string it receives."""

    def __init__(self, name: str, results: Iterable[RawProviderResult] = (), error: Exception | None = None, delay: float = 0.0):
        self.name = name
        self.results: List[RawProviderResult] = list(results)
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.closed = False

    async def search(self, query, options):
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.results[: options.max_results]

    async def aclose(self):
        self.closed = True


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def raw(title: str, link: str, snippet: str = "", **pagemap) -> RawProviderResult:
    return RawProviderResult(title=title, link=link, snippet=snippet, pagemap=pagemap)


def candidate(title: str, url: str, description: str = "", **fields) -> Candidate:
    domain = fields.pop("domain", None) or url.split("/")[2].replace("www.", "")
    return Candidate(title=title, url=url, domain=domain, description=description, **fields)


def make_settings(**overrides) -> Settings:
    values = dict(
        cache_enabled=False,
        rate_limit_interval_seconds=0.0,
        provider_timeout_seconds=1.0,
        sample_catalog_fallback=False,
        sample_catalog_enabled=False,
    )
    values.update(overrides)
    return Settings(**values)


def make_context(providers: Iterable[FakeProvider], sources: Iterable[SourceSpec], **overrides) -> PipelineContext:
    return PipelineContext(
        settings=make_settings(**overrides),
        providers={provider.name: provider for provider in providers},
        sources=list(sources),
        clock=FakeClock(),
    )


PHONE_RESULTS = [
    raw(
        "Samsung Galaxy S25 5G (Phantom Black, 128 GB)",
        "https://www.flipkart.com/samsung-galaxy-s25-5g/p/itm8f2c9a1b3d4e5",
        "Buy Samsung Galaxy S25 5G smartphone with 50MP camera and 4000mAh battery. Free delivery.",
        offer=[{"price": "₹80,999", "availability": "InStock"}],
        aggregaterating=[{"ratingvalue": "4.5", "reviewcount": "1250"}],
        cse_image=[{"src": "https://img.example.com/mobile/galaxy-s25-phone.jpg"}],
    ),
    raw(
        "Samsung Galaxy S25 Ultra 5G (Titanium Black, 256 GB)",
        "https://www.amazon.in/Samsung-Galaxy-Ultra-Titanium/dp/B0DSKMKJV5",
        "Samsung Galaxy S25 Ultra smartphone with S Pen and 200MP camera. In stock.",
        offer=[{"price": "₹1,29,999"}],
    ),
    raw(
        "Samsung Galaxy S24 FE 128GB Mint",
        "https://www.croma.com/samsung-galaxy-s24-fe-128gb-mint/p/311111",
        "Samsung Galaxy S24 FE smartphone at ₹59,999 with 4.3 out of 5 stars from 880 ratings.",
    ),
]

PRIMARY_SOURCES = [
    SourceSpec("shopping_feed", Tier.PRIMARY, "feed", priority=1),
    SourceSpec("flipkart", Tier.PRIMARY, "web", ("flipkart.com",), 2),
]
SECONDARY_SOURCES = [SourceSpec("indian_retailers", Tier.SECONDARY, "web", ("tatacliq.com",), 10)]
TERTIARY_SOURCES = [SourceSpec("price_comparison", Tier.TERTIARY, "web", ("smartprix.com",), 20)]


@pytest.fixture
def feed_provider() -> FakeProvider:
    return FakeProvider("feed", PHONE_RESULTS)


@pytest.fixture
def web_provider() -> FakeProvider:
    return FakeProvider("web", PHONE_RESULTS[:1])


@pytest.fixture
def context(feed_provider, web_provider) -> PipelineContext:
    return make_context(
        [feed_provider, web_provider],
        PRIMARY_SOURCES + SECONDARY_SOURCES + TERTIARY_SOURCES,
    )
