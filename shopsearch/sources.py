"""Source registry and per-source success/rate-limit bookkeeping."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Tuple

from .entities import Tier


@dataclass(frozen=True)
class SourceSpec:
    """One logical source: a provider plus an optional ``site:`` restriction."""

    name: str
    tier: Tier
    provider: str
    sites: Tuple[str, ...] = ()
    priority: int = 100

    @property
    def restricted(self) -> bool:
        return bool(self.sites)


DEFAULT_SOURCES: Tuple[SourceSpec, ...] = (
    SourceSpec("serpapi_shopping", Tier.PRIMARY, "serpapi", priority=1),
    SourceSpec("flipkart", Tier.PRIMARY, "google_cse", ("flipkart.com",), 2),
    SourceSpec("amazon_india", Tier.PRIMARY, "google_cse", ("amazon.in",), 3),
    SourceSpec("croma", Tier.PRIMARY, "google_cse", ("croma.com",), 4),
    SourceSpec("reliance_digital", Tier.PRIMARY, "google_cse", ("reliancedigital.in",), 5),
    SourceSpec("snapdeal", Tier.PRIMARY, "google_cse", ("snapdeal.com",), 6),
    SourceSpec(
        "indian_retailers",
        Tier.SECONDARY,
        "google_cse",
        ("tatacliq.com", "vijaysales.com", "paytmmall.com", "shopclues.com"),
        10,
    ),
    SourceSpec("mobile_specialists", Tier.SECONDARY, "google_cse", ("poorvika.com", "sangeethamobiles.com"), 11),
    SourceSpec(
        "price_comparison",
        Tier.TERTIARY,
        "google_cse",
        ("pricebaba.com", "mysmartprice.com", "gadgets360.com", "smartprix.com"),
        20,
    ),
)


def with_provider(sources: Iterable[SourceSpec], provider: str) -> List[SourceSpec]:
    """Point every source at one provider, keeping its sites and priority."""
    return [replace(source, provider=provider) for source in sources]


def providers_in_priority_order(sources: Iterable[SourceSpec]) -> List[str]:
    ordered: List[str] = []
    for source in sorted(sources, key=lambda s: s.priority):
        if source.provider not in ordered:
            ordered.append(source.provider)
    return ordered


@dataclass
class ProviderStats:
    """Exponential moving average of success per source plus last request times.

    The rate only reorders dispatch; it never excludes a source.
    """

    alpha: float = 0.1
    initial_rate: float = 0.9
    success_rates: Dict[str, float] = field(default_factory=dict)
    last_request: Dict[str, float] = field(default_factory=dict)

    def success_rate(self, name: str) -> float:
        return self.success_rates.get(name, self.initial_rate)

    def record(self, name: str, succeeded: bool) -> float:
        previous = self.success_rate(name)
        updated = (1 - self.alpha) * previous + self.alpha * (1.0 if succeeded else 0.0)
        self.success_rates[name] = updated
        return updated

    def mark_request(self, name: str, now: float) -> None:
        self.last_request[name] = now

    def within_interval(self, name: str, now: float, interval: float) -> bool:
        last = self.last_request.get(name)
        return last is not None and now - last < interval
