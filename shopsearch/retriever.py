"""Tiered multi-source candidate retrieval.

Sources are grouped into primary, secondary and tertiary tiers and each tier
is one step of an ordered fallback list, followed by an unrestricted
last-resort query. A tier runs only while the running candidate count is
below its threshold; inside a tier, calls are dispatched in chunks of the
tier's concurrency limit and joined all-settled, so one failing or slow
source never sinks its siblings.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, Sequence, Set
from urllib.parse import urlsplit

from .attributes import (
    PRICE_RE,
    availability_from_text,
    find_price,
    find_rating,
    find_review_count,
    parse_price,
)
from .context import PipelineContext
from .entities import (
    Availability,
    Candidate,
    CategoryClassification,
    Intent,
    NormalizedQuery,
    RawProviderResult,
    Tier,
)
from .errors import ProviderError, ProviderErrorKind
from .providers import SearchOptions
from .sources import SourceSpec, providers_in_priority_order
from .taxonomy import INFORMATIONAL_EXCLUSIONS, SHOPPING_INTENT_TERMS

logger = logging.getLogger(__name__)

UNRESTRICTED_PRIORITY = 1000


@dataclass
class SourceOutcome:
    source: SourceSpec
    candidates: List[Candidate] = field(default_factory=list)
    error: ProviderError | None = None
    skipped: str | None = None


@dataclass
class RetrievalReport:
    strategies_run: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)
    exhausted_providers: Set[str] = field(default_factory=set)


@dataclass
class RetrievalState:
    query: NormalizedQuery
    classification: CategoryClassification
    candidates: List[Candidate] = field(default_factory=list)
    report: RetrievalReport = field(default_factory=RetrievalReport)


@dataclass
class StrategyResult:
    candidates: List[Candidate] = field(default_factory=list)
    errors: List[ProviderError] = field(default_factory=list)


@dataclass
class RetrievalResult:
    candidates: List[Candidate]
    report: RetrievalReport


class FallbackStrategy(Protocol):
    name: str

    def should_run(self, state: RetrievalState) -> bool: ...

    async def attempt(self, state: RetrievalState) -> StrategyResult: ...


class TierStrategy:
    """Query every source of one tier while the candidate count is below ``threshold``."""

    def __init__(self, retriever: "SourceRetriever", tier: Tier, threshold: int | None) -> None:
        self.retriever = retriever
        self.tier = tier
        self.threshold = threshold
        self.name = f"tier:{tier.value}"

    def should_run(self, state: RetrievalState) -> bool:
        return self.threshold is None or len(state.candidates) < self.threshold

    async def attempt(self, state: RetrievalState) -> StrategyResult:
        return await self.retriever.run_tier(self.tier, state)


class UnrestrictedStrategy:
    """Plain query text with no site restriction, only when nothing was found."""

    name = "unrestricted"

    def __init__(self, retriever: "SourceRetriever") -> None:
        self.retriever = retriever

    def should_run(self, state: RetrievalState) -> bool:
        return not state.candidates

    async def attempt(self, state: RetrievalState) -> StrategyResult:
        result = StrategyResult()
        context = self.retriever.context
        for provider in providers_in_priority_order(context.sources):
            if provider in state.report.exhausted_providers:
                continue
            source = SourceSpec(f"unrestricted:{provider}", Tier.FALLBACK, provider, (), UNRESTRICTED_PRIORITY)
            outcomes = await self.retriever.dispatch_chunk([source], state)
            for outcome in outcomes:
                if outcome.error:
                    result.errors.append(outcome.error)
                result.candidates.extend(outcome.candidates)
            if result.candidates:
                break
        return result


def _first(pagemap: Mapping[str, Any], section: str, key: str) -> Any:
    entries = pagemap.get(section)
    if isinstance(entries, Mapping):
        entries = [entries]
    if not isinstance(entries, Sequence) or isinstance(entries, str) or not entries:
        return None
    entry = entries[0]
    if not isinstance(entry, Mapping):
        return None
    value = entry.get(key)
    return value if value not in (None, "") else None


def _to_float(value: Any) -> float | None:
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(number) if number is not None and number >= 0 else None


def absolute_url(link: str) -> str:
    link = (link or "").strip()
    if not link:
        return ""
    if link.startswith("//"):
        return f"https:{link}"
    if "://" not in link:
        return f"https://{link.lstrip('/')}"
    return link


def domain_of(url: str) -> str:
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def price_text(value: Any, currency: str) -> str | None:
    """Keep a currency-marked string as written; render bare numbers with a symbol."""
    if isinstance(value, str) and PRICE_RE.search(value):
        return value.strip()
    amount = parse_price(value)
    if amount is None:
        return None
    symbol = "₹" if currency == "INR" else f"{currency} "
    if amount.is_integer():
        return f"{symbol}{amount:,.0f}"
    return f"{symbol}{amount:,.2f}"


def _availability(pagemap: Mapping[str, Any], text: str) -> Availability:
    structured = _first(pagemap, "offer", "availability") or _first(pagemap, "product", "availability")
    if structured:
        found = availability_from_text(str(structured).replace("_", " "))
        if found is not Availability.UNKNOWN:
            return found
    return availability_from_text(text)


def normalize_result(
    raw: RawProviderResult,
    source: SourceSpec,
    default_currency: str = "INR",
) -> Candidate | None:
    """Map a provider payload onto a :class:`Candidate`; ``None`` when unusable."""
    url = absolute_url(raw.link)
    if not url or not raw.title:
        return None
    pagemap = raw.pagemap or {}
    text = f"{raw.title} {raw.snippet}"
    currency = str(_first(pagemap, "offer", "pricecurrency") or default_currency).upper()
    domain = domain_of(url)

    image = (
        _first(pagemap, "cse_image", "src")
        or _first(pagemap, "metatags", "og:image")
        or _first(pagemap, "cse_thumbnail", "src")
    )
    price = price_text(_first(pagemap, "offer", "price") or _first(pagemap, "product", "price"), currency)
    if price is None:
        price = find_price(text)

    rating = _to_float(_first(pagemap, "aggregaterating", "ratingvalue") or _first(pagemap, "metatags", "og:rating"))
    if rating is None or not 0 < rating <= 5:
        rating = find_rating(text)

    reviews = _to_int(
        _first(pagemap, "aggregaterating", "reviewcount") or _first(pagemap, "aggregaterating", "ratingcount")
    )
    if reviews is None:
        reviews = find_review_count(text)

    gtin = _first(pagemap, "product", "gtin13") or _first(pagemap, "product", "gtin")
    seller = _first(pagemap, "metatags", "og:site_name") or _first(pagemap, "offer", "seller") or domain
    structured = any(section in pagemap for section in ("offer", "product", "aggregaterating"))

    return Candidate(
        title=raw.title.strip(),
        url=url,
        domain=domain,
        description=(raw.snippet or "").strip(),
        image=str(image) if image else None,
        price=price,
        rating=rating,
        review_count=reviews,
        gtin=str(gtin) if gtin else None,
        availability=_availability(pagemap, text),
        currency=currency,
        seller=str(seller),
        source_provider=source.provider,
        source_name=source.name,
        tier=source.tier,
        has_structured_data=structured,
    )


def build_source_query(source: SourceSpec, query: NormalizedQuery) -> str:
    base = query.category_specific_variant or query.normalized
    if not source.restricted:
        if source.tier is Tier.FALLBACK:
            return query.normalized
        if query.intent is Intent.SPECIFIC_MODEL:
            return query.exact_match_variant
        return base
    intent = " OR ".join(SHOPPING_INTENT_TERMS)
    sites = " OR ".join(f"site:{site}" for site in source.sites)
    exclusions = " ".join(f"-{term}" for term in INFORMATIONAL_EXCLUSIONS)
    return f"{base} ({intent}) ({sites}) {exclusions}"


class SourceRetriever:
    def __init__(self, context: PipelineContext) -> None:
        self.context = context

    def strategies(self) -> List[FallbackStrategy]:
        settings = self.context.settings
        return [
            TierStrategy(self, Tier.PRIMARY, None),
            TierStrategy(self, Tier.SECONDARY, settings.min_results),
            TierStrategy(self, Tier.TERTIARY, settings.target_results),
            UnrestrictedStrategy(self),
        ]

    async def retrieve(
        self,
        query: NormalizedQuery,
        classification: CategoryClassification,
    ) -> List[Candidate]:
        result = await self.retrieve_with_report(query, classification)
        return result.candidates

    async def retrieve_with_report(
        self,
        query: NormalizedQuery,
        classification: CategoryClassification,
    ) -> RetrievalResult:
        state = RetrievalState(query, classification)
        for strategy in self.strategies():
            if not strategy.should_run(state):
                logger.debug("strategy %s not needed (candidates=%s)", strategy.name, len(state.candidates))
                continue
            result = await strategy.attempt(state)
            state.report.strategies_run.append(strategy.name)
            state.candidates.extend(result.candidates)
            logger.debug(
                "strategy %s: +%s candidates, %s errors",
                strategy.name,
                len(result.candidates),
                len(result.errors),
            )
        report = state.report
        logger.info(
            "retrieve: candidates=%s strategies=%s succeeded=%s failed=%s skipped=%s",
            len(state.candidates),
            report.strategies_run,
            len(report.succeeded),
            len(report.failed),
            len(report.skipped),
        )
        return RetrievalResult(state.candidates, report)

    def dispatch_order(self, tier: Tier) -> List[SourceSpec]:
        """Sources of ``tier``, most reliable first; static priority breaks ties."""
        stats = self.context.stats
        sources = [source for source in self.context.sources if source.tier is tier]
        return sorted(sources, key=lambda s: (-stats.success_rate(s.name), s.priority))

    async def run_tier(self, tier: Tier, state: RetrievalState) -> StrategyResult:
        sources = self.dispatch_order(tier)
        chunk_size = self.context.settings.tier_concurrency(tier.value)
        outcomes: List[SourceOutcome] = []
        for start in range(0, len(sources), chunk_size):
            outcomes.extend(await self.dispatch_chunk(sources[start : start + chunk_size], state))
        # Dispatch order follows live success rates; result order must not.
        outcomes.sort(key=lambda outcome: (outcome.source.priority, outcome.source.name))
        result = StrategyResult()
        for outcome in outcomes:
            result.candidates.extend(outcome.candidates)
            if outcome.error:
                result.errors.append(outcome.error)
        return result

    async def dispatch_chunk(self, chunk: Sequence[SourceSpec], state: RetrievalState) -> List[SourceOutcome]:
        settings = self.context.settings
        stats = self.context.stats
        now = self.context.clock()
        outcomes: List[SourceOutcome] = []
        scheduled: List[SourceSpec] = []
        for source in chunk:
            if source.provider in state.report.exhausted_providers:
                outcomes.append(SourceOutcome(source, skipped="provider exhausted"))
            elif source.provider not in self.context.providers:
                outcomes.append(SourceOutcome(source, skipped="provider not configured"))
            elif stats.within_interval(source.name, now, settings.rate_limit_interval_seconds):
                outcomes.append(SourceOutcome(source, skipped="rate limited"))
            else:
                stats.mark_request(source.name, now)
                scheduled.append(source)

        results = await asyncio.gather(
            *(self._call_source(source, state.query) for source in scheduled),
            return_exceptions=True,
        )
        for source, result in zip(scheduled, results):
            if isinstance(result, ProviderError):
                outcomes.append(SourceOutcome(source, error=result))
            elif isinstance(result, Exception):
                error = ProviderError(ProviderErrorKind.UNKNOWN, source.name, repr(result))
                outcomes.append(SourceOutcome(source, error=error))
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(SourceOutcome(source, candidates=result))

        # Stats are written only after the whole chunk has settled.
        for outcome in outcomes:
            self._record(outcome, state)
        return outcomes

    async def _call_source(self, source: SourceSpec, query: NormalizedQuery) -> List[Candidate]:
        settings = self.context.settings
        provider = self.context.providers[source.provider]
        query_string = build_source_query(source, query)
        options = SearchOptions(
            max_results=settings.max_results_per_source,
            region=settings.region,
            language=settings.language,
        )
        logger.debug("source %s -> %s: %s", source.name, source.provider, query_string)
        try:
            raw_results = await asyncio.wait_for(
                provider.search(query_string, options),
                timeout=settings.provider_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                ProviderErrorKind.TIMEOUT,
                source.name,
                f"no response within {settings.provider_timeout_seconds}s",
            ) from exc
        candidates = []
        for raw in raw_results:
            candidate = normalize_result(raw, source, settings.default_currency)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _record(self, outcome: SourceOutcome, state: RetrievalState) -> None:
        report = state.report
        name = outcome.source.name
        if outcome.skipped:
            report.skipped[name] = outcome.skipped
            logger.info("source %s skipped: %s", name, outcome.skipped)
            return
        self.context.stats.record(name, outcome.error is None)
        if outcome.error is None:
            report.succeeded.append(name)
            logger.debug("source %s returned %s candidates", name, len(outcome.candidates))
            return
        error = outcome.error
        report.failed[name] = error.kind.value
        logger.warning("source %s failed (%s): %s", name, error.kind.value, error.message)
        if error.exhausts_provider:
            report.exhausted_providers.add(outcome.source.provider)
