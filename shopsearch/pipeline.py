"""Search entry point: query -> ranked, paginated products."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import List

from pydantic import ValidationError

from .cache import cache_key, query_prefix
from .classifier import CategoryClassifier
from .context import PipelineContext
from .ecommerce_filter import EcommerceFilter
from .entities import Candidate, NormalizedQuery, Query, Tier
from .errors import AllSourcesFailedError, ProviderError
from .formatter import ResponseFormatter
from .fusion import AdvancedFilterAndFuse
from .models import SearchResultPage
from .providers import SearchOptions
from .query_understanding import QueryUnderstanding
from .retriever import SourceRetriever, normalize_result
from .scoring import RelevanceScorer
from .sources import SourceSpec
from .taxonomy import SUGGESTIONS, TRENDING, is_known_category

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
EMERGENCY_SOURCE = SourceSpec("sample_fallback", Tier.FALLBACK, "sample", (), 2000)


def suggest(query: str) -> List[str]:
    needle = (query or "").strip().lower()
    if not needle:
        return []
    return [item for item in SUGGESTIONS if needle in item.lower()][:MAX_SUGGESTIONS]


def trending() -> List[str]:
    return list(TRENDING)


class SearchPipeline:
    def __init__(
        self,
        context: PipelineContext,
        understanding: QueryUnderstanding | None = None,
        classifier: CategoryClassifier | None = None,
        ecommerce_filter: EcommerceFilter | None = None,
        scorer: RelevanceScorer | None = None,
        fuser: AdvancedFilterAndFuse | None = None,
        formatter: ResponseFormatter | None = None,
    ) -> None:
        self.context = context
        self.understanding = understanding or QueryUnderstanding()
        self.classifier = classifier or CategoryClassifier()
        self.retriever = SourceRetriever(context)
        self.ecommerce_filter = ecommerce_filter or EcommerceFilter()
        self.scorer = scorer or RelevanceScorer()
        self.fuser = fuser or AdvancedFilterAndFuse(region=context.settings.region)
        self.formatter = formatter or ResponseFormatter(context.settings.page_size)

    def _cached(self, normalized: NormalizedQuery, query: Query, key: str) -> SearchResultPage | None:
        cache = self.context.cache
        if cache is None:
            return None
        if query.options.page == 1:
            removed = cache.delete_prefix(query_prefix(normalized.normalized))
            if removed:
                logger.info("cache: cleared %s entries for %r", removed, normalized.normalized)
            return None
        payload = cache.get(key)
        if not payload:
            return None
        try:
            return SearchResultPage.model_validate(payload)
        except ValidationError as exc:
            logger.warning("cache: discarding unreadable entry %s: %s", key, exc)
            return None

    async def _emergency_candidates(self, normalized: NormalizedQuery) -> List[Candidate]:
        settings = self.context.settings
        provider = self.context.providers.get(EMERGENCY_SOURCE.provider)
        if not settings.sample_catalog_fallback or provider is None:
            return []
        options = SearchOptions(settings.max_results_per_source, settings.region, settings.language)
        try:
            raw_results = await provider.search(normalized.normalized, options)
        except ProviderError as exc:
            logger.warning("emergency sample fallback failed: %s", exc)
            return []
        candidates = []
        for raw in raw_results:
            candidate = normalize_result(raw, EMERGENCY_SOURCE, settings.default_currency)
            if candidate is not None:
                candidates.append(candidate)
        logger.warning("emergency sample fallback served %s candidates", len(candidates))
        return candidates

    async def search(self, query: Query) -> SearchResultPage:
        """Run every stage for one request.

        Raises ``InvalidQueryError`` for a blank query and ``AllSourcesFailedError``
        when neither the tiers, the unrestricted query nor the emergency sample
        catalog produced a single candidate.
        """
        started = perf_counter()
        normalized = self.understanding.normalize(query.text)
        normalize_done = perf_counter()

        key = cache_key(normalized.normalized, query.options.as_dict())
        cached = self._cached(normalized, query, key)
        if cached is not None:
            logger.info("cache hit for %r page=%s", normalized.normalized, query.options.page)
            return cached

        hint = query.options.category if is_known_category(query.options.category) else None
        classification = self.classifier.classify(normalized, hint=hint)
        normalized = self.understanding.build_variants(normalized, classification)
        classify_done = perf_counter()

        candidates = await self.retriever.retrieve(normalized, classification)
        if not candidates:
            candidates = await self._emergency_candidates(normalized)
        if not candidates:
            raise AllSourcesFailedError(f"No source returned candidates for {normalized.normalized!r}")
        retrieve_done = perf_counter()

        filtered = self.ecommerce_filter.filter(candidates, classification)
        filter_done = perf_counter()
        scored = self.scorer.score(filtered, normalized, classification)
        score_done = perf_counter()
        ranked = self.fuser.finalize(scored, normalized, classification)
        fuse_done = perf_counter()

        page = self.formatter.format(ranked, query, classification, (fuse_done - started) * 1000)
        finished = perf_counter()
        logger.info(
            "timing: total=%.2fms normalize=%.2fms classify=%.2fms retrieve=%.2fms "
            "filter=%.2fms score=%.2fms fuse=%.2fms format=%.2fms",
            (finished - started) * 1000,
            (normalize_done - started) * 1000,
            (classify_done - normalize_done) * 1000,
            (retrieve_done - classify_done) * 1000,
            (filter_done - retrieve_done) * 1000,
            (score_done - filter_done) * 1000,
            (fuse_done - score_done) * 1000,
            (finished - fuse_done) * 1000,
        )
        logger.info(
            "search %r: category=%s (%.2f) candidates=%s filtered=%s ranked=%s",
            query.text,
            classification.primary_category,
            classification.confidence,
            len(candidates),
            len(filtered),
            len(ranked),
        )

        if self.context.cache is not None:
            self.context.cache.set(key, page.model_dump(), self.context.settings.cache_ttl_seconds)
        return page
