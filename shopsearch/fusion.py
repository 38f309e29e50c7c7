"""Strict re-filtering, tier rank fusion and business-rule blending."""
from __future__ import annotations

import logging
import math
import warnings
from dataclasses import replace
from typing import Dict, List, Sequence, Set

from .attributes import STORAGE_RE, STORAGE_UNITS, AttributeExtractor, models_match, parse_price
from .config import FusionWeights
from .ecommerce_filter import category_inclusion_hit, exclusive_hits, foreign_exclusive_hit
from .entities import Availability, Candidate, CategoryClassification, NormalizedQuery, ScoredCandidate, Tier
from .errors import FilterExhaustionWarning
from .scoring import clamp
from .taxonomy import (
    MANUFACTURER_DOMAINS,
    REGIONAL_RETAILERS,
    REGIONAL_SUFFIXES,
    SELLER_REPUTATION,
    PriceBand,
    get_category,
)

logger = logging.getLogger(__name__)

STRICT_CATEGORY_CONFIDENCE = 0.5
UNKNOWN_SELLER_REPUTATION = 0.5
REGIONAL_BONUS = 0.1
MANUFACTURER_REPUTATION = 0.9
OUT_OF_BAND_PRICE_SCORE = 0.2
MIN_IN_BAND_PRICE_SCORE = 0.3
REVIEW_SATURATION = 10000
FUSION_TIERS = (Tier.PRIMARY, Tier.SECONDARY, Tier.TERTIARY, Tier.FALLBACK)


def _on_domain(domain: str, entry: str) -> bool:
    return domain == entry or domain.endswith("." + entry)


def price_reasonableness(price: float | None, band: PriceBand) -> float:
    """1.0 at the optimal price, falling with distance; flat penalty outside the band."""
    if price is None:
        return 0.5
    if price < band.min or price > band.max:
        return OUT_OF_BAND_PRICE_SCORE
    spread = band.max - band.min
    if spread <= 0:
        return 1.0
    return max(MIN_IN_BAND_PRICE_SCORE, 1 - abs(price - band.optimal) / spread)


def availability_score(availability: Availability) -> float:
    return {Availability.IN_STOCK: 1.0, Availability.OUT_OF_STOCK: 0.0}.get(availability, 0.5)


def rating_score(rating: float | None) -> float:
    return clamp(rating / 5) if rating is not None else 0.5


def review_score(review_count: int | None) -> float:
    if review_count is None:
        return 0.5
    return clamp(math.log10(review_count + 1) / math.log10(REVIEW_SATURATION + 1))


def _storages_gb(text: str) -> Set[float]:
    return {float(match.group(1)) * STORAGE_UNITS[match.group(2)] for match in STORAGE_RE.finditer(text)}


class AdvancedFilterAndFuse:
    def __init__(
        self,
        weights: FusionWeights | None = None,
        extractor: AttributeExtractor | None = None,
        region: str = "in",
    ) -> None:
        self.weights = weights or FusionWeights()
        self.extractor = extractor or AttributeExtractor()
        self.region = region

    # -- re-filter ---------------------------------------------------------

    def rejection_reason(
        self,
        candidate: Candidate,
        query: NormalizedQuery,
        classification: CategoryClassification,
    ) -> str | None:
        text = candidate.text
        wanted = query.attributes
        if classification.confidence > STRICT_CATEGORY_CONFIDENCE:
            profile = get_category(classification.primary_category)
            if foreign_exclusive_hit(text, profile.id) and not exclusive_hits(text, profile):
                return "category"
            if not category_inclusion_hit(text, profile) and not wanted.brand:
                return "category"
        if wanted.brand:
            if wanted.brand not in self.extractor.brands(text):
                return "brand"
            if wanted.model:
                offered = self.extractor.models(text, wanted.brand)
                if offered and not any(models_match(wanted.model, parsed.model) for parsed in offered):
                    return "model"
        if wanted.storage:
            wanted_gb = _storages_gb(wanted.storage.lower())
            offered_gb = _storages_gb(text)
            if offered_gb and wanted_gb and not wanted_gb & offered_gb:
                return "specification"
        return None

    def refilter(
        self,
        scored: Sequence[ScoredCandidate],
        query: NormalizedQuery,
        classification: CategoryClassification,
    ) -> List[ScoredCandidate]:
        kept: List[ScoredCandidate] = []
        rejected: Dict[str, int] = {}
        for item in scored:
            reason = self.rejection_reason(item.candidate, query, classification)
            if reason:
                rejected[reason] = rejected.get(reason, 0) + 1
                continue
            kept.append(item)
        logger.info("advanced filter: received=%s rejected=%s kept=%s", len(scored), rejected, len(kept))
        return kept

    # -- fusion ------------------------------------------------------------

    def tier_weight(self, tier: Tier) -> float:
        return self.weights.tier_weights.get(tier.value, self.weights.fallback_tier_weight)

    def rrf_scores(self, items: Sequence[ScoredCandidate]) -> List[float]:
        """Sum of ``weight / (k + rank)`` over every tier list a candidate appears in.

        Normalised by the best attainable sum (rank 1 in every weighted tier)
        so the result stays in [0, 1].
        """
        k = self.weights.rrf_k
        totals = [0.0] * len(items)
        for tier in FUSION_TIERS:
            rank = 0
            weight = self.tier_weight(tier)
            for index, item in enumerate(items):
                if tier in item.candidate.tiers:
                    rank += 1
                    totals[index] += weight / (k + rank)
        ceiling = sum(self.weights.tier_weights.values()) / (k + 1)
        return [clamp(total / ceiling) if ceiling else 0.0 for total in totals]

    def seller_reputation(self, domain: str) -> float:
        domain = (domain or "").lower()
        for entry, reputation in SELLER_REPUTATION.items():
            if _on_domain(domain, entry):
                return reputation
        if any(_on_domain(domain, entry) for entry in MANUFACTURER_DOMAINS):
            return MANUFACTURER_REPUTATION
        regional = any(_on_domain(domain, entry) for entry in REGIONAL_RETAILERS.get(self.region, ())) or any(
            domain.endswith(suffix) for suffix in REGIONAL_SUFFIXES.get(self.region, ())
        )
        return UNKNOWN_SELLER_REPUTATION + (REGIONAL_BONUS if regional else 0.0)

    def business_score(self, candidate: Candidate, category: str) -> float:
        w = self.weights
        band = get_category(category).price_band
        total = (
            w.seller_reputation * self.seller_reputation(candidate.domain)
            + w.availability * availability_score(candidate.availability)
            + w.price * price_reasonableness(parse_price(candidate.price), band)
            + w.rating * rating_score(candidate.rating)
            + w.reviews * review_score(candidate.review_count)
        )
        return clamp(total)

    def fuse(
        self,
        items: Sequence[ScoredCandidate],
        classification: CategoryClassification,
        neutral_business: bool = False,
    ) -> List[ScoredCandidate]:
        w = self.weights
        rrf = self.rrf_scores(items)
        fused = []
        for index, item in enumerate(items):
            business = (
                w.neutral_business
                if neutral_business
                else self.business_score(item.candidate, classification.primary_category)
            )
            final = clamp(w.rrf_share * rrf[index] + w.business_share * business)
            scores = replace(item.scores, rrf=rrf[index], business=business, final=final)
            fused.append((index, ScoredCandidate(item.candidate, scores)))
        fused.sort(key=lambda pair: (-pair[1].scores.final, -pair[1].scores.relevance, pair[0]))
        return [item for _, item in fused]

    def finalize(
        self,
        scored: Sequence[ScoredCandidate],
        query: NormalizedQuery,
        classification: CategoryClassification,
    ) -> List[ScoredCandidate]:
        if not scored:
            return []
        survivors = self.refilter(scored, query, classification)
        if survivors:
            return self.fuse(survivors, classification)
        warnings.warn(
            f"re-filter removed all {len(scored)} candidates; returning unfiltered list with neutral business score",
            FilterExhaustionWarning,
            stacklevel=2,
        )
        return self.fuse(scored, classification, neutral_business=True)
