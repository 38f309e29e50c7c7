"""Lenient shopping-page gates and product-identifier deduplication."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence, Tuple

from .attributes import (
    AttributeExtractor,
    availability_from_text,
    canonical_url,
    contains_phrase,
    find_price,
    product_identifier,
    product_identifiers,
)
from .entities import Availability, Candidate, CategoryClassification
from .taxonomy import (
    ACCESSORY_EXCLUSIONS,
    BLOCKED_DOMAIN_TOKENS,
    BLOCKED_DOMAINS,
    CATEGORIES,
    SHOPPING_DOMAINS,
    CategoryProfile,
)

logger = logging.getLogger(__name__)

CATEGORY_GATE_CONFIDENCE = 0.7
MAX_SIGNAL_SCORE = 10
PASS_THRESHOLD = 0

BUY_TERMS = ("buy", "add to cart", "cart", "shop now", "order now", "emi", "free delivery", "best price", "offer")
INFORMATIONAL_TERMS = ("specifications", "specs", "review", "compare", "comparison", "vs", "guide", "support", "manual", "how to")
INFORMATIONAL_URL_RE = re.compile(r"/(?:specs?|specifications|support|compare|comparison|reviews?|guides?|news|blog)(?:/|$|-)")
PRODUCT_URL_RE = re.compile(r"/(?:p|product|products|item|buy|shop|dp|gp/product)/")
PLACEHOLDER_IMAGE_MARKERS = ("placeholder", "no-image", "noimage", "no_image", "default", "blank", "spacer")


def _matches_domain(domain: str, entries: Sequence[str]) -> bool:
    return any(domain == entry or domain.endswith("." + entry) for entry in entries)


def domain_allowed(domain: str) -> bool:
    """Allowlist wins, then blocklist and blog/news/forum host labels; otherwise allow."""
    domain = (domain or "").lower()
    if _matches_domain(domain, SHOPPING_DOMAINS):
        return True
    if _matches_domain(domain, BLOCKED_DOMAINS):
        return False
    labels = re.split(r"[.\-]", domain)
    return not any(token in label for label in labels for token in BLOCKED_DOMAIN_TOKENS)


def exclusive_hits(text: str, profile: CategoryProfile) -> bool:
    return any(re.search(pattern, text) for pattern in profile.exclusive_patterns)


def category_inclusion_hit(text: str, profile: CategoryProfile) -> bool:
    terms = profile.keywords + profile.semantic_primary
    return any(contains_phrase(text, term) for term in terms)


def foreign_exclusive_hit(text: str, category: str) -> str | None:
    """Id of another category whose exclusive pattern appears in ``text``."""
    for other_id, other in CATEGORIES.items():
        if other_id != category and exclusive_hits(text, other):
            return other_id
    return None


def dedup_keys(candidate: Candidate) -> Tuple[str, ...]:
    """Every identifier a listing exposes: structured GTIN, URL GTIN/ASIN, canonical URL."""
    keys: List[str] = []
    if candidate.gtin:
        keys.append(f"gtin:{candidate.gtin}")
    for identifier in product_identifiers(candidate.url):
        if identifier not in keys:
            keys.append(identifier)
    if candidate.url or not keys:
        keys.append(f"url:{canonical_url(candidate.url)}")
    return tuple(keys)


def dedup_key(candidate: Candidate) -> str:
    return dedup_keys(candidate)[0]


@dataclass
class FilterReport:
    received: int = 0
    rejected: Dict[str, int] = field(default_factory=dict)
    duplicates: int = 0
    kept: int = 0

    def reject(self, gate: str) -> None:
        self.rejected[gate] = self.rejected.get(gate, 0) + 1


class EcommerceFilter:
    def __init__(self, extractor: AttributeExtractor | None = None) -> None:
        self.extractor = extractor or AttributeExtractor()

    def filter(self, candidates: Sequence[Candidate], classification: CategoryClassification) -> List[Candidate]:
        kept, _ = self.filter_with_report(candidates, classification)
        return kept

    def filter_with_report(
        self,
        candidates: Sequence[Candidate],
        classification: CategoryClassification,
    ) -> Tuple[List[Candidate], FilterReport]:
        report = FilterReport(received=len(candidates))
        passed: List[Candidate] = []
        for candidate in candidates:
            gate = self.rejecting_gate(candidate, classification)
            if gate:
                report.reject(gate)
                logger.debug("reject [%s] %s (%s)", gate, candidate.title, candidate.domain)
                continue
            passed.append(candidate)
        kept = self.deduplicate(passed)
        report.duplicates = len(passed) - len(kept)
        report.kept = len(kept)
        logger.info(
            "ecommerce filter: received=%s rejected=%s duplicates=%s kept=%s",
            report.received,
            report.rejected,
            report.duplicates,
            report.kept,
        )
        return kept, report

    def rejecting_gate(self, candidate: Candidate, classification: CategoryClassification) -> str | None:
        if not domain_allowed(candidate.domain):
            return "domain"
        if not self.category_ok(candidate, classification):
            return "category"
        if self.signal_score(candidate) < PASS_THRESHOLD:
            return "signals"
        return None

    def category_ok(self, candidate: Candidate, classification: CategoryClassification) -> bool:
        if classification.confidence <= CATEGORY_GATE_CONFIDENCE:
            return True
        profile = CATEGORIES.get(classification.primary_category)
        if profile is None:
            return True
        text = candidate.text
        if not category_inclusion_hit(text, profile):
            return False
        return foreign_exclusive_hit(text, profile.id) is None

    def is_main_product(self, candidate: Candidate) -> bool:
        text = candidate.text
        brand = self.extractor.brand(text)
        if brand and self.extractor.models(text, brand):
            return True
        if self.extractor.storage(text) or self.extractor.color(text):
            return True
        return any(category_inclusion_hit(text, profile) for profile in CATEGORIES.values())

    def signal_score(self, candidate: Candidate) -> int:
        """Product-page evidence in points, capped at ``MAX_SIGNAL_SCORE``; may go negative."""
        text = candidate.text
        url = candidate.url.lower()
        score = 0
        if candidate.price or find_price(text):
            score += 2
        if any(contains_phrase(text, term) for term in BUY_TERMS):
            score += 2
        if candidate.gtin or product_identifier(candidate.url):
            score += 1
        if candidate.has_structured_data:
            score += 1
        if candidate.availability is not Availability.UNKNOWN or availability_from_text(text) is not Availability.UNKNOWN:
            score += 1
        if candidate.image and not any(marker in candidate.image.lower() for marker in PLACEHOLDER_IMAGE_MARKERS):
            score += 1
        if PRODUCT_URL_RE.search(url):
            score += 1
        if candidate.review_count is not None and candidate.review_count > 10:
            score += 1
        score = min(score, MAX_SIGNAL_SCORE)

        if INFORMATIONAL_URL_RE.search(url) or any(contains_phrase(text, term) for term in INFORMATIONAL_TERMS):
            score -= 1
        if any(contains_phrase(text, term) for term in ACCESSORY_EXCLUSIONS) and not self.is_main_product(candidate):
            score -= 2
        return score

    def deduplicate(self, candidates: Sequence[Candidate]) -> List[Candidate]:
        """First occurrence wins; later duplicates only add their tier as corroboration."""
        kept: List[Candidate] = []
        index: Dict[str, int] = {}
        for candidate in candidates:
            keys = dedup_keys(candidate)
            slot = next((index[key] for key in keys if key in index), None)
            if slot is None:
                slot = len(kept)
                kept.append(candidate)
            else:
                kept[slot] = self._corroborate(kept[slot], candidate)
            for key in keys:
                index.setdefault(key, slot)
        return kept

    @staticmethod
    def _corroborate(first: Candidate, candidate: Candidate) -> Candidate:
        tiers: Tuple = first.corroborating_tiers
        for tier in candidate.tiers:
            if tier is not first.tier and tier not in tiers:
                tiers = tiers + (tier,)
        return replace(first, corroborating_tiers=tiers)
