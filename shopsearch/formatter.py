"""Request-option filters, sorting, pagination and projection to the JSON contract."""
from __future__ import annotations

import hashlib
import logging
import math
from typing import Any, Dict, List, Sequence, Tuple

from .attributes import parse_price
from .ecommerce_filter import dedup_key
from .entities import CategoryClassification, Query, ScoredCandidate
from .models import Pagination, ProductResult, SearchInfo, SearchResultPage
from .taxonomy import get_category, is_known_category

logger = logging.getLogger(__name__)

PRICE_RANGES = ("low", "medium", "high")
SORT_OPTIONS = ("relevance", "price_low", "price_high", "rating")


def _price(item: ScoredCandidate) -> float | None:
    return parse_price(item.candidate.price)


def price_bucket(price: float, category: str) -> str:
    band = get_category(category).price_band
    if price <= band.optimal:
        return "low"
    if price <= (band.optimal + band.max) / 2:
        return "medium"
    return "high"


def apply_price_range(
    items: Sequence[ScoredCandidate],
    price_range: str | None,
    category: str,
) -> Tuple[List[ScoredCandidate], bool]:
    """Keep listings in the requested bucket plus priceless ones; never empties the list."""
    if price_range not in PRICE_RANGES:
        return list(items), False
    kept = []
    for item in items:
        price = _price(item)
        if price is None or price_bucket(price, category) == price_range:
            kept.append(item)
    if not kept and items:
        logger.info("priceRange=%s would remove every result; not applied", price_range)
        return list(items), False
    return kept, True


def sort_results(items: Sequence[ScoredCandidate], sort_by: str) -> List[ScoredCandidate]:
    """Stable over the fused order; listings missing the sort value go last."""
    if sort_by == "price_low":
        return sorted(items, key=lambda item: (_price(item) is None, _price(item) or 0.0))
    if sort_by == "price_high":
        return sorted(items, key=lambda item: (_price(item) is None, -(_price(item) or 0.0)))
    if sort_by == "rating":
        return sorted(
            items,
            key=lambda item: (item.candidate.rating is None, -(item.candidate.rating or 0.0)),
        )
    return list(items)


def paginate(items: Sequence[Any], page: int, page_size: int) -> Tuple[List[Any], Pagination]:
    page = max(1, page)
    total = len(items)
    total_pages = math.ceil(total / page_size) if total else 0
    start = (page - 1) * page_size
    pagination = Pagination(
        currentPage=page,
        totalPages=total_pages,
        totalResults=total,
        hasNextPage=page < total_pages,
        hasPrevPage=page > 1,
    )
    return list(items[start : start + page_size]), pagination


def product_id(item: ScoredCandidate) -> str:
    return hashlib.sha1(dedup_key(item.candidate).encode("utf-8")).hexdigest()[:16]


def project(item: ScoredCandidate) -> ProductResult:
    candidate = item.candidate
    return ProductResult(
        id=product_id(item),
        title=candidate.title,
        price=candidate.price,
        currency=candidate.currency,
        availability=candidate.availability.value,
        rating=candidate.rating,
        reviews=candidate.review_count,
        seller=candidate.seller,
        domain=candidate.domain,
        url=candidate.url,
        image=candidate.image,
        description=candidate.description or None,
        score=round(item.scores.final, 4),
    )


class ResponseFormatter:
    def __init__(self, page_size: int = 10) -> None:
        self.page_size = max(1, page_size)

    def format(
        self,
        ranked: Sequence[ScoredCandidate],
        query: Query,
        classification: CategoryClassification,
        search_time_ms: float,
    ) -> SearchResultPage:
        options = query.options
        applied: Dict[str, Any] = options.as_dict()
        if options.category and not is_known_category(options.category):
            applied["categoryIgnored"] = True
        filtered, price_applied = apply_price_range(ranked, options.price_range, classification.primary_category)
        if options.price_range:
            applied["priceRangeApplied"] = price_applied
        ordered = sort_results(filtered, options.sort_by)
        page_items, pagination = paginate(ordered, options.page, self.page_size)
        return SearchResultPage(
            products=[project(item) for item in page_items],
            pagination=pagination,
            searchInfo=SearchInfo(
                query=query.text,
                searchTimeMs=round(search_time_ms, 2),
                appliedFilters=applied,
                category=classification.primary_category,
            ),
        )
