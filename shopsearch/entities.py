"""Immutable records passed between pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple


class Intent(str, Enum):
    SPECIFIC_MODEL = "specific_model"
    COMPARISON = "comparison"
    CATEGORY_BROWSING = "category_browsing"
    BRAND_EXPLORATION = "brand_exploration"
    GENERAL = "general"


class Priority(str, Enum):
    ESSENTIAL = "ESSENTIAL"
    PREFERRED = "PREFERRED"
    NICE_TO_HAVE = "NICE_TO_HAVE"


class Tier(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"
    FALLBACK = "fallback"


class Availability(str, Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Attributes:
    brand: str | None = None
    series: str | None = None
    model: str | None = None
    variant: str | None = None
    storage: str | None = None
    color: str | None = None
    year: int | None = None

    def present(self) -> Dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}


@dataclass(frozen=True)
class Budget:
    type: str
    min: float | None = None
    max: float | None = None
    target: float | None = None

    @property
    def bounded(self) -> bool:
        """False for a bare "budget"/"cheap" cue that names no amount."""
        return any(value is not None for value in (self.min, self.max, self.target))

    def contains(self, price: float) -> bool:
        if not self.bounded:
            return False
        low = self.min if self.min is not None else 0.0
        high = self.max if self.max is not None else float("inf")
        if self.type == "target" and self.target is not None:
            low, high = self.target * 0.8, self.target * 1.2
        return low <= price <= high

    def anchor(self) -> float | None:
        """Single reference price used for proportional closeness."""
        if self.target is not None:
            return self.target
        if self.min is not None and self.max is not None:
            return (self.min + self.max) / 2
        return self.max if self.max is not None else self.min


@dataclass(frozen=True)
class FeatureRequirement:
    name: str
    priority: Priority
    trigger: str


@dataclass(frozen=True)
class QualityLevel:
    word: str
    min_rating: float
    priority: Priority


@dataclass(frozen=True)
class QueryOptions:
    category: str | None = None
    price_range: str | None = None
    sort_by: str = "relevance"
    page: int = 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "priceRange": self.price_range,
            "sortBy": self.sort_by,
            "page": self.page,
        }


@dataclass(frozen=True)
class Query:
    text: str
    options: QueryOptions = field(default_factory=QueryOptions)


@dataclass(frozen=True)
class NormalizedQuery:
    original: str
    normalized: str
    exact_match_variant: str
    expanded_variant: str
    attributes: Attributes
    intent: Intent
    intent_confidence: float
    confidence: float
    category_specific_variant: str | None = None
    budget: Budget | None = None
    features: Tuple[FeatureRequirement, ...] = ()
    quality_levels: Tuple[QualityLevel, ...] = ()
    use_case: str = "general"

    @property
    def terms(self) -> Tuple[str, ...]:
        return tuple(self.normalized.split())


@dataclass(frozen=True)
class CategoryScore:
    category: str
    score: float
    confidence: float
    reason: str = ""


@dataclass(frozen=True)
class MethodResult:
    method: str
    primary: CategoryScore
    alternatives: Tuple[CategoryScore, ...] = ()


@dataclass(frozen=True)
class Alternative:
    category: str
    confidence: float
    reason: str


@dataclass(frozen=True)
class CategoryClassification:
    primary_category: str
    confidence: float
    alternatives: Tuple[Alternative, ...] = ()
    contributing_methods: Tuple[str, ...] = ()
    uncertainty: str = "low"


@dataclass(frozen=True)
class RawProviderResult:
    """Provider payload reduced to title/link/snippet plus pagemap-like metadata."""

    title: str
    link: str
    snippet: str = ""
    pagemap: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Candidate:
    title: str
    url: str
    domain: str
    description: str = ""
    image: str | None = None
    price: str | None = None
    rating: float | None = None
    review_count: int | None = None
    gtin: str | None = None
    availability: Availability = Availability.UNKNOWN
    currency: str = "INR"
    seller: str | None = None
    source_provider: str = ""
    source_name: str = ""
    tier: Tier = Tier.PRIMARY
    has_structured_data: bool = False
    corroborating_tiers: Tuple[Tier, ...] = ()

    @property
    def text(self) -> str:
        return f"{self.title} {self.description}".lower()

    @property
    def tiers(self) -> Tuple[Tier, ...]:
        seen = [self.tier]
        for tier in self.corroborating_tiers:
            if tier not in seen:
                seen.append(tier)
        return tuple(seen)


@dataclass(frozen=True)
class Scores:
    lexical: float = 0.0
    semantic: float = 0.0
    attribute: float = 0.0
    cross_modal: float = 0.0
    relevance: float = 0.0
    business: float = 0.0
    behavioral: float = 0.5
    rrf: float = 0.0
    final: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "lexical": self.lexical,
            "semantic": self.semantic,
            "attribute": self.attribute,
            "crossModal": self.cross_modal,
            "relevance": self.relevance,
            "business": self.business,
            "behavioral": self.behavioral,
            "rrf": self.rrf,
            "final": self.final,
        }


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    scores: Scores
