"""Category classification: three independent methods and a weighted ensemble."""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Protocol, Sequence, Set, Tuple

from .attributes import contains_phrase, tokenize
from .config import EnsembleWeights
from .entities import Alternative, CategoryClassification, CategoryScore, MethodResult, NormalizedQuery
from .taxonomy import CATEGORIES, DEFAULT_CATEGORY, STOPWORDS, CategoryProfile, is_known_category

logger = logging.getLogger(__name__)

FALLBACK_REASON = "no rule matched"
CATEGORY_ORDER: Tuple[str, ...] = tuple(CATEGORIES)


class Classifier(Protocol):
    method: str

    def classify(self, query: NormalizedQuery) -> MethodResult: ...


def _model_number(model: str | None, prefix: str) -> int | None:
    if not model:
        return None
    match = re.fullmatch(rf"{prefix}(\d+)[a-z+]*", model)
    return int(match.group(1)) if match else None


def _any_phrase(text: str, phrases: Sequence[str]) -> bool:
    return any(contains_phrase(text, phrase) for phrase in phrases)


@dataclass(frozen=True)
class Rule:
    name: str
    category: str
    confidence: float
    predicate: Callable[[NormalizedQuery], bool]


def _samsung_series(prefix: str, high: int) -> Callable[[NormalizedQuery], bool]:
    def predicate(query: NormalizedQuery) -> bool:
        attrs = query.attributes
        number = _model_number(attrs.model, prefix)
        return attrs.brand == "samsung" and number is not None and 1 <= number <= high

    return predicate


def _iphone(query: NormalizedQuery) -> bool:
    attrs = query.attributes
    if attrs.series != "iphone" or not attrs.model:
        return False
    if attrs.model == "se":
        return True
    return attrs.model.isdigit() and 1 <= int(attrs.model) <= 20


def _pixel(query: NormalizedQuery) -> bool:
    return query.attributes.series == "pixel" and query.attributes.model is not None


DEFAULT_RULES: Tuple[Rule, ...] = (
    Rule("samsung galaxy s-series", "mobile_phones", 0.95, _samsung_series("s", 25)),
    Rule("samsung galaxy a-series", "mobile_phones", 0.95, _samsung_series("a", 100)),
    Rule("samsung galaxy m/f-series", "mobile_phones", 0.9, _samsung_series("[mf]", 99)),
    Rule("apple iphone", "mobile_phones", 0.95, _iphone),
    Rule("google pixel", "mobile_phones", 0.9, _pixel),
    Rule(
        "major appliance keyword",
        "home_appliances",
        0.9,
        lambda q: _any_phrase(
            q.normalized,
            ("washing machine", "refrigerator", "fridge", "microwave", "dishwasher", "air conditioner"),
        ),
    ),
    Rule(
        "phone keyword",
        "mobile_phones",
        0.85,
        lambda q: _any_phrase(q.normalized, ("phone", "smartphone", "mobile", "cell phone")),
    ),
    Rule(
        "electronics keyword",
        "electronics",
        0.85,
        lambda q: _any_phrase(
            q.normalized,
            ("tv", "television", "monitor", "speaker", "headphone", "earbud", "soundbar", "camera"),
        ),
    ),
    Rule(
        "computer keyword",
        "computers",
        0.85,
        lambda q: _any_phrase(
            q.normalized,
            ("laptop", "desktop", "computer", "macbook", "chromebook", "notebook", "tablet", "ipad"),
        ),
    ),
)


class RuleBasedClassifier:
    """Ordered hand-written predicates; the first match wins."""

    method = "rule_based"

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def classify(self, query: NormalizedQuery) -> MethodResult:
        for rule in self.rules:
            if rule.predicate(query):
                return MethodResult(
                    method=self.method,
                    primary=CategoryScore(rule.category, rule.confidence, rule.confidence, rule.name),
                )
        return MethodResult(
            method=self.method,
            primary=CategoryScore(DEFAULT_CATEGORY, 0.5, 0.5, FALLBACK_REASON),
        )


class FeatureBasedClassifier:
    """Weighted evidence per category definition."""

    method = "feature_based"

    BRAND_WEIGHT = 0.3
    MODEL_WEIGHT = 0.25
    KEYWORD_WEIGHT = 0.2
    PRICE_WEIGHT = 0.1
    FEATURE_WEIGHT = 0.15

    def _score(self, profile: CategoryProfile, query: NormalizedQuery) -> Tuple[float, List[str]]:
        text = query.normalized
        brand = query.attributes.brand
        score = 0.0
        reasons: List[str] = []
        if brand and brand in profile.brands:
            score += self.BRAND_WEIGHT
            reasons.append("brand")
        patterns = profile.model_patterns.get(brand or "", ())
        if any(re.search(rf"(?<![a-z0-9]){re.escape(pattern)}", text) for pattern in patterns):
            score += self.MODEL_WEIGHT
            reasons.append("model pattern")
        if _any_phrase(text, profile.keywords):
            score += self.KEYWORD_WEIGHT
            reasons.append("keyword")
        anchor = query.budget.anchor() if query.budget else None
        if anchor is not None and profile.price_band.min <= anchor <= profile.price_band.max:
            score += self.PRICE_WEIGHT
            reasons.append("price range")
        if _any_phrase(text, profile.feature_keywords):
            score += self.FEATURE_WEIGHT
            reasons.append("feature keyword")
        return min(1.0, score), reasons

    def classify(self, query: NormalizedQuery) -> MethodResult:
        scored: List[CategoryScore] = []
        for profile in CATEGORIES.values():
            score, reasons = self._score(profile, query)
            confidence = min(1.0, 0.5 + 0.1 * len(reasons)) if reasons else 0.0
            scored.append(CategoryScore(profile.id, round(score, 4), confidence, ", ".join(reasons)))
        scored.sort(key=lambda item: (-item.score, CATEGORY_ORDER.index(item.category)))
        alternatives = tuple(item for item in scored[1:3] if item.score > 0)
        return MethodResult(method=self.method, primary=scored[0], alternatives=alternatives)


def _stem(token: str) -> str:
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


class ZeroShotClassifier:
    """Keyword-overlap stand-in for zero-shot classification against category descriptions."""

    method = "zero_shot"

    COVERAGE_WEIGHT = 0.7
    PHRASE_WEIGHT = 0.3

    def __init__(self) -> None:
        self._vocabularies: Dict[str, Set[str]] = {}
        for profile in CATEGORIES.values():
            words: Set[str] = set(tokenize(profile.description))
            for phrase in profile.keywords + profile.brands:
                words.update(tokenize(phrase))
            for patterns in profile.model_patterns.values():
                for pattern in patterns:
                    words.update(tokenize(pattern))
            self._vocabularies[profile.id] = {_stem(word) for word in words if word not in STOPWORDS}

    def classify(self, query: NormalizedQuery) -> MethodResult:
        content = [
            _stem(token)
            for token in tokenize(query.normalized)
            if len(token) >= 2 and token not in STOPWORDS and not token.isdigit()
        ]
        scored: List[CategoryScore] = []
        for profile in CATEGORIES.values():
            vocabulary = self._vocabularies[profile.id]
            coverage = sum(1 for token in content if token in vocabulary) / len(content) if content else 0.0
            phrase_hit = 1.0 if _any_phrase(query.normalized, profile.keywords) else 0.0
            score = min(1.0, self.COVERAGE_WEIGHT * coverage + self.PHRASE_WEIGHT * phrase_hit)
            reason = f"coverage {coverage:.2f}" + (", keyword phrase" if phrase_hit else "")
            scored.append(CategoryScore(profile.id, round(score, 4), round(score, 4), reason))
        scored.sort(key=lambda item: (-item.score, CATEGORY_ORDER.index(item.category)))
        alternatives = tuple(item for item in scored[1:3] if item.score > 0)
        return MethodResult(method=self.method, primary=scored[0], alternatives=alternatives)


def _uncertainty(gap: float) -> str:
    if gap < 0.1:
        return "high"
    if gap < 0.3:
        return "medium"
    return "low"


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class CategoryClassifier:
    """Weighted ensemble over a list of :class:`Classifier` implementations."""

    def __init__(
        self,
        methods: Sequence[Classifier] | None = None,
        weights: EnsembleWeights | None = None,
    ) -> None:
        self.methods: Tuple[Classifier, ...] = tuple(
            methods or (RuleBasedClassifier(), FeatureBasedClassifier(), ZeroShotClassifier())
        )
        self.weights = weights or EnsembleWeights()

    def classify(self, query: NormalizedQuery, hint: str | None = None) -> CategoryClassification:
        try:
            classification = self._ensemble(query)
        except Exception:
            logger.exception("ensemble classification failed for %r, using rule-based fallback", query.normalized)
            classification = self._fallback(query)
        if is_known_category(hint):
            classification = self._apply_hint(classification, hint)
        logger.info(
            "classify q=%r primary=%s confidence=%.2f uncertainty=%s methods=%s",
            query.normalized,
            classification.primary_category,
            classification.confidence,
            classification.uncertainty,
            list(classification.contributing_methods),
        )
        return classification

    def _ensemble(self, query: NormalizedQuery) -> CategoryClassification:
        results = [method.classify(query) for method in self.methods]
        totals: Dict[str, float] = defaultdict(float)
        sources: Dict[str, List[str]] = defaultdict(list)
        for result in results:
            weight = self.weights.for_method(result.method)
            if result.primary.score > 0:
                totals[result.primary.category] += result.primary.score * weight
                sources[result.primary.category].append(result.method)
            for alternative in result.alternatives:
                totals[alternative.category] += alternative.score * weight * self.weights.alternative_factor
        if not totals:
            totals[DEFAULT_CATEGORY] = 0.0
        ranked = sorted(totals.items(), key=lambda item: (-item[1], CATEGORY_ORDER.index(item[0])))
        primary, primary_score = ranked[0]
        runner_up = ranked[1][1] if len(ranked) > 1 else 0.0

        agreeing = tuple(r.method for r in results if r.primary.category == primary and r.primary.score > 0)
        confidence = primary_score
        if len(agreeing) >= 2:
            confidence += self.weights.agreement_bonus
        if len(ranked) > 1 and primary_score - runner_up < self.weights.ambiguity_gap:
            confidence -= self.weights.ambiguity_penalty
        for result in results:
            explicit_rule = result.method == "rule_based" and result.primary.reason != FALLBACK_REASON
            if explicit_rule and result.primary.category == primary and result.primary.confidence >= 0.9:
                confidence = max(confidence, result.primary.confidence)
        confidence = round(_clamp(confidence), 4)

        alternatives = tuple(
            Alternative(
                category=category,
                confidence=round(min(_clamp(score), confidence), 4),
                reason=f"weighted score {score:.2f} via {', '.join(sources[category]) or 'alternatives'}",
            )
            for category, score in ranked[1:4]
            if score > 0
        )
        return CategoryClassification(
            primary_category=primary,
            confidence=confidence,
            alternatives=alternatives,
            contributing_methods=agreeing,
            uncertainty=_uncertainty(primary_score - runner_up),
        )

    def _fallback(self, query: NormalizedQuery) -> CategoryClassification:
        try:
            result = RuleBasedClassifier().classify(query)
            primary = result.primary
            return CategoryClassification(
                primary_category=primary.category,
                confidence=primary.confidence,
                contributing_methods=(result.method,),
                uncertainty="medium",
            )
        except Exception:
            logger.exception("rule-based fallback failed for %r", query.normalized)
            return CategoryClassification(
                primary_category=DEFAULT_CATEGORY,
                confidence=0.5,
                contributing_methods=("rule_based",),
                uncertainty="high",
            )

    @staticmethod
    def _apply_hint(classification: CategoryClassification, hint: str) -> CategoryClassification:
        confidence = 0.95
        alternatives: List[Alternative] = []
        if classification.primary_category != hint:
            alternatives.append(
                Alternative(
                    classification.primary_category,
                    min(classification.confidence, confidence),
                    "ensemble primary",
                )
            )
        alternatives.extend(
            Alternative(alt.category, min(alt.confidence, confidence), alt.reason)
            for alt in classification.alternatives
            if alt.category != hint
        )
        return CategoryClassification(
            primary_category=hint,
            confidence=confidence,
            alternatives=tuple(alternatives[:3]),
            contributing_methods=("user_hint",) + classification.contributing_methods,
            uncertainty="low",
        )
