"""Query normalization, attribute extraction, intent detection and variants.

Two phases:

    1) :meth:`QueryUnderstanding.normalize` cleans the raw text (lowercase,
       colloquial phrases, misspellings, currency shorthand, plurals, phonetic
       brand correction), extracts attributes, budget and feature hints,
       classifies intent and builds the exact-match and synonym-expanded
       variants.
    2) :meth:`QueryUnderstanding.build_variants` runs once the category is
       known and returns a rebuilt query carrying the category-specific
       variant and the category confidence bonus.
"""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, List, Set, Tuple

from .attributes import AttributeExtractor, contains_phrase, tokenize
from .entities import (
    Attributes,
    Budget,
    CategoryClassification,
    FeatureRequirement,
    Intent,
    NormalizedQuery,
    Priority,
    QualityLevel,
)
from .errors import InvalidQueryError
from .phonetics import closest_brand, fold_text
from .taxonomy import (
    ACCESSORY_EXCLUSIONS,
    BRAND_ALIASES,
    BRAND_EXPANSIONS,
    BRANDS,
    CATEGORIES,
    COLLOQUIAL_PHRASES,
    COLORS,
    MISSPELLINGS,
    PLURALS,
    STOPWORDS,
    SYNONYMS,
    get_category,
)

logger = logging.getLogger(__name__)

UNIT_MULTIPLIERS: Dict[str, float] = {
    "thousand": 1_000,
    "lakh": 100_000,
    "crore": 10_000_000,
}

_AMOUNT = r"(\d+(?:\.\d+)?)\s*(thousand|lakh|crore)?"
_CURRENCY_RULES: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?:₹|\brs\.?|\binr)\s*(?=\d)"), " "),
    (re.compile(r"(?<=\d),(?=\d)"), ""),
    (re.compile(r"(\d+(?:\.\d+)?)\s*k\b(?!\s*(?:tv|uhd|hdr|display|monitor|video|resolution|screen))"), r"\1 thousand"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:lakhs?|lacs?)\b"), r"\1 lakh"),
    (re.compile(r"\b(\d{1,2}(?:\.\d+)?)\s*l\b"), r"\1 lakh"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:crores?|cr)\b"), r"\1 crore"),
    (re.compile(r"\b(?:rupees|rs)\b\.?"), " "),
    (
        re.compile(
            r"\bbetween\s+(\d+(?:\.\d+)?(?:\s*(?:thousand|lakh|crore))?)\s*(?:-|to|and)\s*"
            r"(\d+(?:\.\d+)?(?:\s*(?:thousand|lakh|crore))?)"
        ),
        r"range \1 to \2",
    ),
    (
        re.compile(r"(?<!to )\b(\d+(?:\.\d+)?\s*(?:thousand|lakh|crore))\s*-\s*(\d+(?:\.\d+)?\s*(?:thousand|lakh|crore))"),
        r"range \1 to \2",
    ),
    (re.compile(r"\b(?:under|below|less than|within|up ?to|max(?:imum)?)\s+(?=\d)"), "max "),
    (re.compile(r"\b(?:above|over|more than|min(?:imum)?|at least)\s+(?=\d)"), "min "),
    (re.compile(r"\b(?:around|about|approx(?:imately)?|near)\s+(?=\d)"), "target "),
)

_RANGE_RE = re.compile(rf"\brange\s+{_AMOUNT}\s+to\s+{_AMOUNT}")
_BOUND_RE = re.compile(rf"\b(max|min|target)\s+{_AMOUNT}")
_UNIT_AMOUNT_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s*(thousand|lakh|crore)\b")
_BARE_AMOUNT_RE = re.compile(r"(?<![a-z0-9.])(\d{4,7})(?![a-z0-9.])(?!\s*(?:gb|tb|mb|mah|mp|hz|w|inch)\b)")

_COMPARISON_RE = re.compile(r"\b(?:vs|versus|compare|comparison|difference between)\b")

# (feature name, trigger pattern, default priority)
FEATURE_PATTERNS: Tuple[Tuple[str, re.Pattern[str], Priority], ...] = (
    ("camera_quality", re.compile(r"\b(?:good|great|excellent|best|amazing|nice|better)\s+camera\b"), Priority.ESSENTIAL),
    (
        "battery_life",
        re.compile(r"\b(?:long|good|great|big|excellent|best)\s+battery(?:\s+life)?\b|\b\d{4,5}\s*mah\b"),
        Priority.ESSENTIAL,
    ),
    (
        "performance",
        re.compile(r"\b(?:fast|smooth|powerful|high)\s+(?:performance|processor)\b"),
        Priority.ESSENTIAL,
    ),
    ("display", re.compile(r"\b(?:good|great|amoled|oled|big|large)\s+(?:display|screen)\b"), Priority.PREFERRED),
    ("gaming", re.compile(r"\bgaming\b"), Priority.PREFERRED),
    ("photography", re.compile(r"\b(?:photography|vlogging)\b"), Priority.PREFERRED),
    ("student", re.compile(r"\b(?:students?|college)\b"), Priority.NICE_TO_HAVE),
    ("budget", re.compile(r"\b(?:budget|affordable|cheap|value for money)\b"), Priority.NICE_TO_HAVE),
    ("premium", re.compile(r"\b(?:premium|flagship|luxury)\b"), Priority.NICE_TO_HAVE),
)

FEATURE_WORDS: Tuple[str, ...] = (
    "camera",
    "battery",
    "performance",
    "processor",
    "display",
    "screen",
    "gaming",
    "photography",
    "vlogging",
    "student",
    "college",
    "budget",
    "affordable",
    "premium",
    "flagship",
    "luxury",
)

PRIORITY_CUES: Tuple[Tuple[Tuple[str, ...], Priority], ...] = (
    (("essential", "need", "must", "required"), Priority.ESSENTIAL),
    (("preferred", "prefer", "ideally"), Priority.PREFERRED),
)

QUALITY_LEVELS: Dict[str, Tuple[float, Priority]] = {
    "best": (4.9, Priority.ESSENTIAL),
    "excellent": (4.8, Priority.ESSENTIAL),
    "top": (4.7, Priority.ESSENTIAL),
    "great": (4.5, Priority.ESSENTIAL),
    "good": (4.0, Priority.PREFERRED),
    "decent": (3.5, Priority.NICE_TO_HAVE),
}

USE_CASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("gaming", ("gaming", "gamer", "game")),
    ("photography", ("photography", "photo", "vlogging", "selfie")),
    ("student", ("student", "students", "college", "school")),
    ("business", ("business", "work", "professional", "office")),
    ("casual", ("casual", "daily", "everyday")),
)

INTENT_CONFIDENCE: Dict[Intent, float] = {
    Intent.SPECIFIC_MODEL: 0.9,
    Intent.COMPARISON: 0.85,
    Intent.BRAND_EXPLORATION: 0.75,
    Intent.CATEGORY_BROWSING: 0.7,
    Intent.GENERAL: 0.5,
}


def _replace_phrases(text: str, table: Dict[str, str]) -> str:
    for phrase in sorted(table, key=len, reverse=True):
        pattern = rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])"
        text = re.sub(pattern, table[phrase], text)
    return text


def _amount(value: str, unit: str | None) -> float:
    return float(value) * UNIT_MULTIPLIERS.get(unit or "", 1)


def _build_vocabulary() -> Set[str]:
    vocabulary: Set[str] = set(BRANDS) | set(BRAND_ALIASES) | set(COLORS) | set(STOPWORDS)
    vocabulary |= set(PLURALS) | set(PLURALS.values())
    for key, values in SYNONYMS.items():
        vocabulary.update(tokenize(key))
        for value in values:
            vocabulary.update(tokenize(value))
    for profile in CATEGORIES.values():
        vocabulary.update(tokenize(profile.description))
        for phrase in profile.keywords + profile.feature_keywords + profile.specification_keywords:
            vocabulary.update(tokenize(phrase))
    vocabulary.update(FEATURE_WORDS)
    for name, words in USE_CASES:
        vocabulary.add(name)
        vocabulary.update(words)
    vocabulary.update(ACCESSORY_EXCLUSIONS)
    vocabulary.update(QUALITY_LEVELS)
    return vocabulary


class QueryUnderstanding:
    """Turns raw user text into a :class:`NormalizedQuery`."""

    def __init__(self, extractor: AttributeExtractor | None = None) -> None:
        self.extractor = extractor or AttributeExtractor()
        self._vocabulary = _build_vocabulary()

    # -- phase one -----------------------------------------------------
    def normalize(self, raw_query: str) -> NormalizedQuery:
        if raw_query is None or not raw_query.strip():
            raise InvalidQueryError()
        normalized = self.normalize_text(raw_query)
        attributes = self.extract_attributes(normalized)
        intent, intent_confidence = self.classify_intent(normalized, attributes)
        query = NormalizedQuery(
            original=raw_query,
            normalized=normalized,
            exact_match_variant=self._exact_match_variant(normalized, attributes),
            expanded_variant=self._expanded_variant(normalized, attributes),
            attributes=attributes,
            intent=intent,
            intent_confidence=intent_confidence,
            confidence=self._confidence(attributes, intent, None),
            budget=self.extract_budget(normalized),
            features=self.extract_features(normalized),
            quality_levels=self.extract_quality_levels(normalized),
            use_case=self.detect_use_case(normalized),
        )
        logger.info(
            "normalize raw=%r normalized=%r intent=%s attributes=%s confidence=%.2f",
            raw_query,
            normalized,
            intent.value,
            attributes.present(),
            query.confidence,
        )
        return query

    def normalize_text(self, raw_query: str) -> str:
        lowered = " ".join(raw_query.lower().split())
        text = _replace_phrases(lowered, COLLOQUIAL_PHRASES)
        text = _replace_phrases(text, MISSPELLINGS)
        for pattern, replacement in _CURRENCY_RULES:
            text = pattern.sub(replacement, text)
        folded = fold_text(text)
        tokens = [PLURALS.get(token, token) for token in folded.split()]
        corrected: List[str] = []
        for token in tokens:
            if token in self._vocabulary or not token.isalpha():
                corrected.append(token)
                continue
            brand = closest_brand(token, BRANDS)
            if brand and brand != token:
                logger.info("spell-correct token=%r -> %r", token, brand)
            corrected.append(brand or token)
        normalized = " ".join(corrected)
        logger.debug("normalize_text raw=%r lowered=%r currency=%r normalized=%r", raw_query, lowered, text, normalized)
        return normalized or lowered

    def extract_attributes(self, text: str) -> Attributes:
        return self.extractor.extract(text)

    def classify_intent(self, text: str, attributes: Attributes) -> Tuple[Intent, float]:
        """First match wins: specific model, comparison, category, brand, general."""
        if attributes.model or self._has_brand_model_token(text):
            intent = Intent.SPECIFIC_MODEL
        elif _COMPARISON_RE.search(text):
            intent = Intent.COMPARISON
        elif self._category_keyword_hit(text):
            intent = Intent.CATEGORY_BROWSING
        elif attributes.brand:
            intent = Intent.BRAND_EXPLORATION
        else:
            intent = Intent.GENERAL
        return intent, INTENT_CONFIDENCE[intent]

    def extract_budget(self, text: str) -> Budget | None:
        match = _RANGE_RE.search(text)
        if match:
            low_value, low_unit, high_value, high_unit = match.groups()
            low = _amount(low_value, low_unit or high_unit)
            high = _amount(high_value, high_unit)
            low, high = min(low, high), max(low, high)
            return Budget(type="range", min=low, max=high)
        match = _BOUND_RE.search(text)
        if match:
            kind, value, unit = match.groups()
            amount = _amount(value, unit)
            if kind == "max":
                return Budget(type="max", max=amount)
            if kind == "min":
                return Budget(type="min", min=amount)
            return Budget(type="target", target=amount)
        match = _UNIT_AMOUNT_RE.search(text)
        if match:
            return Budget(type="target", target=_amount(*match.groups()))
        for bare in _BARE_AMOUNT_RE.finditer(text):
            value = bare.group(1)
            if len(value) == 4 and value.startswith(("19", "20")):
                continue
            return Budget(type="target", target=float(value))
        if re.search(r"\b(?:budget|affordable|cheap)\b", text):
            return Budget(type="flexible")
        return None

    def extract_features(self, text: str) -> Tuple[FeatureRequirement, ...]:
        features: List[FeatureRequirement] = []
        seen = set()
        for name, pattern, default_priority in FEATURE_PATTERNS:
            match = pattern.search(text)
            if not match or name in seen:
                continue
            seen.add(name)
            preceding = text[: match.start()].split()[-4:]
            priority = default_priority
            for cues, cue_priority in PRIORITY_CUES:
                if any(cue in preceding for cue in cues):
                    priority = cue_priority
                    break
            features.append(FeatureRequirement(name=name, priority=priority, trigger=match.group(0)))
        return tuple(features)

    def extract_quality_levels(self, text: str) -> Tuple[QualityLevel, ...]:
        tokens = set(text.split())
        return tuple(
            QualityLevel(word=word, min_rating=rating, priority=priority)
            for word, (rating, priority) in QUALITY_LEVELS.items()
            if word in tokens
        )

    def detect_use_case(self, text: str) -> str:
        tokens = set(text.split())
        if "daily use" in text:
            return "casual"
        for name, words in USE_CASES:
            if tokens.intersection(words):
                return name
        return "general"

    # -- phase two -----------------------------------------------------
    def build_variants(self, query: NormalizedQuery, classification: CategoryClassification) -> NormalizedQuery:
        """Return a rebuilt query with the category variant and confidence bonus."""
        profile = get_category(classification.primary_category)
        extra = [keyword for keyword in profile.keywords if not contains_phrase(query.normalized, keyword)][:3]
        category_variant = " ".join([query.normalized] + extra)
        confidence = self._confidence(query.attributes, query.intent, classification.confidence)
        return replace(query, category_specific_variant=category_variant, confidence=confidence)

    # -- helpers -------------------------------------------------------
    def _has_brand_model_token(self, text: str) -> bool:
        tokens = text.split()
        for current, following in zip(tokens, tokens[1:]):
            if self.extractor.is_brand_token(current) and re.fullmatch(r"[a-z]*\d+[a-z0-9+]*", following):
                if not re.fullmatch(r"\d+(?:gb|tb|mb)", following):
                    return True
        return False

    def _category_keyword_hit(self, text: str) -> bool:
        return any(
            contains_phrase(text, keyword)
            for profile in CATEGORIES.values()
            for keyword in profile.keywords
            if not self.extractor.is_brand_token(keyword)
        )

    def _exact_match_variant(self, text: str, attributes: Attributes) -> str:
        core_parts = [attributes.brand, attributes.series, attributes.model, attributes.variant]
        core = " ".join(part for part in core_parts if part)
        if not attributes.model:
            core = text
        parts = [f'"{core}"']
        if attributes.storage:
            parts.append(attributes.storage)
        if attributes.color:
            parts.append(attributes.color)
        for term in ACCESSORY_EXCLUSIONS:
            parts.append(f'-"{term}"' if " " in term else f"-{term}")
        return " ".join(parts)

    def _expanded_variant(self, text: str, attributes: Attributes) -> str:
        additions: List[str] = []
        for key, values in SYNONYMS.items():
            if contains_phrase(text, key):
                additions.extend(values)
        if attributes.brand:
            additions.extend(BRAND_EXPANSIONS.get(attributes.brand, ()))
        unique: List[str] = []
        for term in additions:
            if term not in unique and not contains_phrase(text, term):
                unique.append(term)
        return " ".join([text] + unique)

    @staticmethod
    def _confidence(attributes: Attributes, intent: Intent, category_confidence: float | None) -> float:
        score = 0.5
        if attributes.brand:
            score += 0.1
        if attributes.model:
            score += 0.2
        if attributes.series:
            score += 0.1
        if attributes.storage:
            score += 0.05
        if attributes.color:
            score += 0.05
        if intent is Intent.SPECIFIC_MODEL:
            score += 0.2
        if category_confidence is not None:
            if category_confidence > 0.8:
                score += 0.1
            if category_confidence > 0.9:
                score += 0.1
        return min(1.0, round(score, 4))
