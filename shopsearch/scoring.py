"""Per-candidate relevance sub-scores and their weighted combination.

Every sub-score lives in [0, 1]. "Semantic" and "cross-modal" are keyword
heuristics over the category tables, not embedding similarities.
"""
from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from rank_bm25 import BM25Okapi

from .attributes import (
    AttributeExtractor,
    contains_phrase,
    models_match,
    parse_price,
    storage_in_gb,
    tokenize,
)
from .config import RelevanceWeights
from .entities import (
    Attributes,
    Candidate,
    CategoryClassification,
    NormalizedQuery,
    ScoredCandidate,
    Scores,
)
from .taxonomy import STOPWORDS, CategoryProfile, get_category

logger = logging.getLogger(__name__)

VARIANT_COMPATIBLE_MODEL = 0.75


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def query_terms(query: NormalizedQuery) -> List[str]:
    terms: List[str] = []
    for token in tokenize(query.normalized):
        if len(token) < 2 or token in STOPWORDS or token in terms:
            continue
        terms.append(token)
    return terms


class CandidateBM25(BM25Okapi):
    """Okapi BM25 over one request's candidates.

    The average document length is pinned to the configured value and every
    term carries unit IDF, so a listing's lexical score does not move with the
    rest of the candidate set.
    """

    def __init__(self, documents: Sequence[Sequence[str]], weights: RelevanceWeights) -> None:
        super().__init__([list(document) for document in documents], k1=weights.bm25_k1, b=weights.bm25_b)
        self.avgdl = weights.bm25_avg_doc_len

    def _calc_idf(self, nd) -> None:
        self.idf = {term: 1.0 for term in nd}

    def normalized_scores(self, terms: Sequence[str]) -> List[float]:
        """Mean saturated term weight per document, divided by ``k1 + 1`` so each term is at most 1."""
        if not terms:
            return [0.0] * self.corpus_size
        ceiling = (self.k1 + 1) * len(terms)
        return [clamp(float(score) / ceiling) for score in self.get_scores(list(terms))]


def bm25_scores(terms: Sequence[str], documents: Sequence[Sequence[str]], weights: RelevanceWeights) -> List[float]:
    if not documents:
        return []
    return CandidateBM25(documents, weights).normalized_scores(terms)


def _ratio(text: str, keywords: Sequence[str]) -> float:
    if not keywords:
        return 0.0
    hits = sum(1 for keyword in keywords if contains_phrase(text, keyword))
    return hits / len(keywords)


def semantic_score(text: str, profile: CategoryProfile) -> float:
    exclusions = sum(1 for keyword in profile.semantic_exclusion if contains_phrase(text, keyword))
    raw = 0.7 * _ratio(text, profile.semantic_primary) + 0.3 * _ratio(text, profile.semantic_secondary) - 0.2 * exclusions
    return clamp(raw)


def _numeric_closeness(wanted: float, offered: float) -> float:
    if wanted <= 0 or offered <= 0:
        return 0.0
    return min(wanted, offered) / max(wanted, offered)


def attribute_score(query: NormalizedQuery, listing: Attributes, price: float | None) -> float:
    """Average per-attribute agreement over the attributes both sides expose."""
    wanted = query.attributes
    compared: List[float] = []
    wanted_gb, offered_gb = storage_in_gb(wanted.storage), storage_in_gb(listing.storage)
    if wanted_gb and offered_gb:
        compared.append(_numeric_closeness(wanted_gb, offered_gb))
    if wanted.color and listing.color:
        compared.append(1.0 if wanted.color == listing.color else 0.0)
    if wanted.model and listing.model:
        if wanted.model == listing.model and wanted.variant == listing.variant:
            compared.append(1.0)
        elif models_match(wanted.model, listing.model) and (
            wanted.variant is None or wanted.variant == listing.variant
        ):
            compared.append(VARIANT_COMPATIBLE_MODEL)
        else:
            compared.append(0.0)
    if query.budget and query.budget.bounded and price:
        anchor = query.budget.anchor()
        if query.budget.contains(price):
            compared.append(1.0)
        elif anchor:
            compared.append(clamp(1 - abs(price - anchor) / anchor))
    if not compared:
        return 0.0
    return sum(compared) / len(compared)


def cross_modal_score(candidate: Candidate, profile: CategoryProfile) -> float:
    text = candidate.text
    score = 0.0
    image = (candidate.image or "").lower()
    if image and any(keyword in image for keyword in profile.image_keywords) and any(
        contains_phrase(candidate.title.lower(), keyword) for keyword in profile.image_keywords
    ):
        score += 0.3
    if any(contains_phrase(candidate.description.lower(), keyword) for keyword in profile.specification_keywords):
        score += 0.2
    keyword_hits = sum(1 for keyword in profile.keywords if contains_phrase(text, keyword))
    score += 0.5 * min(1.0, keyword_hits / 3)
    return clamp(score)


class RelevanceScorer:
    def __init__(
        self,
        weights: RelevanceWeights | None = None,
        extractor: AttributeExtractor | None = None,
    ) -> None:
        self.weights = weights or RelevanceWeights()
        self.extractor = extractor or AttributeExtractor()

    def combination_weights(self, classification: CategoryClassification) -> Tuple[float, float, float, float]:
        w = self.weights
        lexical, semantic, attribute, cross_modal = w.lexical, w.semantic, w.attribute, w.cross_modal
        if classification.confidence > w.confident_threshold:
            semantic += w.confident_shift
            lexical -= w.confident_shift / 2
            attribute -= w.confident_shift / 2
        return lexical, semantic, attribute, cross_modal

    def score_candidate(
        self,
        candidate: Candidate,
        query: NormalizedQuery,
        classification: CategoryClassification,
        lexical: float | None = None,
    ) -> Scores:
        profile = get_category(classification.primary_category)
        text = candidate.text
        listing = self.extractor.extract(text)
        if lexical is None:
            [lexical] = bm25_scores(query_terms(query), [tokenize(text)], self.weights)
        semantic = semantic_score(text, profile)
        attribute = attribute_score(query, listing, parse_price(candidate.price))
        cross_modal = cross_modal_score(candidate, profile)
        w_lex, w_sem, w_attr, w_cross = self.combination_weights(classification)
        relevance = clamp(w_lex * lexical + w_sem * semantic + w_attr * attribute + w_cross * cross_modal)
        return Scores(
            lexical=lexical,
            semantic=semantic,
            attribute=attribute,
            cross_modal=cross_modal,
            relevance=relevance,
            final=relevance,
        )

    def score(
        self,
        candidates: Sequence[Candidate],
        query: NormalizedQuery,
        classification: CategoryClassification,
    ) -> List[ScoredCandidate]:
        lexical = bm25_scores(query_terms(query), [tokenize(candidate.text) for candidate in candidates], self.weights)
        scored = [
            ScoredCandidate(candidate, self.score_candidate(candidate, query, classification, lexical_score))
            for candidate, lexical_score in zip(candidates, lexical)
        ]
        # sorted() is stable, so equal relevance keeps retrieval order.
        scored = sorted(scored, key=lambda item: -item.scores.relevance)
        if scored:
            logger.info(
                "relevance: scored=%s top=%.3f bottom=%.3f",
                len(scored),
                scored[0].scores.relevance,
                scored[-1].scores.relevance,
            )
        return scored
