"""Query normalization, budgets, features, intent and variants."""

import pytest

from shopsearch.entities import CategoryClassification, Intent, Priority
from shopsearch.errors import InvalidQueryError
from shopsearch.query_understanding import QueryUnderstanding


@pytest.fixture
def understanding():
    return QueryUnderstanding()


def test_specific_model_query(understanding):
    """Brand, series and model are extracted from a plain model query."""

    query = understanding.normalize("Samsung Galaxy S25")

    assert query.normalized == "samsung galaxy s25"
    assert query.attributes.brand == "samsung"
    assert query.attributes.series == "galaxy"
    assert query.attributes.model == "s25"
    assert query.intent is Intent.SPECIFIC_MODEL
    assert query.exact_match_variant.startswith('"samsung galaxy s25"')
    assert "-case" in query.exact_match_variant
    assert 0.0 <= query.confidence <= 1.0


@pytest.mark.parametrize("raw", ["", "   ", "\t\n"])
def test_blank_query_is_rejected(understanding, raw):
    with pytest.raises(InvalidQueryError):
        understanding.normalize(raw)


def test_budget_without_camera_adjective(understanding):
    """"camera phone" alone names the category, not a camera requirement."""

    query = understanding.normalize("under 50k camera phone")

    assert query.budget is not None
    assert query.budget.type == "max"
    assert query.budget.max == 50000
    assert "camera_quality" not in {feature.name for feature in query.features}


def test_budget_with_camera_adjective(understanding):
    """"good camera" is an essential camera requirement."""

    query = understanding.normalize("good camera phone under 50k")
    features = {feature.name: feature for feature in query.features}

    assert query.budget.type == "max"
    assert query.budget.max == 50000
    assert features["camera_quality"].priority is Priority.ESSENTIAL


def test_budget_range_and_lakh(understanding):
    ranged = understanding.normalize("phone between 20k and 30k")
    target = understanding.normalize("laptop around 1.5 lakh")

    assert (ranged.budget.type, ranged.budget.min, ranged.budget.max) == ("range", 20000, 30000)
    assert (target.budget.type, target.budget.target) == ("target", 150000)


def test_priority_cue_raises_feature_priority(understanding):
    """A "must have" in front of a preferred feature makes it essential."""

    query = understanding.normalize("must have big display phone")
    features = {feature.name: feature for feature in query.features}

    assert features["display"].priority is Priority.ESSENTIAL


def test_misspellings_are_corrected(understanding):
    """Table misspellings and phonetic near-misses both resolve to the brand."""

    assert understanding.normalize("samsang galaxy s25").normalized == "samsung galaxy s25"
    iphone = understanding.normalize("iphne 15 pro")
    assert iphone.normalized == "iphone 15 pro"
    assert iphone.attributes.brand == "apple"
    assert iphone.attributes.model == "15"
    assert iphone.attributes.variant == "pro"


def test_plural_and_quality_and_use_case(understanding):
    query = understanding.normalize("best gaming laptops for college students")

    assert "laptop" in query.terms
    assert [level.word for level in query.quality_levels] == ["best"]
    assert query.use_case == "gaming"


@pytest.mark.parametrize(
    "raw,intent",
    [
        ("samsung vs apple", Intent.COMPARISON),
        ("washing machine", Intent.CATEGORY_BROWSING),
        ("samsung", Intent.BRAND_EXPLORATION),
        ("something nice", Intent.GENERAL),
    ],
)
def test_intent_order(understanding, raw, intent):
    assert understanding.normalize(raw).intent is intent


def test_expanded_variant_adds_synonyms(understanding):
    query = understanding.normalize("samsung phone")

    assert query.expanded_variant.startswith("samsung phone")
    assert "smartphone" in query.expanded_variant
    assert "galaxy" in query.expanded_variant


def test_build_variants_rebuilds_instead_of_mutating(understanding):
    """Phase two returns a new query; the first one is untouched."""

    query = understanding.normalize("samsung phone")
    rebuilt = understanding.build_variants(query, CategoryClassification("mobile_phones", 0.95))

    assert query.category_specific_variant is None
    assert rebuilt.category_specific_variant.startswith("samsung phone ")
    assert "smartphone" in rebuilt.category_specific_variant
    assert rebuilt.confidence > query.confidence
    assert rebuilt.normalized == query.normalized
