"""Category ensemble: rules, feature evidence, keyword overlap and fallbacks."""

import pytest

from shopsearch.classifier import CategoryClassifier, FeatureBasedClassifier, RuleBasedClassifier, ZeroShotClassifier
from shopsearch.query_understanding import QueryUnderstanding

UNDERSTANDING = QueryUnderstanding()


def normalized(text):
    return UNDERSTANDING.normalize(text)


class BrokenClassifier:
    method = "feature_based"

    def classify(self, query):
        raise RuntimeError("model unavailable")


def test_samsung_s_series_is_a_phone():
    """Explicit Samsung S-series rule keeps confidence at or above 0.9."""

    result = CategoryClassifier().classify(normalized("samsung galaxy s25"))

    assert result.primary_category == "mobile_phones"
    assert result.confidence >= 0.9
    assert "rule_based" in result.contributing_methods


def test_washing_machine_is_an_appliance():
    result = CategoryClassifier().classify(normalized("washing machine"))

    assert result.primary_category == "home_appliances"
    assert result.confidence > 0.7


@pytest.mark.parametrize(
    "text,category",
    [
        ("iphone 15", "mobile_phones"),
        ("gaming laptop under 80000", "computers"),
        ("noise cancelling headphones", "electronics"),
        ("double door fridge", "home_appliances"),
    ],
)
def test_common_queries(text, category):
    assert CategoryClassifier().classify(normalized(text)).primary_category == category


@pytest.mark.parametrize(
    "text",
    ["samsung galaxy s25", "washing machine", "samsung", "camera", "apple laptop", "something nice"],
)
def test_primary_confidence_dominates_alternatives(text):
    """No alternative is ever more confident than the primary category."""

    result = CategoryClassifier().classify(normalized(text))

    assert 0.0 <= result.confidence <= 1.0
    for alternative in result.alternatives:
        assert alternative.confidence <= result.confidence
        assert alternative.category != result.primary_category


def test_broken_method_falls_back_to_rules():
    classifier = CategoryClassifier(methods=[RuleBasedClassifier(), BrokenClassifier()])

    result = classifier.classify(normalized("samsung galaxy s25"))

    assert result.primary_category == "mobile_phones"
    assert result.contributing_methods == ("rule_based",)


def test_fallback_without_rule_match_is_electronics():
    classifier = CategoryClassifier(methods=[BrokenClassifier()])

    result = classifier.classify(normalized("something nice"))

    assert result.primary_category == "electronics"
    assert result.confidence == 0.5


def test_user_hint_overrides_ensemble():
    """A known category hint wins; the ensemble's pick becomes an alternative."""

    result = CategoryClassifier().classify(normalized("samsung galaxy s25"), hint="computers")

    assert result.primary_category == "computers"
    assert result.contributing_methods[0] == "user_hint"
    assert "mobile_phones" in [alt.category for alt in result.alternatives]
    assert all(alt.confidence <= result.confidence for alt in result.alternatives)


def test_unknown_hint_is_ignored():
    result = CategoryClassifier().classify(normalized("samsung galaxy s25"), hint="furniture")

    assert result.primary_category == "mobile_phones"


def test_individual_methods_agree_on_clear_queries():
    query = normalized("samsung galaxy s25 5g smartphone")

    for method in (RuleBasedClassifier(), FeatureBasedClassifier(), ZeroShotClassifier()):
        assert method.classify(query).primary.category == "mobile_phones"
