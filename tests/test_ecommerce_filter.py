"""Domain, category and product-signal gates plus deduplication."""

import pytest
from conftest import candidate

from shopsearch.ecommerce_filter import EcommerceFilter, dedup_key, dedup_keys, domain_allowed
from shopsearch.entities import Availability, CategoryClassification, Tier

PHONES = CategoryClassification("mobile_phones", 0.95)
APPLIANCES = CategoryClassification("home_appliances", 0.9)
UNSURE = CategoryClassification("mobile_phones", 0.6)


def phone(url="https://www.flipkart.com/samsung-galaxy-s25/p/itm8f2c9a1b3d4e5", **fields):
    values = dict(
        description="Buy Samsung Galaxy S25 smartphone online. Free delivery.",
        price="₹80,999",
        availability=Availability.IN_STOCK,
    )
    values.update(fields)
    return candidate("Samsung Galaxy S25 Ultra", url, **values)


def washer(**fields):
    return candidate(
        "LG 8 kg Front Load Washing Machine",
        "https://www.croma.com/lg-8-kg-front-load-washing-machine/p/244511",
        "Buy LG washing machine with inverter motor and phone app control at ₹32,990.",
        **fields,
    )


@pytest.mark.parametrize(
    "domain,allowed",
    [
        ("amazon.in", True),
        ("m.flipkart.com", True),
        ("shop.example.com", True),
        ("reddit.com", False),
        ("old.reddit.com", False),
        ("techblog.in", False),
        ("news.example.com", False),
        ("gadget-forum.net", False),
    ],
)
def test_domain_allowed(domain, allowed):
    assert domain_allowed(domain) is allowed


def test_forum_thread_rejected_by_domain_gate():
    """Keyword overlap never rescues a blocked domain."""

    thread = candidate(
        "Best phones 2024 discussion",
        "https://www.reddit.com/r/IndianGaming/comments/abc/best_phones_2024",
        "Buy the best smartphone phone mobile at ₹20,000 in stock",
        price="₹20,000",
    )

    assert EcommerceFilter().rejecting_gate(thread, PHONES) == "domain"


def test_category_gate_blocks_phones_for_appliance_query():
    assert EcommerceFilter().rejecting_gate(phone(), APPLIANCES) == "category"


def test_category_gate_blocks_appliances_for_phone_query():
    """A phone keyword does not help a listing that is plainly a washing machine."""

    assert EcommerceFilter().rejecting_gate(washer(), PHONES) == "category"
    assert EcommerceFilter().rejecting_gate(washer(), APPLIANCES) is None


def test_category_gate_skipped_when_classification_unsure():
    assert EcommerceFilter().rejecting_gate(washer(), UNSURE) is None


def test_signal_score_rewards_product_pages():
    listing = phone(image="https://img.example.com/s25.jpg", review_count=120, has_structured_data=True)

    assert EcommerceFilter().signal_score(listing) >= 8


def test_informational_page_rejected():
    specs = candidate(
        "Samsung Galaxy S25 specs and review",
        "https://www.gsmarena.com/specs/samsung-galaxy-s25",
        "Full specifications of the Samsung Galaxy S25 smartphone.",
    )

    assert EcommerceFilter().rejecting_gate(specs, PHONES) == "signals"


def test_accessory_penalty_only_without_main_product():
    """A bare case listing is penalised; a phone bundled "with case" is not."""

    case = candidate("Spigen Tough Armor Case Cover", "https://www.spigen.example/armor-cover", "")
    bundle = candidate(
        "Samsung Galaxy S25 with case",
        "https://www.croma.com/samsung-galaxy-s25/p/311112",
        "",
        price="₹79,999",
    )
    gate = EcommerceFilter()

    assert gate.signal_score(case) < 0
    assert gate.signal_score(bundle) > 0


def test_duplicate_gtin_keeps_first_and_records_tier():
    first = phone(gtin="8801643711013", tier=Tier.PRIMARY)
    second = phone(
        url="https://www.tatacliq.com/samsung-galaxy-s25/p-mp000000023456789",
        gtin="8801643711013",
        tier=Tier.SECONDARY,
    )

    kept = EcommerceFilter().filter([first, second], PHONES)

    assert len(kept) == 1
    assert kept[0].url == first.url
    assert kept[0].tier is Tier.PRIMARY
    assert kept[0].corroborating_tiers == (Tier.SECONDARY,)


def test_asin_urls_deduplicate_across_query_strings():
    a = phone(url="https://www.amazon.in/Samsung-Galaxy-S25/dp/B0DSKMKJV5?ref=sr_1")
    b = phone(url="https://www.amazon.in/dp/B0DSKMKJV5/?th=1")

    assert dedup_key(a) == dedup_key(b) == "asin:B0DSKMKJV5"
    assert len(EcommerceFilter().filter([a, b], PHONES)) == 1


def test_structured_gtin_and_url_asin_name_the_same_listing():
    tagged = phone(url="https://www.amazon.in/Samsung-Galaxy-S25/dp/B0DSKL9MQ8", gtin="8801643711013")
    untagged = phone(url="https://www.amazon.in/dp/B0DSKL9MQ8?th=1", tier=Tier.SECONDARY)

    kept = EcommerceFilter().filter([tagged, untagged], PHONES)

    assert dedup_keys(tagged)[:2] == ("gtin:8801643711013", "asin:B0DSKL9MQ8")
    assert len(kept) == 1
    assert kept[0].gtin == "8801643711013"
    assert kept[0].corroborating_tiers == (Tier.SECONDARY,)


def test_same_url_without_identifiers_is_a_duplicate():
    listing = "https://www.croma.com/samsung-galaxy-s25/p/311110"
    first = phone(url=listing, gtin="8801643711013")
    second = phone(url=listing + "/")

    assert len(EcommerceFilter().filter([first, second], PHONES)) == 1


def test_filter_output_has_unique_identifiers_and_report():
    listings = [
        phone(),
        phone(),
        phone(url="https://www.croma.com/samsung-galaxy-s25-ultra/p/311111"),
        washer(),
        candidate("Best phones 2024 discussion", "https://reddit.com/r/a", ""),
    ]
    kept, report = EcommerceFilter().filter_with_report(listings, PHONES)
    keys = [dedup_key(item) for item in kept]

    assert len(keys) == len(set(keys)) == 2
    assert report.received == 5
    assert report.rejected == {"category": 1, "domain": 1}
    assert report.duplicates == 1
    assert report.kept == 2
