"""Canonical attribute patterns shared by query-side and listing-side parsing.

Every regex that reads a brand, model, storage size, colour, price, rating,
review count or product identifier lives here, so a query such as
``"galaxy s25 256gb"`` and a listing titled ``"Samsung Galaxy S25 (256 GB)"``
are parsed by exactly the same rules.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple
from urllib.parse import urlsplit

from .entities import Attributes, Availability
from .taxonomy import BRAND_ALIASES, BRANDS, COLORS

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"[a-z0-9]+")
STORAGE_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s*(gb|tb|mb)\b(?!\s*(?:ram|of ram|memory))")
YEAR_RE = re.compile(r"\b(20\d{2})\b")
PRICE_RE = re.compile(r"(?:₹|\brs\.?|\binr)\s*(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)
PLAIN_NUMBER_RE = re.compile(r"^\s*(\d[\d,]*(?:\.\d+)?)\s*$")
RATING_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"(\d(?:\.\d+)?)\s*(?:out of 5|/\s*5)\b"),
    # "5 star inverter" is an energy label, not a customer rating.
    re.compile(r"(\d(?:\.\d+)?)\s*(?:stars?\b(?!\s*(?:energy|inverter|bee|split|window|ac)\b)|★)"),
    re.compile(r"★\s*(\d(?:\.\d+)?)"),
    re.compile(r"\brating[:\s]+(\d(?:\.\d+)?)"),
)
REVIEW_COUNT_RE = re.compile(
    r"(?<![\d.])(\d[\d,]*)\s+(?:customer\s+)?(?:reviews?|ratings?|people rated)\b"
)
GTIN_RE = re.compile(r"(?<!\d)(\d{13})(?!\d)")
ASIN_PATH_RE = re.compile(r"/(?:dp|gp/product)/([A-Z0-9]{10})(?![A-Za-z0-9])")
ASIN_RE = re.compile(r"(?<![A-Za-z0-9])([A-Z0-9]{10})(?![A-Za-z0-9])")

STORAGE_UNITS: Dict[str, float] = {"gb": 1.0, "tb": 1024.0, "mb": 0.001}
VARIANT_WORDS = r"pro max|pro\+|pro xl|ultra|plus|\+|pro|max|mini|lite|fe|edge|neo|prime"

OUT_OF_STOCK_MARKERS = ("out of stock", "sold out", "currently unavailable", "unavailable", "outofstock")
IN_STOCK_MARKERS = ("in stock", "instock", "add to cart", "buy now", "available", "ships in")


def _model_pattern(series: str, model: str) -> re.Pattern[str]:
    return re.compile(
        rf"\b(?P<series>{series})\s*(?P<model>{model})(?:\s*(?P<variant>{VARIANT_WORDS}))?(?![a-z0-9])"
    )


# Brand-conditioned model grammars, tried in order after the brand is known.
MODEL_PATTERNS: Dict[str, Tuple[re.Pattern[str], ...]] = {
    "samsung": (
        _model_pattern("galaxy", r"[sazmf]\d{1,3}|note\s?\d{1,2}|z\s?(?:fold|flip)\s?\d?|tab\s?s\d{1,2}|book\s?\d?"),
        re.compile(
            rf"\b(?P<series>)(?P<model>[sazmf]\d{{1,3}})(?:\s*(?P<variant>{VARIANT_WORDS}))?(?![a-z0-9])"
        ),
    ),
    "apple": (
        _model_pattern("iphone", r"\d{1,2}|se"),
        _model_pattern("macbook", r"air|pro"),
        _model_pattern("ipad", r"air|pro|mini|\d{1,2}"),
    ),
    "google": (_model_pattern("pixel", r"\d{1,2}a?"),),
    "oneplus": (
        _model_pattern("oneplus", r"\d{1,2}[rt]?"),
        _model_pattern("nord", r"ce\s?\d?|\d"),
    ),
    "xiaomi": (
        _model_pattern("redmi note", r"\d{1,2}"),
        _model_pattern("redmi", r"[a-z]?\d{1,2}[a-z]?"),
        _model_pattern("poco", r"[xfmc]\d{1,2}"),
        _model_pattern("mi", r"\d{1,2}[a-z]?"),
    ),
    "oppo": (_model_pattern("reno", r"\d{1,2}"), _model_pattern("find", r"x\d{1,2}")),
    "vivo": (_model_pattern("vivo", r"[xvyt]\d{2,3}e?"),),
    "realme": (_model_pattern("realme narzo|realme gt|realme", r"\d{1,2}"),),
    "motorola": (_model_pattern("moto|motorola edge", r"[ge]?\d{1,2}"),),
}


@dataclass(frozen=True)
class ParsedModel:
    series: str | None
    model: str
    variant: str | None


def tokenize(text: str) -> List[str]:
    return TOKEN_RE.findall((text or "").lower())


def contains_phrase(text: str, phrase: str) -> bool:
    """Word-boundary containment so ``"ac"`` never matches inside ``"pack"``."""
    return re.search(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])", text) is not None


def _clean_model(value: str) -> str:
    return re.sub(r"\s+", "", value.lower())


def _clean_variant(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip().lower()
    return {"+": "plus", "pro+": "pro plus"}.get(value, value)


def models_match(query_model: str, candidate_model: str) -> bool:
    """Same model code, allowing a trailing variant suffix on the candidate.

    ``s25`` matches ``s25``, ``s25ultra`` and ``s25+`` but never ``s24`` or
    ``s250``.
    """
    query = _clean_model(query_model)
    candidate = _clean_model(candidate_model)
    if not query or not candidate:
        return False
    if query == candidate:
        return True
    if candidate.startswith(query):
        return not candidate[len(query)].isdigit()
    query_parts = re.match(r"([a-z]*)(\d+)", query)
    candidate_parts = re.match(r"([a-z]*)(\d+)", candidate)
    if query_parts and candidate_parts:
        return query_parts.groups() == candidate_parts.groups()
    return False


def storage_in_gb(storage: str | None) -> float | None:
    if not storage:
        return None
    match = STORAGE_RE.search(storage.lower())
    if not match:
        return None
    return float(match.group(1)) * STORAGE_UNITS[match.group(2)]


def parse_price(raw: object) -> float | None:
    """Parse ``"₹89,999"``, ``"Rs. 1,299"``, ``"₹3,00,000"`` or ``"89999.00"`` into a float."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if raw > 0 else None
    text = str(raw)
    match = PRICE_RE.search(text) or PLAIN_NUMBER_RE.match(text)
    if not match:
        return None
    try:
        value = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    return value if value > 0 else None


def find_price(text: str) -> str | None:
    """Return the first currency-marked amount in free text, as written."""
    match = PRICE_RE.search(text or "")
    return match.group(0).strip() if match else None


def find_rating(text: str) -> float | None:
    lowered = (text or "").lower()
    for pattern in RATING_PATTERNS:
        match = pattern.search(lowered)
        if not match:
            continue
        value = float(match.group(1))
        if 0 < value <= 5:
            return value
    return None


def find_review_count(text: str) -> int | None:
    match = REVIEW_COUNT_RE.search((text or "").lower())
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def product_identifiers(url: str) -> List[str]:
    """Every GTIN or ASIN-like identifier embedded in a listing URL, GTIN first."""
    if not url:
        return []
    found: List[str] = []
    gtin = GTIN_RE.search(url)
    if gtin:
        found.append(f"gtin:{gtin.group(1)}")
    asin = ASIN_PATH_RE.search(url)
    if asin:
        found.append(f"asin:{asin.group(1)}")
        return found
    for match in ASIN_RE.finditer(url):
        token = match.group(1)
        if any(ch.isdigit() for ch in token) and any(ch.isalpha() for ch in token):
            found.append(f"asin:{token}")
            break
    return found


def product_identifier(url: str) -> str | None:
    identifiers = product_identifiers(url)
    return identifiers[0] if identifiers else None


def canonical_url(url: str) -> str:
    parts = urlsplit(url or "")
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/")
    query = f"?{parts.query}" if parts.query else ""
    return f"{host}{path}{query}"


def availability_from_text(text: str) -> Availability:
    lowered = (text or "").lower()
    if any(marker in lowered for marker in OUT_OF_STOCK_MARKERS):
        return Availability.OUT_OF_STOCK
    if any(marker in lowered for marker in IN_STOCK_MARKERS):
        return Availability.IN_STOCK
    return Availability.UNKNOWN


class AttributeExtractor:
    """Pattern-based extraction of brand, model, storage, colour and year."""

    def __init__(
        self,
        brands: Sequence[str] = BRANDS,
        aliases: Mapping[str, str] = BRAND_ALIASES,
        colors: Mapping[str, str] = COLORS,
    ) -> None:
        self._brands = tuple(brands)
        self._aliases = dict(aliases)
        self._colors = dict(colors)
        self._brand_tokens: Dict[str, str] = {brand: brand for brand in self._brands}
        self._brand_tokens.update(self._aliases)

    @property
    def brand_names(self) -> Tuple[str, ...]:
        return self._brands

    def is_brand_token(self, token: str) -> bool:
        return token in self._brand_tokens

    def brands(self, text: str) -> List[str]:
        """All brands mentioned, in order of first appearance."""
        found: List[str] = []
        for token in tokenize((text or "").lower().replace("one plus", "oneplus")):
            brand = self._brand_tokens.get(token)
            if brand and brand not in found:
                found.append(brand)
        return found

    def brand(self, text: str) -> str | None:
        found = self.brands(text)
        return found[0] if found else None

    def models(self, text: str, brand: str | None) -> List[ParsedModel]:
        lowered = (text or "").lower()
        patterns = list(MODEL_PATTERNS.get(brand or "", ()))
        if brand:
            patterns.append(
                re.compile(
                    rf"\b{re.escape(brand)}\s+(?:(?P<series>[a-z]+)\s+)?(?P<model>[a-z]*\d+[a-z0-9]*)"
                    rf"(?:\s*(?P<variant>{VARIANT_WORDS}))?(?![a-z0-9])"
                )
            )
        parsed: List[ParsedModel] = []
        seen = set()
        for pattern in patterns:
            for match in pattern.finditer(lowered):
                model = _clean_model(match.group("model"))
                if not model or STORAGE_RE.fullmatch(model) or YEAR_RE.fullmatch(model):
                    continue
                if model in seen:
                    continue
                seen.add(model)
                series = (match.group("series") or "").strip() or None
                parsed.append(ParsedModel(series, model, _clean_variant(match.group("variant"))))
        return parsed

    def storage(self, text: str) -> str | None:
        match = STORAGE_RE.search((text or "").lower())
        if not match:
            return None
        amount = match.group(1)
        if amount.endswith(".0"):
            amount = amount[:-2]
        return f"{amount}{match.group(2).upper()}"

    def color(self, text: str) -> str | None:
        for token in tokenize(text):
            if token in self._colors:
                return self._colors[token]
        return None

    def year(self, text: str) -> int | None:
        match = YEAR_RE.search(text or "")
        return int(match.group(1)) if match else None

    def extract(self, text: str) -> Attributes:
        """Brand first, because model grammars are brand-conditioned."""
        lowered = (text or "").lower()
        brand = self.brand(lowered)
        models = self.models(lowered, brand)
        first = models[0] if models else None
        attributes = Attributes(
            brand=brand,
            series=first.series if first else None,
            model=first.model if first else None,
            variant=first.variant if first else None,
            storage=self.storage(lowered),
            color=self.color(lowered),
            year=self.year(lowered),
        )
        logger.debug("extract text=%r attributes=%s", text, attributes.present())
        return attributes
