"""ASCII folding and phonetic helpers for brand spell-correction.

Query normalization first applies the exact misspelling table. Tokens that
survive unchanged and are not part of the known vocabulary get a second
chance here: :func:`closest_brand` folds the token to ASCII with
``unidecode``, compares double metaphone codes and keeps the brand with the
smallest optimal-string-alignment distance from ``rapidfuzz`` (edits plus
adjacent transpositions), so ``"samsang"`` resolves to ``"samsung"`` while
unrelated words stay untouched.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable

from metaphone import doublemetaphone
from rapidfuzz.distance import OSA
from unidecode import unidecode

logger = logging.getLogger(__name__)

_NON_ASCII_WORD_RE = re.compile(r"[^0-9a-z+.\- ]+")
MIN_CORRECTABLE_LENGTH = 5


def fold_text(text: str) -> str:
    """Lowercase and transliterate to ASCII, dropping symbols that have no ASCII form."""
    folded = unidecode(text or "").lower()
    return " ".join(_NON_ASCII_WORD_RE.sub(" ", folded).split())


def phonetic_codes(token: str) -> set[str]:
    try:
        primary, secondary = doublemetaphone(token)
    except Exception as exc:  # pragma: no cover
        logger.debug("phonetic conversion failed for %r: %s", token, exc)
        return set()
    return {code for code in (primary, secondary) if code}


def closest_brand(token: str, brands: Iterable[str]) -> str | None:
    """Return the brand a misspelled token most likely refers to, or ``None``."""
    folded = fold_text(token)
    if len(folded) < MIN_CORRECTABLE_LENGTH or not folded.isalpha():
        return None
    token_codes = phonetic_codes(folded)
    best_brand: str | None = None
    best_distance = None
    for brand in brands:
        if brand == folded:
            return brand
        if len(brand) < 4 or brand[0] != folded[0]:
            continue
        if abs(len(brand) - len(folded)) > 2:
            continue
        distance = OSA.distance(folded, brand)
        if distance > max(1, max(len(brand), len(folded)) // 3):
            continue
        if distance > 1 and not (token_codes & phonetic_codes(brand)):
            continue
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_brand = brand
    if best_brand:
        logger.debug("closest_brand token=%r -> %r distance=%s", token, best_brand, best_distance)
    return best_brand
