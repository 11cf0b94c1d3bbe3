"""Text normalization used for fingerprints and fuzzy matching."""

import re
import unicodedata


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_description(value: str) -> str:
    """Upper-case, diacritic-free, single-spaced form of a description."""
    return re.sub(r"\s+", " ", strip_diacritics(value)).strip().upper()


def normalize_for_match(value: str) -> str:
    """Like normalize_description, but punctuation also becomes whitespace."""
    cleaned = re.sub(r"[^a-zA-Z0-9]+", " ", strip_diacritics(value))
    return re.sub(r"\s+", " ", cleaned).strip().upper()


def normalize_card_final(value: str) -> str:
    """Digits of a card final, or the upper-cased text when it has none."""
    trimmed = (value or "").strip()
    if not trimmed:
        return ""
    digits = re.sub(r"\D", "", trimmed)
    return digits or trimmed.upper()
