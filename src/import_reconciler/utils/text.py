"""Text normalization for description and category-name matching.

Every text comparison in the engine goes through these functions so that
rules, learned history and category names agree on what "the same text"
means.
"""

import re
import unicodedata
from typing import Optional

# Default maximum length of a name derived from a description
DERIVED_NAME_MAX_LENGTH = 28

_WHITESPACE = re.compile(r"\s+")
_NON_KEY_CHARS = re.compile(r"[^a-z0-9 ]")
_DIGITS = re.compile(r"\d+")
_NAME_SEPARATORS = re.compile(r"[-,|]")


def _strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: Optional[str]) -> str:
    """Lower-case, strip accents, collapse whitespace and trim.

    Args:
        text: Free text, may be None.

    Returns:
        Normalized text ("" for None or empty input).
    """
    if not text:
        return ""
    value = _strip_diacritics(text.lower())
    return _WHITESPACE.sub(" ", value).strip()


def normalize_key(text: Optional[str]) -> str:
    """Normalize and keep only ``[a-z0-9 ]`` characters.

    Spaces left over by removed punctuation are collapsed again, so
    "Taxi / VTC" and "taxi vtc" share a key.
    """
    value = _NON_KEY_CHARS.sub("", normalize(text))
    return _WHITESPACE.sub(" ", value).strip()


def derive_category_name(
    description: Optional[str],
    max_length: int = DERIVED_NAME_MAX_LENGTH,
) -> str:
    """Guess a category name from a statement description.

    Digits are removed, whitespace collapsed, and the text before the first
    ``-``, ``,`` or ``|`` is kept, truncated to ``max_length`` characters.

    Examples:
        >>> derive_category_name("SUPERMERCADO DIA 1234 - MADRID")
        'SUPERMERCADO DIA'
        >>> derive_category_name(None)
        ''

    Args:
        description: Statement description, may be None.
        max_length: Maximum length of the derived name.

    Returns:
        Derived name, or "" when nothing usable remains.
    """
    if not description:
        return ""
    value = _DIGITS.sub("", description)
    value = _WHITESPACE.sub(" ", value).strip()
    value = _NAME_SEPARATORS.split(value, maxsplit=1)[0].strip()
    return value[:max_length].strip()
