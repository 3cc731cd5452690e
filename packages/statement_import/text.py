"""Text folding shared by detection, classification and matching."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^0-9a-z\s]")


def fold(text: str) -> str:
    """Accent-fold, casefold and collapse whitespace; punctuation is kept."""

    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def normalize_description(text: str) -> str:
    """Lower-case, strip diacritics and non-alphanumerics, collapse whitespace.

    >>> normalize_description("  Café  *Niddo* 24/7 ")
    'cafe niddo 247'
    """

    return " ".join(_NON_ALNUM_RE.sub("", fold(text)).split())


def contains_phrase(haystack: str, phrase: str) -> bool:
    """Return True when ``phrase`` occurs in ``haystack`` on token boundaries.

    Both arguments are expected to be normalized already.
    """

    if not phrase:
        return False
    return f" {phrase} " in f" {haystack} "
