"""Cell → value normalization for dates and amounts.

Both parsers are total: malformed cells yield ``None`` instead of raising, so
the caller can skip non-transaction rows (section headers, balances, blank
separators) without special cases.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation

from .config import DateLayout, ImportConfig, default_config
from .models import ParsedAmount

_QUOTES = "\"'"
_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
# Unicode minus and dashes some exports use for negatives
_MINUS_VARIANTS = str.maketrans({"\u2212": "-", "\u2013": "-", "\u2010": "-"})


def _clean_date_cell(cell: str) -> str:
    return cell.strip().strip(_QUOTES).strip()


def _calendar_date(year: int, month: int, day: int) -> dt.date | None:
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def parse_date(
    cell: str | None, *, layouts: Sequence[DateLayout] | None = None
) -> dt.date | None:
    """Parse ``cell`` with the first matching layout.

    The first layout whose pattern matches decides the result: a match that
    is not a real calendar date (``13/13/2024``) yields ``None`` rather than
    falling through to later layouts.
    """

    if cell is None:
        return None
    s = _clean_date_cell(cell)
    if not s:
        return None

    for layout in layouts if layouts is not None else default_config().date_layouts:
        m = layout.pattern.match(s)
        if m is None:
            continue
        if layout.month_names is not None:
            month = layout.month_names.get(m.group("month").lower())
            if month is None:
                continue
        else:
            month = int(m.group("month"))
        return _calendar_date(int(m.group("year")), month, int(m.group("day")))
    return None


def _strip_markers(s: str, markers: Sequence[str]) -> str:
    for marker in markers:
        if marker.isalpha():
            s = re.sub(re.escape(marker), "", s, flags=re.IGNORECASE)
        else:
            s = s.replace(marker, "")
    return s


def parse_amount(cell: str | None, *, config: ImportConfig | None = None) -> ParsedAmount | None:
    """Parse an amount cell into ``(magnitude, is_negative)``.

    - Quotes, whitespace and currency markers are removed.
    - A leading or trailing ``-``, or enclosing parentheses, mark a negative.
    - The separator convention is the first configured one whose ``applies``
      pattern matches; by default a trailing ``,dd`` means a comma decimal.

    Returns ``None`` when the cell is empty or not numeric. Zero is returned
    as a zero magnitude; callers decide whether to skip it.
    """

    if cell is None:
        return None
    cfg = config or default_config()

    s = cell.translate(_MINUS_VARIANTS)
    s = _WHITESPACE_RE.sub("", s)
    for q in _QUOTES:
        s = s.replace(q, "")
    s = _strip_markers(s, cfg.currency_markers)
    if not s:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")") and len(s) >= 2:
        negative = True
        s = s[1:-1]
    if s.startswith("-"):
        negative = True
        s = s[1:]
    elif s.endswith("-"):
        negative = True
        s = s[:-1]
    elif s.startswith("+"):
        s = s[1:]
    # "-(1.00)" and "(-1.00)" are both single negatives
    if s.startswith("(") and s.endswith(")") and len(s) >= 2:
        negative = True
        s = s[1:-1]
    s = s.lstrip("-")
    if not s:
        return None

    convention = next(
        (c for c in cfg.amount_conventions if c.applies is None or c.applies.search(s)),
        None,
    )
    if convention is None:
        return None
    s = s.replace(convention.thousands, "")
    if convention.decimal != ".":
        s = s.replace(convention.decimal, ".")

    if not _NUMBER_RE.fullmatch(s):
        return None
    try:
        magnitude = Decimal(s)
    except InvalidOperation:
        return None
    return ParsedAmount(magnitude=abs(magnitude), is_negative=negative and magnitude != 0)


def is_nonzero_amount(cell: str | None, *, config: ImportConfig | None = None) -> bool:
    parsed = parse_amount(cell, config=config)
    return parsed is not None and parsed.magnitude != 0


def has_decimal_separator(cell: str) -> bool:
    return "." in cell or "," in cell


__all__ = ["has_decimal_separator", "is_nonzero_amount", "parse_amount", "parse_date"]
