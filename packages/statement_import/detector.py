"""Column-role inference for statements of unknown layout.

Detection is an ordered list of strategies. Each strategy is a pure function
``(sample, config) -> DetectedFormat | None``; :func:`detect` returns the
first non-``None`` answer:

1. :func:`split_columns_by_header`: a header names separate income/expense
   (credit/debit, abono/cargo) columns holding decimal numbers.
2. :func:`columns_by_header_names`: a header names the date, amount and
   description columns.
3. :func:`columns_by_content`: no usable header; roles are inferred from the
   cell contents of the first data rows.

A header does not have to be the first line: banks often prepend a preamble
(account holder, period, balances). :func:`locate_header` searches the lines
above the first transaction-looking row.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass

from .config import ImportConfig, default_config
from .logging_setup import get_logger
from .models import DetectedFormat, Row
from .normalizer import has_decimal_separator, is_nonzero_amount, parse_amount, parse_date
from .text import fold

_logger = get_logger("statement_import.detector")


@dataclass(frozen=True, slots=True)
class DetectionSample:
    """What strategies look at: the header (if any) and sampled data rows."""

    header: Row | None
    header_row_index: int | None
    rows: tuple[Row, ...]

    @property
    def width(self) -> int:
        return max((len(r) for r in self.rows), default=0)


type Strategy = Callable[[DetectionSample, ImportConfig], DetectedFormat | None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def cell_at(row: Row, index: int | None) -> str:
    """Return the cell at ``index`` or ``""`` when the row is too short."""

    if index is None or index >= len(row):
        return ""
    return row[index]


def _looks_like_transaction(row: Row, cfg: ImportConfig) -> bool:
    has_date = any(parse_date(c, layouts=cfg.date_layouts) for c in row)
    return has_date and any(is_nonzero_amount(c, config=cfg) for c in row)


def _has_marker(row: Row, markers: Collection[str]) -> bool:
    text = fold(" ".join(row))
    return any(re.search(rf"(?<!\w){re.escape(m)}(?!\w)", text) for m in markers)


def locate_header(rows: Sequence[Row], config: ImportConfig | None = None) -> int | None:
    """Index of the header row, or ``None`` when the file has no header.

    Only rows before the first transaction-looking row (and within
    ``header_search_rows``) are considered; the first one containing a
    column-name marker wins.
    """

    cfg = config or default_config()
    for i, row in enumerate(rows[: cfg.header_search_rows]):
        if _looks_like_transaction(row, cfg):
            return None
        if _has_marker(row, cfg.header.markers):
            return i
    return None


def _index_by_name(
    header: Row, tokens: Collection[str], *, exclude: Collection[int] = ()
) -> int | None:
    for i, cell in enumerate(header):
        if i not in exclude and fold(cell) in tokens:
            return i
    return None


def _amount_index_by_name(
    header: Row, cfg: ImportConfig, *, exclude: Collection[int]
) -> int | None:
    for tier in cfg.header.amount_tiers:
        idx = _index_by_name(header, tier, exclude=exclude)
        if idx is not None:
            return idx
    return None


def _dates_in_column(sample: DetectionSample, index: int, cfg: ImportConfig) -> bool:
    return any(
        parse_date(cell_at(r, index), layouts=cfg.date_layouts) is not None for r in sample.rows
    )


def _amounts_in_column(sample: DetectionSample, index: int, cfg: ImportConfig) -> bool:
    return any(is_nonzero_amount(cell_at(r, index), config=cfg) for r in sample.rows)


def _longest_cell_index(row: Row, exclude: Collection[int]) -> int | None:
    best: int | None = None
    best_len = 0
    for i, cell in enumerate(row):
        if i in exclude:
            continue
        n = len(cell.strip())
        if n > best_len:
            best, best_len = i, n
    return best


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def split_columns_by_header(sample: DetectionSample, cfg: ImportConfig) -> DetectedFormat | None:
    """Separate income and expense columns named in the header."""

    header = sample.header
    if header is None:
        return None
    date_idx = _index_by_name(header, cfg.header.date)
    income_idx = _index_by_name(header, cfg.header.income)
    expense_idx = _index_by_name(header, cfg.header.expense)
    if date_idx is None or income_idx is None or expense_idx is None:
        return None
    if len({date_idx, income_idx, expense_idx}) != 3:
        return None
    if not _dates_in_column(sample, date_idx, cfg):
        return None

    # placeholders such as "-" or "N/A" count as empty cells
    decimal_seen = False
    for r in sample.rows:
        for idx in (income_idx, expense_idx):
            cell = cell_at(r, idx)
            parsed = parse_amount(cell, config=cfg)
            if parsed is not None and parsed.magnitude != 0 and has_decimal_separator(cell):
                decimal_seen = True
    if not decimal_seen:
        return None

    assigned = {date_idx, income_idx, expense_idx}
    desc_idx = _index_by_name(header, cfg.header.description, exclude=assigned)
    if desc_idx is None and sample.rows:
        desc_idx = _longest_cell_index(sample.rows[0], assigned)

    return DetectedFormat(
        date_index=date_idx,
        description_index=desc_idx,
        income_index=income_idx,
        expense_index=expense_idx,
        has_header_row=True,
        header_row_index=sample.header_row_index,
        strategy="split_columns_by_header",
    )


def columns_by_header_names(sample: DetectionSample, cfg: ImportConfig) -> DetectedFormat | None:
    """Date, amount and description all named by exact header tokens."""

    header = sample.header
    if header is None:
        return None
    date_idx = _index_by_name(header, cfg.header.date)
    if date_idx is None:
        return None
    amount_idx = _amount_index_by_name(header, cfg, exclude={date_idx})
    if amount_idx is None:
        return None
    desc_idx = _index_by_name(header, cfg.header.description, exclude={date_idx, amount_idx})
    if desc_idx is None:
        return None
    if not _dates_in_column(sample, date_idx, cfg) or not _amounts_in_column(
        sample, amount_idx, cfg
    ):
        return None

    return DetectedFormat(
        date_index=date_idx,
        description_index=desc_idx,
        amount_index=amount_idx,
        has_header_row=True,
        header_row_index=sample.header_row_index,
        strategy="columns_by_header_names",
    )


def _date_index_by_content(sample: DetectionSample, cfg: ImportConfig) -> int | None:
    for row in sample.rows[: cfg.date_sample_rows]:
        for i, cell in enumerate(row):
            if parse_date(cell, layouts=cfg.date_layouts) is not None:
                return i
    return None


def _amount_index_by_content(
    sample: DetectionSample, cfg: ImportConfig, *, date_idx: int
) -> int | None:
    """Rank columns by decimal-separator presence, then non-zero count.

    Ties keep the lowest column index.
    """

    scored: list[tuple[bool, int, int]] = []
    rows = sample.rows[: cfg.amount_sample_rows]
    for col in range(sample.width):
        if col == date_idx:
            continue
        valid = 0
        has_decimal = False
        for r in rows:
            cell = cell_at(r, col)
            if not cell.strip() or not is_nonzero_amount(cell, config=cfg):
                continue
            valid += 1
            if has_decimal_separator(cell):
                has_decimal = True
        if valid:
            scored.append((not has_decimal, -valid, col))
    if not scored:
        return None
    return min(scored)[2]


def columns_by_content(sample: DetectionSample, cfg: ImportConfig) -> DetectedFormat | None:
    """Infer roles from cell contents of the sampled data rows."""

    if sample.width < 2 or not sample.rows:
        return None
    date_idx = _date_index_by_content(sample, cfg)
    if date_idx is None:
        return None
    amount_idx = _amount_index_by_content(sample, cfg, date_idx=date_idx)
    if amount_idx is None:
        return None
    desc_idx = _longest_cell_index(sample.rows[0], {date_idx, amount_idx})

    return DetectedFormat(
        date_index=date_idx,
        description_index=desc_idx,
        amount_index=amount_idx,
        has_header_row=sample.header is not None,
        header_row_index=sample.header_row_index,
        strategy="columns_by_content",
    )


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    split_columns_by_header,
    columns_by_header_names,
    columns_by_content,
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_sample(rows: Sequence[Row], config: ImportConfig | None = None) -> DetectionSample:
    """Select the header and up to ``detect_sample_rows`` transaction-looking rows."""

    cfg = config or default_config()
    header_idx = locate_header(rows, cfg)
    body = rows[header_idx + 1 :] if header_idx is not None else rows
    picked: list[Row] = []
    for row in body:
        if len(row) < 2 or not _looks_like_transaction(row, cfg):
            continue
        picked.append(row)
        if len(picked) >= cfg.detect_sample_rows:
            break
    return DetectionSample(
        header=rows[header_idx] if header_idx is not None else None,
        header_row_index=header_idx,
        rows=tuple(picked),
    )


def detect(
    rows: Sequence[Row],
    *,
    config: ImportConfig | None = None,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> DetectedFormat | None:
    """Infer column roles for ``rows``; ``None`` when nothing fits.

    ``None`` is a whole-file defect: no date or amount column could be placed.
    """

    cfg = config or default_config()
    sample = build_sample(rows, cfg)
    if not sample.rows or sample.width < 2:
        _logger.info("detect:failed reason=no_transaction_rows rows=%d", len(rows))
        return None

    for strategy in strategies:
        found = strategy(sample, cfg)
        if found is None:
            continue
        _logger.info(
            "detect:strategy name=%s date=%s description=%s amount=%s income=%s expense=%s "
            "header=%s",
            found.strategy or getattr(strategy, "__name__", "?"),
            found.date_index,
            found.description_index,
            found.amount_index,
            found.income_index,
            found.expense_index,
            found.header_row_index,
        )
        return found

    _logger.info("detect:failed reason=no_strategy rows=%d", len(rows))
    return None


__all__ = [
    "DEFAULT_STRATEGIES",
    "DetectionSample",
    "Strategy",
    "build_sample",
    "cell_at",
    "columns_by_content",
    "columns_by_header_names",
    "detect",
    "locate_header",
    "split_columns_by_header",
]
