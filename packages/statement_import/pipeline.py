"""Stage a whole statement: decode, detect, normalize, classify, match.

The pass is sequential and keeps source order: ``position`` of a staged row
is its index in the returned list, ``source_row`` its index in the decoded
grid. Row-level defects (no date, zero or unparseable amount) skip the row
silently; only a file with no stageable row at all raises
:class:`NoTransactionsFound`.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from .classifier import classify, classify_directional
from .config import ImportConfig, default_config
from .decoder import decode
from .detector import cell_at, detect
from .logging_setup import get_logger
from .matcher import HistoryIndex, find_unassigned, match
from .models import (
    AccountContext,
    Category,
    Confidence,
    DetectedFormat,
    Row,
    SignDecision,
    StagedTransaction,
)
from .normalizer import parse_amount, parse_date

_logger = get_logger("statement_import.pipeline")

NO_TRANSACTIONS_MESSAGE = "Could not find any valid transactions in this file."


class NoTransactionsFound(ValueError):
    """Whole-file defect: nothing in the file could be staged."""

    def __init__(self, message: str = NO_TRANSACTIONS_MESSAGE) -> None:
        super().__init__(message)


def _amount_and_direction(
    row: Row,
    fmt: DetectedFormat,
    description: str,
    account: AccountContext,
    cfg: ImportConfig,
) -> tuple[SignDecision, Decimal] | None:
    """Return ``(decision, magnitude)`` or ``None`` when the row has no amount."""

    if not fmt.is_split:
        parsed = parse_amount(cell_at(row, fmt.amount_index), config=cfg)
        if parsed is None or parsed.magnitude == 0:
            return None
        decision = classify(
            parsed.magnitude, parsed.is_negative, account.account_type, description, config=cfg
        )
        return decision, parsed.magnitude

    # split columns: a non-zero expense cell wins over the income cell
    expense = parse_amount(cell_at(row, fmt.expense_index), config=cfg)
    if expense is not None and expense.magnitude != 0:
        return (
            classify_directional("expense", account.account_type, description, config=cfg),
            expense.magnitude,
        )
    income = parse_amount(cell_at(row, fmt.income_index), config=cfg)
    if income is not None and income.magnitude != 0:
        return (
            classify_directional("income", account.account_type, description, config=cfg),
            income.magnitude,
        )
    return None


def stage_rows(
    rows: Sequence[Row],
    *,
    account: AccountContext,
    categories: Sequence[Category],
    history_index: HistoryIndex,
    config: ImportConfig | None = None,
) -> list[StagedTransaction]:
    """Run detection and per-row staging over an already decoded grid.

    Raises
    ------
    NoTransactionsFound
        When no column layout can be detected or no row survives staging.
    """

    cfg = config or default_config()
    fmt = detect(rows, config=cfg)
    if fmt is None:
        raise NoTransactionsFound()

    unassigned = find_unassigned(categories, config=cfg)
    fallback_id = unassigned.id if unassigned is not None else None

    start = fmt.header_row_index + 1 if fmt.header_row_index is not None else 0
    staged: list[StagedTransaction] = []
    skipped = 0
    matched = 0
    for source_row in range(start, len(rows)):
        row = rows[source_row]
        date = parse_date(cell_at(row, fmt.date_index), layouts=cfg.date_layouts)
        if date is None:
            skipped += 1
            continue
        description = " ".join(cell_at(row, fmt.description_index).split())
        found = _amount_and_direction(row, fmt, description, account, cfg)
        if found is None:
            skipped += 1
            continue
        decision, magnitude = found

        suggestion = match(description, categories, history_index, config=cfg)
        if suggestion.category_id is None:
            category_id, confidence = fallback_id, Confidence.LOW
        else:
            category_id, confidence = suggestion.category_id, suggestion.confidence
            matched += 1

        staged.append(
            StagedTransaction(
                position=len(staged),
                source_row=source_row,
                date=date,
                description=description,
                amount=magnitude,
                is_expense=decision.is_expense,
                is_reimbursement=decision.is_reimbursement,
                suggested_category_id=category_id,
                confidence=confidence,
            )
        )

    _logger.info(
        "stage:summary rows=%d staged=%d skipped=%d matched=%d strategy=%s",
        len(rows) - start,
        len(staged),
        skipped,
        matched,
        fmt.strategy,
    )
    if not staged:
        raise NoTransactionsFound()
    return staged


def stage_content(
    content: bytes | str,
    *,
    account: AccountContext,
    categories: Sequence[Category],
    history_index: HistoryIndex,
    filename: str | None = None,
    config: ImportConfig | None = None,
) -> list[StagedTransaction]:
    """:func:`~statement_import.decoder.decode` followed by :func:`stage_rows`."""

    rows = decode(content, filename=filename)
    if not rows:
        _logger.info("stage:empty filename=%s", filename)
        raise NoTransactionsFound()
    return stage_rows(
        rows,
        account=account,
        categories=categories,
        history_index=history_index,
        config=config,
    )


__all__ = ["NO_TRANSACTIONS_MESSAGE", "NoTransactionsFound", "stage_content", "stage_rows"]
