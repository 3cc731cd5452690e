"""Data models and type aliases for ``statement_import``.

Values supplied by the host application (accounts, categories, history) are
pydantic models so they are validated once at the boundary. Values produced
inside the pipeline are plain dataclasses and named tuples.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import NamedTuple, Self

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ---------------------------------------------------------------------------
# Grid rows
# ---------------------------------------------------------------------------

type Row = tuple[str, ...]
"""One decoded line of a statement: string cells, no inherent types."""


# ---------------------------------------------------------------------------
# Closed sets
# ---------------------------------------------------------------------------


class AccountType(StrEnum):
    ORDINARY = "ordinary"
    CREDIT_CARD = "credit_card"


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CategoryKind(StrEnum):
    INCOME = "Income"
    EXPENSE = "Expense"
    CONTRIBUTION = "Contribution"
    WITHDRAWAL = "Withdrawal"
    REIMBURSEMENT = "Reimbursement"


class MovementType(StrEnum):
    """Direction of a staged row, independent of its category's kind."""

    INCOME = "income"
    EXPENSE = "expense"
    REIMBURSEMENT = "reimbursement"


# ---------------------------------------------------------------------------
# Host-supplied context
# ---------------------------------------------------------------------------


class AccountContext(BaseModel):
    """The account a statement belongs to. Immutable for one import."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    account_type: AccountType
    currency_code: str
    account_id: str | None = None
    name: str | None = None

    @field_validator("currency_code")
    @classmethod
    def _three_letter_code(cls, v: str) -> str:
        code = v.upper()
        if len(code) != 3 or not code.isascii() or not code.isalpha():
            raise ValueError(f"currency_code must be a 3-letter code, got {v!r}")
        return code

    @property
    def is_credit_card(self) -> bool:
        return self.account_type is AccountType.CREDIT_CARD


class Category(BaseModel):
    """A user category. Owned by the host application; read-only here."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: str
    top_level_label: str
    sub_label: str = ""
    kind: CategoryKind = CategoryKind.EXPENSE

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("category id must be non-empty")
        return v

    @model_validator(mode="after")
    def _some_label(self) -> Self:
        if not self.top_level_label and not self.sub_label:
            raise ValueError(f"category {self.id!r} needs a top-level or sub label")
        return self

    @property
    def display_name(self) -> str:
        if self.sub_label and self.top_level_label:
            return f"{self.top_level_label} > {self.sub_label}"
        return self.top_level_label or self.sub_label


class HistoricalTransaction(BaseModel):
    """A previously categorized transaction (description and category only)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    description: str
    category_id: str


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DetectedFormat:
    """Column roles inferred for one file.

    Exactly one amount shape is set: ``amount_index`` for a single signed
    column, or ``income_index`` plus ``expense_index`` for split columns whose
    cells are already directional.
    """

    date_index: int
    description_index: int | None
    amount_index: int | None = None
    income_index: int | None = None
    expense_index: int | None = None
    has_header_row: bool = False
    header_row_index: int | None = None
    strategy: str = ""

    def __post_init__(self) -> None:
        split = (self.income_index, self.expense_index)
        if self.amount_index is None:
            if None in split:
                raise ValueError("DetectedFormat needs amount_index or both split indices")
        elif split != (None, None):
            raise ValueError("DetectedFormat cannot mix amount_index with split indices")

        amounts = [i for i in (self.amount_index, *split) if i is not None]
        if self.date_index in amounts:
            raise ValueError("date column must differ from the amount column(s)")
        if len(set(amounts)) != len(amounts):
            raise ValueError("income and expense columns must differ")
        if any(i < 0 for i in self.columns()):
            raise ValueError("column indices must be non-negative")
        if self.has_header_row != (self.header_row_index is not None):
            raise ValueError("header_row_index must be set exactly when has_header_row")

    @property
    def is_split(self) -> bool:
        return self.amount_index is None

    def columns(self) -> tuple[int, ...]:
        """Every assigned column index."""

        candidates = (
            self.date_index,
            self.description_index,
            self.amount_index,
            self.income_index,
            self.expense_index,
        )
        return tuple(i for i in candidates if i is not None)


class ParsedAmount(NamedTuple):
    magnitude: Decimal
    is_negative: bool


class SignDecision(NamedTuple):
    is_expense: bool
    is_reimbursement: bool


class MatchResult(NamedTuple):
    category_id: str | None
    confidence: Confidence
    # "history", "keyword" or None when nothing matched
    source: str | None = None


@dataclass(slots=True)
class StagedTransaction:
    """A normalized, classified row awaiting human confirmation.

    ``amount`` is always a positive magnitude; direction lives in
    ``is_expense``. Only ``included``, ``suggested_category_id`` and
    ``confidence`` change after creation, through the import session.
    """

    position: int
    source_row: int
    date: dt.date
    description: str
    amount: Decimal
    is_expense: bool
    is_reimbursement: bool
    suggested_category_id: str | None
    confidence: Confidence
    included: bool = True

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"staged amount must be positive, got {self.amount}")
        if self.is_reimbursement and not self.is_expense:
            raise ValueError("a reimbursement is recorded on the expense side")

    @property
    def movement_type(self) -> MovementType:
        if self.is_reimbursement:
            return MovementType.REIMBURSEMENT
        return MovementType.EXPENSE if self.is_expense else MovementType.INCOME

    @property
    def signed_amount(self) -> Decimal:
        return -self.amount if self.is_expense else self.amount


class LedgerEntry(BaseModel):
    """Commit payload handed to the persistence collaborator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    account_id: str | None
    date: dt.date
    description: str
    income: Decimal
    expense: Decimal
    category_id: str | None
    currency_code: str
    is_reimbursement: bool = False

    @model_validator(mode="after")
    def _one_side(self) -> Self:
        if (self.income > 0) == (self.expense > 0) or min(self.income, self.expense) < 0:
            raise ValueError("exactly one of income/expense must be positive")
        return self

    @classmethod
    def from_staged(cls, row: StagedTransaction, account: AccountContext) -> LedgerEntry:
        zero = Decimal("0")
        return cls(
            account_id=account.account_id,
            date=row.date,
            description=row.description,
            income=zero if row.is_expense else row.amount,
            expense=row.amount if row.is_expense else zero,
            category_id=row.suggested_category_id,
            currency_code=account.currency_code,
            is_reimbursement=row.is_reimbursement,
        )


__all__ = [
    "AccountContext",
    "AccountType",
    "Category",
    "CategoryKind",
    "Confidence",
    "DetectedFormat",
    "HistoricalTransaction",
    "LedgerEntry",
    "MatchResult",
    "MovementType",
    "ParsedAmount",
    "Row",
    "SignDecision",
    "StagedTransaction",
]
