"""Sign classification: turn a file sign into an income/expense direction.

Rule table (``magnitude > 0`` always; zero rows never get here):

================  =========  ==========================================
account type      file sign  result
================  =========  ==========================================
ordinary          negative   expense
ordinary          positive   income
credit card       positive   expense (a charge)
credit card       negative   income, unless the description names a
                             refund, in which case an expense flagged as
                             reimbursement
================  =========  ==========================================

A reimbursement is recorded on the expense side so that refunds reduce net
spending instead of showing up as income.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from .config import ImportConfig, default_config
from .models import AccountType, SignDecision
from .text import contains_phrase, normalize_description

type Column = Literal["income", "expense"]

_EXPENSE = SignDecision(is_expense=True, is_reimbursement=False)
_INCOME = SignDecision(is_expense=False, is_reimbursement=False)
_REIMBURSEMENT = SignDecision(is_expense=True, is_reimbursement=True)


def is_reimbursement_description(description: str, *, config: ImportConfig | None = None) -> bool:
    """True when ``description`` contains a refund-type keyword.

    Comparison is accent- and case-insensitive and on token boundaries, so
    ``"Devolución Amazon"`` matches ``devolucion`` but ``"RETURNS DESK"``
    does not match ``return``.
    """

    cfg = config or default_config()
    text = normalize_description(description)
    if not text:
        return False
    return any(contains_phrase(text, kw) for kw in cfg.reimbursement_keywords)


def _credit_card_credit(description: str, cfg: ImportConfig) -> SignDecision:
    if is_reimbursement_description(description, config=cfg):
        return _REIMBURSEMENT
    return _INCOME


def classify(
    magnitude: Decimal,
    is_negative_in_file: bool,
    account_type: AccountType,
    description: str = "",
    *,
    config: ImportConfig | None = None,
) -> SignDecision:
    """Apply the rule table above.

    Raises ``ValueError`` for a non-positive ``magnitude``.
    """

    if magnitude <= 0:
        raise ValueError(f"magnitude must be positive, got {magnitude}")
    cfg = config or default_config()

    match account_type:
        case AccountType.ORDINARY:
            return _EXPENSE if is_negative_in_file else _INCOME
        case AccountType.CREDIT_CARD:
            if not is_negative_in_file:
                return _EXPENSE
            return _credit_card_credit(description, cfg)
    raise ValueError(f"unknown account type: {account_type!r}")


def classify_directional(
    column: Column,
    account_type: AccountType,
    description: str = "",
    *,
    config: ImportConfig | None = None,
) -> SignDecision:
    """Direction for split-column statements whose cells are unsigned.

    The column already says which way money moved. A credit in the income
    column of a card statement still goes through the refund check.
    """

    cfg = config or default_config()
    if column == "expense":
        return _EXPENSE
    if account_type is AccountType.CREDIT_CARD:
        return _credit_card_credit(description, cfg)
    return _INCOME


__all__ = ["Column", "classify", "classify_directional", "is_reimbursement_description"]
