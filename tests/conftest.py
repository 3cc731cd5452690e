"""Shared pytest fixtures.

The workspace ``packages/`` dir is put on ``sys.path`` so ``statement_import``
imports without an editable install. Fixtures provide a small category tree,
account contexts and an in-memory ``.xlsx`` builder.
"""

from __future__ import annotations

import io
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR)] if p not in sys.path]

from openpyxl import Workbook  # noqa: E402

from statement_import.models import (  # noqa: E402
    AccountContext,
    AccountType,
    Category,
    CategoryKind,
)


@pytest.fixture
def categories() -> list[Category]:
    return [
        Category(id="c-unassigned", top_level_label="Sin Asignar"),
        Category(id="c-groceries", top_level_label="Gastos", sub_label="Supermercado"),
        Category(id="c-fuel", top_level_label="Gastos", sub_label="Gasolina"),
        Category(id="c-coffee", top_level_label="Gastos", sub_label="Cafeterías"),
        Category(id="c-amazon", top_level_label="Compras", sub_label="Amazon"),
        Category(id="c-streaming", top_level_label="Ocio", sub_label="Streaming"),
        Category(
            id="c-salary",
            top_level_label="Ingresos",
            sub_label="Salario",
            kind=CategoryKind.INCOME,
        ),
    ]


@pytest.fixture
def ordinary_account() -> AccountContext:
    return AccountContext(
        account_type=AccountType.ORDINARY, currency_code="MXN", account_id="acc-checking"
    )


@pytest.fixture
def credit_card_account() -> AccountContext:
    return AccountContext(
        account_type=AccountType.CREDIT_CARD, currency_code="MXN", account_id="acc-card"
    )


@pytest.fixture
def make_xlsx() -> Callable[[Sequence[Sequence[Any]]], bytes]:
    """Return a builder turning rows of Python values into workbook bytes."""

    def _build(rows: Sequence[Sequence[Any]]) -> bytes:
        wb = Workbook()
        ws = wb.active
        for row in rows:
            ws.append(list(row))
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()

    return _build
