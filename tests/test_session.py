from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

import pytest

from statement_import.models import Category, Confidence, HistoricalTransaction, LedgerEntry
from statement_import.session import (
    NOTHING_SELECTED_MESSAGE,
    ImportSession,
    InvalidTransition,
    SessionState,
)

STATEMENT = "15/01/2025,UBER EATS,-350.50\n16/01/2025,NOMINA,2000.00\n17/01/2025,OXXO,-25.00\n"


class RecordingSink:
    def __init__(self) -> None:
        self.batches: list[list[LedgerEntry]] = []

    def __call__(self, entries: Sequence[LedgerEntry]) -> None:
        self.batches.append(list(entries))


class FailingSink:
    def __call__(self, entries: Sequence[LedgerEntry]) -> None:
        raise RuntimeError("database unavailable")


@pytest.fixture
def previewing(categories, ordinary_account) -> ImportSession:
    session = ImportSession(categories, [], account=ordinary_account)
    outcome = session.load(STATEMENT)
    assert outcome.ok
    return session


def test_account_selection_can_be_skipped(categories, ordinary_account):
    assert ImportSession(categories, []).state is SessionState.AWAITING_ACCOUNT_SELECTION
    assert (
        ImportSession(categories, [], account=ordinary_account).state is SessionState.AWAITING_FILE
    )


def test_select_account_then_load(categories, ordinary_account):
    session = ImportSession(categories, [])
    with pytest.raises(InvalidTransition):
        session.load(STATEMENT)
    session.select_account(ordinary_account)
    assert session.state is SessionState.AWAITING_FILE
    outcome = session.load(STATEMENT)
    assert outcome.ok and outcome.count == 3
    assert session.state is SessionState.PREVIEWING
    assert (session.included_count, session.total_count) == (3, 3)


def test_empty_file_is_a_soft_failure(categories, ordinary_account):
    session = ImportSession(categories, [], account=ordinary_account)
    outcome = session.load("nothing,to,see\n")
    assert not outcome.ok
    assert outcome.message == "Could not find any valid transactions in this file."
    assert session.state is SessionState.AWAITING_FILE
    # another file can be tried
    assert session.load(STATEMENT).ok


def test_toggle_and_bulk_selection(previewing):
    assert previewing.toggle_included(0) is False
    assert previewing.included_count == 2
    previewing.set_included(2, False)
    assert [r.position for r in previewing.included_rows()] == [1]
    previewing.select_all()
    assert previewing.included_count == 3
    previewing.select_none()
    assert previewing.included_count == 0
    with pytest.raises(IndexError):
        previewing.toggle_included(3)


def test_override_category(previewing):
    previewing.override_category(0, "c-coffee")
    row = previewing.rows[0]
    assert row.suggested_category_id == "c-coffee"
    assert row.confidence is Confidence.HIGH
    with pytest.raises(KeyError):
        previewing.override_category(0, "c-missing")


def test_edits_outside_previewing_are_rejected(categories, ordinary_account):
    session = ImportSession(categories, [], account=ordinary_account)
    for call in (
        lambda: session.toggle_included(0),
        lambda: session.override_category(0, "c-coffee"),
        session.select_all,
        lambda: session.commit(RecordingSink()),
    ):
        with pytest.raises(InvalidTransition):
            call()


def test_commit_hands_included_entries_to_sink(previewing, ordinary_account):
    previewing.set_included(2, False)
    sink = RecordingSink()
    outcome = previewing.commit(sink)
    assert outcome.ok and outcome.count == 2
    assert previewing.state is SessionState.CLOSED
    (batch,) = sink.batches
    assert [(e.description, e.income, e.expense) for e in batch] == [
        ("UBER EATS", Decimal("0"), Decimal("350.50")),
        ("NOMINA", Decimal("2000.00"), Decimal("0")),
    ]
    assert {e.account_id for e in batch} == {ordinary_account.account_id}
    assert {e.currency_code for e in batch} == {"MXN"}


def test_commit_failure_keeps_staged_rows(previewing):
    previewing.set_included(1, False)
    previewing.override_category(0, "c-coffee")
    before = [(r.included, r.suggested_category_id, r.confidence) for r in previewing.rows]

    outcome = previewing.commit(FailingSink())
    assert not outcome.ok
    assert outcome.message == "database unavailable"
    assert previewing.state is SessionState.PREVIEWING
    assert [(r.included, r.suggested_category_id, r.confidence) for r in previewing.rows] == before
    assert previewing.rows[0].suggested_category_id == "c-coffee"

    # retry succeeds with the same selection
    sink = RecordingSink()
    assert previewing.commit(sink).ok
    assert len(sink.batches[0]) == 2


def test_commit_with_nothing_selected(previewing):
    previewing.select_none()
    outcome = previewing.commit(RecordingSink())
    assert outcome == (False, NOTHING_SELECTED_MESSAGE, 0)
    assert previewing.state is SessionState.PREVIEWING


def test_commit_uses_session_sink(categories, ordinary_account):
    sink = RecordingSink()
    session = ImportSession(categories, [], account=ordinary_account, sink=sink)
    session.load(STATEMENT)
    assert session.commit().ok
    assert len(sink.batches) == 1


def test_commit_without_any_sink(previewing):
    with pytest.raises(ValueError):
        previewing.commit()


def test_cancel_discards_everything(previewing):
    previewing.cancel()
    assert previewing.state is SessionState.CLOSED
    assert previewing.rows == ()
    with pytest.raises(InvalidTransition):
        previewing.load(STATEMENT)


def test_categories_and_history_are_snapshots(categories, ordinary_account):
    history = [HistoricalTransaction(description="OXXO", category_id="c-coffee")]
    session = ImportSession(categories, history, account=ordinary_account)
    categories.append(Category(id="c-late", top_level_label="Late"))
    history.append(HistoricalTransaction(description="NOMINA", category_id="c-coffee"))

    assert "c-late" not in {c.id for c in session.categories}
    session.load(STATEMENT)
    assert session.rows[2].suggested_category_id == "c-coffee"
    assert session.rows[1].suggested_category_id == "c-salary"
    with pytest.raises(KeyError):
        session.override_category(0, "c-late")
