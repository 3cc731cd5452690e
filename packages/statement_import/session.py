"""Import session: the review-and-commit state machine around the pipeline.

States::

    AWAITING_ACCOUNT_SELECTION -> AWAITING_FILE -> PREVIEWING -> COMMITTING -> CLOSED

``AWAITING_ACCOUNT_SELECTION`` is skipped when the account is known up front.
A file with nothing to stage is a soft failure that leaves the session in
``AWAITING_FILE``. While ``PREVIEWING`` the only edits are inclusion toggles
and category overrides, applied in place to rows addressed by position. A
failing persistence collaborator sends the session back to ``PREVIEWING``
with the staged rows untouched.

Categories and history are snapshotted when the session is created; later
changes on the host side are not seen until the next session.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import StrEnum
from typing import NamedTuple, Protocol

from .config import ImportConfig, default_config
from .logging_setup import get_logger
from .matcher import HistoryIndex
from .models import (
    AccountContext,
    Category,
    Confidence,
    HistoricalTransaction,
    LedgerEntry,
    StagedTransaction,
)
from .pipeline import NoTransactionsFound, stage_content

_logger = get_logger("statement_import.session")

NOTHING_SELECTED_MESSAGE = "No transactions selected to import."


class SessionState(StrEnum):
    AWAITING_ACCOUNT_SELECTION = "awaiting_account_selection"
    AWAITING_FILE = "awaiting_file"
    PREVIEWING = "previewing"
    COMMITTING = "committing"
    CLOSED = "closed"


class InvalidTransition(RuntimeError):
    """An operation was called in a state that does not allow it."""


class ImportOutcome(NamedTuple):
    ok: bool
    message: str
    count: int = 0


class TransactionSink(Protocol):
    """Persistence collaborator receiving the approved ledger entries."""

    def __call__(self, entries: Sequence[LedgerEntry]) -> None: ...


class ImportSession:
    """One statement import, from account choice to commit."""

    def __init__(
        self,
        categories: Iterable[Category],
        history: Iterable[HistoricalTransaction],
        *,
        account: AccountContext | None = None,
        config: ImportConfig | None = None,
        sink: TransactionSink | None = None,
    ) -> None:
        self._config = config or default_config()
        self._categories: tuple[Category, ...] = tuple(categories)
        self._by_id = {c.id: c for c in self._categories}
        self._history = HistoryIndex.build(history, min_length=self._config.min_history_length)
        self._account = account
        self._sink = sink
        self._rows: list[StagedTransaction] = []
        if account is not None:
            self._state = SessionState.AWAITING_FILE
        else:
            self._state = SessionState.AWAITING_ACCOUNT_SELECTION

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def account(self) -> AccountContext | None:
        return self._account

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    @property
    def history_index(self) -> HistoryIndex:
        return self._history

    @property
    def rows(self) -> tuple[StagedTransaction, ...]:
        return tuple(self._rows)

    def included_rows(self) -> list[StagedTransaction]:
        return [r for r in self._rows if r.included]

    @property
    def included_count(self) -> int:
        return sum(1 for r in self._rows if r.included)

    @property
    def total_count(self) -> int:
        return len(self._rows)

    def category(self, category_id: str | None) -> Category | None:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def entries(self) -> list[LedgerEntry]:
        """Commit payload for the included rows, in staged order."""

        if self._account is None:
            return []
        return [LedgerEntry.from_staged(r, self._account) for r in self._rows if r.included]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require(self, *allowed: SessionState, action: str) -> None:
        if self._state not in allowed:
            raise InvalidTransition(f"cannot {action} while {self._state.value}")

    def _move(self, new: SessionState) -> None:
        _logger.debug("session:transition from=%s to=%s", self._state.value, new.value)
        self._state = new

    def select_account(self, account: AccountContext) -> None:
        self._require(
            SessionState.AWAITING_ACCOUNT_SELECTION,
            SessionState.AWAITING_FILE,
            action="select an account",
        )
        self._account = account
        self._move(SessionState.AWAITING_FILE)

    def load(self, content: bytes | str, *, filename: str | None = None) -> ImportOutcome:
        """Run the pipeline over ``content`` and enter ``PREVIEWING``.

        A file with no stageable rows returns ``ok=False`` and the session
        stays in ``AWAITING_FILE`` so another file can be tried.
        """

        self._require(SessionState.AWAITING_FILE, action="load a file")
        account = self._account
        if account is None:
            raise InvalidTransition("cannot load a file before an account is selected")

        try:
            staged = stage_content(
                content,
                account=account,
                categories=self._categories,
                history_index=self._history,
                filename=filename,
                config=self._config,
            )
        except NoTransactionsFound as exc:
            _logger.info("session:load empty filename=%s", filename)
            return ImportOutcome(ok=False, message=str(exc))

        self._rows = staged
        self._move(SessionState.PREVIEWING)
        return ImportOutcome(
            ok=True, message=f"Staged {len(staged)} transaction(s).", count=len(staged)
        )

    # ------------------------------------------------------------------
    # Previewing edits
    # ------------------------------------------------------------------

    def _row(self, position: int) -> StagedTransaction:
        if not 0 <= position < len(self._rows):
            raise IndexError(f"no staged row at position {position}")
        return self._rows[position]

    def toggle_included(self, position: int) -> bool:
        self._require(SessionState.PREVIEWING, action="toggle a row")
        row = self._row(position)
        row.included = not row.included
        return row.included

    def set_included(self, position: int, value: bool) -> None:
        self._require(SessionState.PREVIEWING, action="toggle a row")
        self._row(position).included = value

    def select_all(self) -> None:
        self._require(SessionState.PREVIEWING, action="select rows")
        for row in self._rows:
            row.included = True

    def select_none(self) -> None:
        self._require(SessionState.PREVIEWING, action="select rows")
        for row in self._rows:
            row.included = False

    def override_category(self, position: int, category_id: str) -> None:
        """Assign ``category_id`` to a row; a manual choice counts as high confidence.

        Raises ``KeyError`` for an id missing from the session's categories.
        """

        self._require(SessionState.PREVIEWING, action="override a category")
        if category_id not in self._by_id:
            raise KeyError(category_id)
        row = self._row(position)
        row.suggested_category_id = category_id
        row.confidence = Confidence.HIGH

    # ------------------------------------------------------------------
    # Commit / cancel
    # ------------------------------------------------------------------

    def commit(self, sink: TransactionSink | None = None) -> ImportOutcome:
        """Hand the included rows to ``sink`` (or the session's sink).

        On success the session is ``CLOSED``. When the sink raises, the error
        is logged and the session returns to ``PREVIEWING`` unchanged.
        """

        self._require(SessionState.PREVIEWING, action="commit")
        target = sink or self._sink
        if target is None:
            raise ValueError("commit needs a transaction sink")

        entries = self.entries()
        if not entries:
            return ImportOutcome(ok=False, message=NOTHING_SELECTED_MESSAGE)

        self._move(SessionState.COMMITTING)
        try:
            target(entries)
        except Exception as exc:  # noqa: BLE001 - the sink is host code
            _logger.exception("session:commit failed entries=%d", len(entries))
            self._move(SessionState.PREVIEWING)
            return ImportOutcome(ok=False, message=str(exc) or type(exc).__name__)

        _logger.info(
            "session:commit ok entries=%d total=%d", len(entries), self.total_count
        )
        self._move(SessionState.CLOSED)
        return ImportOutcome(
            ok=True, message=f"Imported {len(entries)} transaction(s).", count=len(entries)
        )

    def cancel(self) -> None:
        """Abandon the import from any state; staged rows are discarded."""

        self._rows = []
        self._move(SessionState.CLOSED)


__all__ = [
    "ImportOutcome",
    "ImportSession",
    "InvalidTransition",
    "NOTHING_SELECTED_MESSAGE",
    "SessionState",
    "TransactionSink",
]
