"""CLI for the ``statement_import`` package.

Command handlers (``cmd_preview``, ``cmd_review``) are plain functions that
return an exit code and report problems on stderr as ``Error: ...``. The Typer
app wraps them. A local ``.env`` is loaded (without overriding the process
environment) before any command runs, so ``STATEMENT_IMPORT_*`` settings can
live there.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError
from typer.models import OptionInfo

from .config import config_from_env
from .logging_setup import configure_logging, get_logger
from .models import AccountContext, AccountType, Category, HistoricalTransaction, LedgerEntry
from .session import ImportSession

_logger = get_logger("statement_import.cli")

_CATEGORIES = TypeAdapter(list[Category])
_HISTORY = TypeAdapter(list[HistoricalTransaction])

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="unassigned", top_level_label="Sin Asignar"),
)


# ---- Helpers ------------------------------------------------------------------


class JsonLinesSink:
    """Append ledger entries to a file, one JSON object per line."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __call__(self, entries: Sequence[LedgerEntry]) -> None:
        payload = "".join(e.model_dump_json() + "\n" for e in entries)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(payload)


def _load_categories(path: Path | None) -> list[Category]:
    if path is None:
        return list(DEFAULT_CATEGORIES)
    return _CATEGORIES.validate_json(path.read_bytes())


def _load_history(path: Path | None) -> list[HistoricalTransaction]:
    if path is None:
        return []
    return _HISTORY.validate_json(path.read_bytes())


def _open_session(
    file: Path,
    *,
    account_type: AccountType,
    currency: str,
    account_id: str | None,
    categories_path: Path | None,
    history_path: Path | None,
) -> ImportSession | None:
    """Build a session and load ``file``; print an error and return None on failure."""

    try:
        account = AccountContext(
            account_type=account_type, currency_code=currency, account_id=account_id
        )
    except ValidationError as e:
        print(f"Error: invalid account: {e.errors()[0]['msg']}", file=sys.stderr)
        return None

    try:
        categories = _load_categories(categories_path)
        history = _load_history(history_path)
    except OSError as e:
        print(f"Error: cannot read {e.filename}: {e.strerror}", file=sys.stderr)
        return None
    except ValidationError as e:
        print(f"Error: invalid categories/history file: {e}", file=sys.stderr)
        return None

    try:
        content = file.read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {file}", file=sys.stderr)
        return None
    except OSError as e:
        print(f"Error: Unexpected failure reading '{file}': {e}", file=sys.stderr)
        return None

    session = ImportSession(categories, history, account=account, config=config_from_env())
    outcome = session.load(content, filename=file.name)
    if not outcome.ok:
        print(f"Error: {outcome.message}", file=sys.stderr)
        return None
    return session


def _format_row(session: ImportSession, position: int) -> str:
    row = session.rows[position]
    category = session.category(row.suggested_category_id)
    return "\t".join(
        (
            str(row.position),
            row.date.isoformat(),
            row.description,
            f"{row.amount:.2f}",
            "expense" if row.is_expense else "income",
            "reimbursement" if row.is_reimbursement else "-",
            category.display_name if category is not None else "-",
            row.confidence.value,
        )
    )


def _print_preview(session: ImportSession) -> None:
    for position in range(session.total_count):
        print(_format_row(session, position))
    print(f"{session.included_count}/{session.total_count} transaction(s) included")


def _review_interactively(session: ImportSession) -> None:
    # Deferred import: prompt_toolkit is only needed for interactive review
    from .term_ui import select_category

    by_name: dict[str, str] = {}
    for c in session.categories:
        by_name.setdefault(c.display_name, c.id)
    names = list(by_name)

    for row in session.rows:
        print(_format_row(session, row.position))
        current = session.category(row.suggested_category_id)
        chosen = select_category(names, default=current.display_name if current else "")
        category_id = by_name.get(chosen)
        if category_id is not None and category_id != row.suggested_category_id:
            session.override_category(row.position, category_id)


# ---- Command handlers -----------------------------------------------------------


def cmd_preview(
    file: Path,
    *,
    account_type: AccountType,
    currency: str,
    account_id: str | None = None,
    categories_path: Path | None = None,
    history_path: Path | None = None,
) -> int:
    """Stage ``file`` and print one tab-separated line per staged row.

    Returns ``0`` on success and ``1`` when the file cannot be read or holds
    no importable transactions.
    """

    session = _open_session(
        file,
        account_type=account_type,
        currency=currency,
        account_id=account_id,
        categories_path=categories_path,
        history_path=history_path,
    )
    if session is None:
        return 1
    _print_preview(session)
    return 0


def cmd_review(
    file: Path,
    *,
    output: Path,
    account_type: AccountType,
    currency: str,
    account_id: str | None = None,
    categories_path: Path | None = None,
    history_path: Path | None = None,
    exclude: Sequence[int] = (),
    assume_yes: bool = False,
) -> int:
    """Stage ``file``, let the user adjust categories, then write JSON lines.

    ``exclude`` lists staged positions to leave out. With ``assume_yes`` the
    suggestions are accepted without prompting.
    """

    session = _open_session(
        file,
        account_type=account_type,
        currency=currency,
        account_id=account_id,
        categories_path=categories_path,
        history_path=history_path,
    )
    if session is None:
        return 1

    try:
        for position in exclude:
            session.set_included(position, False)
    except IndexError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not assume_yes:
        try:
            _review_interactively(session)
        except (EOFError, KeyboardInterrupt):
            session.cancel()
            print("Import cancelled.", file=sys.stderr)
            return 1

    outcome = session.commit(JsonLinesSink(output))
    if not outcome.ok:
        print(f"Error: {outcome.message}", file=sys.stderr)
        return 1
    print(outcome.message)
    return 0


# ---- Typer-based console interface ------------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank and credit-card statements (CSV or Excel): detect columns, "
        "classify income/expense and suggest categories."
    ),
)

# Module-level option objects keep calls out of parameter defaults (ruff B008).
# Under Annotated the parameter default applies, so each option carries "...".
FILE_OPTION: OptionInfo = typer.Option(
    ...,
    "--file",
    help="Statement file (delimited text or .xlsx)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports a friendly error
)
ACCOUNT_TYPE_OPTION: OptionInfo = typer.Option(
    ..., "--account-type", help="Account the statement belongs to."
)
CURRENCY_OPTION: OptionInfo = typer.Option(..., "--currency", help="3-letter currency code.")
ACCOUNT_ID_OPTION: OptionInfo = typer.Option(
    ..., "--account-id", help="Account identifier written to the ledger entries."
)
CATEGORIES_OPTION: OptionInfo = typer.Option(
    ..., "--categories", help="JSON list of categories (id, top_level_label, sub_label, kind)."
)
HISTORY_OPTION: OptionInfo = typer.Option(
    ..., "--history", help="JSON list of past transactions (description, category_id)."
)


@app.command("preview")
def preview_cmd(
    file: Annotated[Path, FILE_OPTION],
    account_type: Annotated[AccountType, ACCOUNT_TYPE_OPTION] = AccountType.ORDINARY,
    currency: Annotated[str, CURRENCY_OPTION] = "EUR",
    account_id: Annotated[str | None, ACCOUNT_ID_OPTION] = None,
    categories: Annotated[Path | None, CATEGORIES_OPTION] = None,
    history: Annotated[Path | None, HISTORY_OPTION] = None,
) -> None:
    """Print the staged transactions of a statement without importing them."""

    code = cmd_preview(
        file,
        account_type=account_type,
        currency=currency,
        account_id=account_id,
        categories_path=categories,
        history_path=history,
    )
    if code:
        raise typer.Exit(code)


@app.command("review")
def review_cmd(
    file: Annotated[Path, FILE_OPTION],
    output: Annotated[
        Path, typer.Option(..., "--output", help="JSON-lines file receiving the entries.")
    ],
    account_type: Annotated[AccountType, ACCOUNT_TYPE_OPTION] = AccountType.ORDINARY,
    currency: Annotated[str, CURRENCY_OPTION] = "EUR",
    account_id: Annotated[str | None, ACCOUNT_ID_OPTION] = None,
    categories: Annotated[Path | None, CATEGORIES_OPTION] = None,
    history: Annotated[Path | None, HISTORY_OPTION] = None,
    exclude: Annotated[
        list[int] | None,
        typer.Option(..., "--exclude", help="Staged position to leave out (repeatable)."),
    ] = None,
    yes: Annotated[
        bool, typer.Option(..., "--yes", "-y", help="Accept suggestions without prompting.")
    ] = False,
) -> None:
    """Review category suggestions and write the approved rows."""

    code = cmd_review(
        file,
        output=output,
        account_type=account_type,
        currency=currency,
        account_id=account_id,
        categories_path=categories,
        history_path=history,
        exclude=exclude or (),
        assume_yes=yes,
    )
    if code:
        raise typer.Exit(code)


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and set up logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
