"""Terminal category picker (prompt_toolkit-based).

Kept apart from the session and CLI so it can be driven headlessly in tests
with a pipe input and ``DummyOutput``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator


class _PrefixSuggest(AutoSuggest):
    """Grey inline completion of the first choice starting with the typed text."""

    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        if any(w.lower() == lower for w in self._vocab):
            return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                return Suggestion(w[len(text) :]) if len(w) > len(text) else None
        return None


class _ChoiceValidator(Validator):
    def __init__(self, allowed_lower: set[str]) -> None:
        self._allowed_lower = allowed_lower

    def validate(self, document) -> None:
        if document.text and document.text.lower() not in self._allowed_lower:
            raise ValidationError(message="Pick a category from the list.")


def select_category(
    choices: Sequence[str] | Iterable[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for one of ``choices`` with completion and inline suggestion.

    The default is pre-filled with the cursor at its end; the first printable
    keystroke replaces it, while Backspace or Space edit it. Matching is
    case-insensitive and the canonical spelling is returned. Empty input
    returns ``default``.
    """

    words = list(choices)
    canonical = {w.lower(): w for w in words}
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    kb = KeyBindings()
    menu_opened = False
    menu_index = 0
    replace_mode = bool(default)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in words:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w
        return None

    def _visible_suggestion(b) -> str | None:
        s = getattr(b, "suggestion", None)
        text = getattr(s, "text", None)
        if text:
            return text
        cand = _best_prefix_match(b.document.text)
        return cand[len(b.document.text) :] if cand else None

    def _open_or_advance_menu(b) -> None:
        nonlocal menu_opened, menu_index
        if b.complete_state is None:
            b.start_completion(select_first=True)
            menu_index = 0
        else:
            b.complete_next()
            menu_index += 1
        menu_opened = True

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        nonlocal replace_mode
        replace_mode = False
        _open_or_advance_menu(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        suggestion = _visible_suggestion(b)
        if suggestion:
            b.insert_text(suggestion)
        else:
            _open_or_advance_menu(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            suggestion = _visible_suggestion(b)
            if suggestion:
                b.insert_text(suggestion)
            elif menu_opened and not b.document.text and words:
                b.insert_text(words[max(0, min(menu_index, len(words) - 1))])
        b.validate_and_handle()

    @kb.add("backspace", eager=True)
    def _(event) -> None:
        nonlocal replace_mode
        replace_mode = False
        event.app.current_buffer.delete_before_cursor(1)

    @kb.add("c-a", eager=True)
    @kb.add("home", eager=True)
    def _(event) -> None:
        nonlocal replace_mode
        replace_mode = False
        event.app.current_buffer.cursor_position = 0

    @kb.add("c-e", eager=True)
    @kb.add("end", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        b.cursor_position = len(b.document.text)

    @kb.add("left", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        event.app.current_buffer.cursor_left(1)

    @kb.add("right", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        event.app.current_buffer.cursor_right(1)

    # Only intercept printable keys while the untouched default is showing.
    @kb.add(Keys.Any, filter=Condition(lambda: replace_mode), eager=True)
    def _(event) -> None:
        nonlocal replace_mode
        data = getattr(event, "data", "") or ""
        if not data or not data.isprintable():
            return
        b = event.app.current_buffer
        replace_mode = False
        if data == " ":
            b.insert_text(" ")
            return
        b.delete_before_cursor(len(b.document.text_before_cursor))
        b.delete(len(b.document.text_after_cursor))
        b.insert_text(data)

    if session is None:
        sess: PromptSession = PromptSession(key_bindings=kb)
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
            key_bindings=kb,
        )

    prompt_kwargs: dict[str, Any] = {
        "message": message,
        "completer": completer,
        "default": default,
        "key_bindings": kb,
        "auto_suggest": _PrefixSuggest(words),
        "validator": _ChoiceValidator(set(canonical)),
        "validate_while_typing": False,
        "style": Style.from_dict({"auto-suggestion": "fg:#888888"}),
    }
    result = sess.prompt(**prompt_kwargs).strip()

    if not result:
        return default
    return canonical.get(result.lower(), result)


__all__ = ["select_category"]
