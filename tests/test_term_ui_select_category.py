import contextlib

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from statement_import.term_ui import select_category

CHOICES = [
    "Sin Asignar",
    "Gastos > Supermercado",
    "Gastos > Gasolina",
    "Compras > Amazon",
    "Restaurantes",
]


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_enter_accepts_prefilled_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert select_category(CHOICES, default="Compras > Amazon", session=sess) == (
            "Compras > Amazon"
        )


def test_enter_completes_typed_prefix():
    with pipe_session() as (pipe, sess):
        # Ctrl-A (home), Ctrl-K (kill to end), type a prefix, Enter
        pipe.send_text("\x01\x0bRes\r")
        assert select_category(CHOICES, default="Sin Asignar", session=sess) == "Restaurantes"


def test_tab_completes_inline_suggestion():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bCompras\t\r")
        assert select_category(CHOICES, default="Sin Asignar", session=sess) == (
            "Compras > Amazon"
        )


def test_first_keystroke_replaces_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("R\r")
        assert select_category(CHOICES, default="Sin Asignar", session=sess) == "Restaurantes"


def test_case_insensitive_exact_value_returns_canonical_name():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bgastos > gasolina\r")
        assert select_category(CHOICES, default="Sin Asignar", session=sess) == (
            "Gastos > Gasolina"
        )
