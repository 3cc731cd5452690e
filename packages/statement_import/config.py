"""Immutable configuration tables for the import engine.

Every locale- or vocabulary-specific literal lives here as frozen data and is
handed to the detector, normalizer, classifier and matcher through one
:class:`ImportConfig`. Adding a date layout, a separator convention or a
merchant keyword only means extending a table.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from functools import cache
from types import MappingProxyType

from .text import fold, normalize_description

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateLayout:
    """A date grammar with named groups ``day``, ``month`` and ``year``.

    When ``month_names`` is set the ``month`` group holds an abbreviation that
    is looked up (lower-cased) in that table; otherwise it is numeric.
    """

    name: str
    pattern: re.Pattern[str]
    month_names: Mapping[str, int] | None = None


_TIME_SUFFIX = r"(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?"

ENGLISH_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "jan": 1,
        "feb": 2,
        "mar": 3,
        "apr": 4,
        "may": 5,
        "jun": 6,
        "jul": 7,
        "aug": 8,
        "sep": 9,
        "oct": 10,
        "nov": 11,
        "dec": 12,
    }
)

SPANISH_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "ene": 1,
        "feb": 2,
        "mar": 3,
        "abr": 4,
        "may": 5,
        "jun": 6,
        "jul": 7,
        "ago": 8,
        "sep": 9,
        "oct": 10,
        "nov": 11,
        "dic": 12,
    }
)

_MONTH_NAME_RE = re.compile(
    r"^(?P<day>\d{1,2})[\s\-]+(?P<month>[A-Za-z]{3})\.?[\s\-]+(?P<year>\d{4})$"
)

DATE_LAYOUTS: tuple[DateLayout, ...] = (
    DateLayout(
        name="D/M/YYYY",
        pattern=re.compile(
            r"^(?P<day>\d{1,2})(?P<sep>[/\-])(?P<month>\d{1,2})(?P=sep)(?P<year>\d{4})"
            + _TIME_SUFFIX
            + "$"
        ),
    ),
    DateLayout(name="D Mon YYYY", pattern=_MONTH_NAME_RE, month_names=ENGLISH_MONTHS),
    DateLayout(name="D Mes YYYY", pattern=_MONTH_NAME_RE, month_names=SPANISH_MONTHS),
    DateLayout(
        name="YYYY/M/D",
        pattern=re.compile(
            r"^(?P<year>\d{4})(?P<sep>[/\-])(?P<month>\d{1,2})(?P=sep)(?P<day>\d{1,2})"
            + _TIME_SUFFIX
            + "$"
        ),
    ),
)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AmountConvention:
    """Thousands/decimal separators, chosen when ``applies`` matches.

    A convention without ``applies`` always matches and should come last.
    """

    name: str
    thousands: str
    decimal: str
    applies: re.Pattern[str] | None = None


AMOUNT_CONVENTIONS: tuple[AmountConvention, ...] = (
    AmountConvention(
        name="continental", thousands=".", decimal=",", applies=re.compile(r",\d{1,2}$")
    ),
    AmountConvention(name="anglo", thousands=",", decimal="."),
)

CURRENCY_MARKERS: tuple[str, ...] = ("$", "€", "£", "¥", "MXN", "USD", "EUR", "GBP")


# ---------------------------------------------------------------------------
# Header vocabulary
# ---------------------------------------------------------------------------


def _folded(*tokens: str) -> frozenset[str]:
    return frozenset(fold(t) for t in tokens)


@dataclass(frozen=True, slots=True)
class HeaderVocabulary:
    """Column-name tokens, compared after :func:`fold`."""

    markers: frozenset[str]
    date: frozenset[str]
    description: frozenset[str]
    # Earlier tiers are more generic and win over later ones.
    amount_tiers: tuple[frozenset[str], ...]
    income: frozenset[str]
    expense: frozenset[str]


HEADER_VOCABULARY = HeaderVocabulary(
    markers=_folded(
        "fecha", "date", "descripción", "description", "importe", "amount", "concepto", "monto"
    ),
    date=_folded(
        "fecha",
        "f. valor",
        "f.valor",
        "fecha valor",
        "fecha operación",
        "date",
        "transaction date",
        "post date",
        "posting date",
    ),
    description=_folded(
        "descripción", "description", "concepto", "movimiento", "detalle", "details", "payee"
    ),
    amount_tiers=(
        _folded("importe", "amount", "monto"),
        _folded(
            "importe (€)",
            "importe (eur)",
            "importe ($)",
            "amount ($)",
            "amount($)",
            "amount (usd)",
            "monto ($)",
        ),
    ),
    income=_folded(
        "abono",
        "haber",
        "crédito",
        "importe abono",
        "credit",
        "credits",
        "deposit",
        "deposits",
        "paid in",
        "money in",
    ),
    expense=_folded(
        "cargo",
        "debe",
        "débito",
        "importe cargo",
        "debit",
        "debits",
        "withdrawal",
        "withdrawals",
        "paid out",
        "money out",
    ),
)


# ---------------------------------------------------------------------------
# Category keywords and reimbursement vocabulary
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class KeywordEntry:
    """Merchant/service vocabulary grouped under semantic labels.

    ``labels`` are compared against user category names; ``keywords`` against
    descriptions. Both are stored normalized.
    """

    labels: tuple[str, ...]
    keywords: tuple[str, ...]


def _entry(labels: tuple[str, ...], keywords: tuple[str, ...]) -> KeywordEntry:
    return KeywordEntry(
        labels=tuple(normalize_description(s) for s in labels),
        keywords=tuple(k for k in (normalize_description(s) for s in keywords) if k),
    )


KEYWORD_CATEGORIES: tuple[KeywordEntry, ...] = (
    _entry(
        ("supermercado", "groceries", "grocery"),
        (
            "mercadona", "carrefour", "lidl", "aldi", "eroski", "dia", "alcampo", "hipercor",
            "el corte ingles", "walmart", "soriana", "chedraui", "superama", "costco",
            "sams club", "heb", "oxxo", "canasta", "abarrey", "kowi", "city market",
        ),
    ),
    _entry(
        ("restaurantes", "restaurants", "dining"),
        (
            "uber eats", "rappi", "didi food", "just eat", "glovo", "deliveroo", "mcdonalds",
            "burger king", "kfc", "dominos", "pizza hut", "starbucks", "vips", "sanborns",
            "restaurant", "rest", "cafe", "bar", "comida", "bronco", "dogos", "melo cafe",
            "panarra", "copines", "niddo", "estiatorio", "azul centro",
        ),
    ),
    _entry(
        ("gasolina", "fuel", "gas station"),
        (
            "gasolinera", "pemex", "bp", "shell", "repsol", "cepsa", "total", "fuel",
            "petromax", "gasolina", "gasoline",
        ),
    ),
    _entry(
        ("transporte publico", "public transport", "transport"),
        (
            "metro", "autobus", "bus", "tren", "renfe", "cercanias", "transporte", "cabify",
            "uber trip", "didi", "beat", "taxi",
        ),
    ),
    _entry(
        ("peajes", "tolls"),
        (
            "peaje", "autopista", "toll", "via t", "telepeaje", "tag", "iave", "pase",
            "pase d isra", "pase tlalpan", "pase tepoztlan", "pase ejerc",
        ),
    ),
    _entry(("alquiler", "rent"), ("alquiler", "renta", "rent", "arrendamiento")),
    _entry(("hipoteca", "mortgage"), ("hipoteca", "mortgage", "credito vivienda")),
    _entry(
        ("servicios", "utilities"),
        (
            "luz", "agua", "gas natural", "electricidad", "enel", "endesa", "iberdrola",
            "naturgy", "cfe", "telmex", "izzi", "totalplay", "megacable", "at&t", "rotoplas",
        ),
    ),
    _entry(
        ("farmacia", "pharmacy"),
        (
            "farmacia", "pharmacy", "farmacias del ahorro", "san pablo", "guadalajara",
            "benavides", "similares", "fbenavides", "far guad",
        ),
    ),
    _entry(
        ("medico", "medical", "health"),
        ("doctor", "medico", "hospital", "clinica", "dentista", "odontologo", "laboratorio"),
    ),
    _entry(
        ("deporte", "sport", "fitness"),
        ("natacion", "padel", "playtomic", "gym", "gimnasio", "decathlon", "duo padel"),
    ),
    _entry(
        ("streaming", "subscriptions"),
        (
            "netflix", "spotify", "hbo", "disney", "amazon prime", "apple tv",
            "youtube premium", "deezer", "crunchyroll", "apple.com/bill",
        ),
    ),
    _entry(("cine", "cinema", "movies"), ("cine", "cinepolis", "cinemex", "cinemark", "movie")),
    _entry(("amazon",), ("amazon",)),
    _entry(("mercado libre",), ("mercadopago", "mercado libre")),
    _entry(
        ("tiendas", "shopping", "stores"),
        ("liverpool", "palacio de hierro", "steren", "hexclad", "barrabes"),
    ),
    _entry(
        ("comisiones", "fees", "bank fees"),
        (
            "comision", "commission", "fee", "cargo", "mantenimiento", "cuota anual",
            "iva aplicable",
        ),
    ),
    _entry(
        ("pago tarjeta", "card payment"),
        ("pago", "gracias por su pago", "su pago gracias", "pago de credito"),
    ),
    _entry(
        ("salario", "salary", "payroll"),
        ("nomina", "salario", "sueldo", "payroll", "salary", "wage"),
    ),
    _entry(
        ("rendimientos", "interest", "investment returns"),
        ("rendimiento", "mt rendimiento", "interes", "dividendo"),
    ),
    _entry(
        ("transferencia", "transfers"),
        ("transferencia", "deposito", "abono", "reemb saldo"),
    ),
    _entry(("descuento", "discounts"), ("descuento", "bono", "reembolso")),
)

# "abono" is deliberately absent: on a card it usually means a payment.
REIMBURSEMENT_KEYWORDS: tuple[str, ...] = tuple(
    normalize_description(k)
    for k in (
        "devolucion",
        "reembolso",
        "refund",
        "return",
        "reversion",
        "reverso",
        "cancelacion",
        "chargeback",
        "contracargo",
        # card credits from these retailers are refunds of earlier purchases
        "amazon",
        "liverpool",
        "mercadolibre",
        "mercado libre",
        "mercadopago",
        "wish",
        "aliexpress",
        "shein",
        "servicio de facturacion",
        "barrabes",
    )
)

UNASSIGNED_LABELS: frozenset[str] = frozenset({"sin asignar", "unassigned", "uncategorized"})


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportConfig:
    """All tables and tunables used by one import."""

    date_layouts: tuple[DateLayout, ...] = DATE_LAYOUTS
    amount_conventions: tuple[AmountConvention, ...] = AMOUNT_CONVENTIONS
    currency_markers: tuple[str, ...] = CURRENCY_MARKERS
    header: HeaderVocabulary = HEADER_VOCABULARY
    keyword_categories: tuple[KeywordEntry, ...] = KEYWORD_CATEGORIES
    reimbursement_keywords: tuple[str, ...] = REIMBURSEMENT_KEYWORDS
    unassigned_labels: frozenset[str] = field(default=UNASSIGNED_LABELS)

    date_sample_rows: int = 3
    amount_sample_rows: int = 5
    detect_sample_rows: int = 25
    header_search_rows: int = 10
    min_history_length: int = 3
    prefix_tokens: int = 3
    min_prefix_length: int = 5
    high_confidence_keyword_length: int = 5


@cache
def default_config() -> ImportConfig:
    return ImportConfig()


def _env_positive_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def config_from_env(base: ImportConfig | None = None) -> ImportConfig:
    """Apply ``STATEMENT_IMPORT_*`` environment overrides to ``base``.

    Malformed or non-positive values are ignored.
    """

    cfg = base or default_config()
    overrides: dict[str, int] = {}
    for env_name, attr in (
        ("STATEMENT_IMPORT_DETECT_SAMPLE_ROWS", "detect_sample_rows"),
        ("STATEMENT_IMPORT_HEADER_SEARCH_ROWS", "header_search_rows"),
    ):
        value = _env_positive_int(env_name)
        if value is not None:
            overrides[attr] = value
    return replace(cfg, **overrides) if overrides else cfg


__all__ = [
    "AMOUNT_CONVENTIONS",
    "AmountConvention",
    "DATE_LAYOUTS",
    "DateLayout",
    "HEADER_VOCABULARY",
    "HeaderVocabulary",
    "ImportConfig",
    "KEYWORD_CATEGORIES",
    "KeywordEntry",
    "REIMBURSEMENT_KEYWORDS",
    "config_from_env",
    "default_config",
]
