"""Public interface for the ``statement_import`` package.

Bank and credit-card statement import: decode a CSV or Excel export, detect
its column layout, normalize dates and amounts, decide income vs expense, and
suggest a category for every row before a human confirms the import. This
module only re-exports the stable import surface.
"""

from .classifier import classify, classify_directional, is_reimbursement_description
from .config import ImportConfig, config_from_env, default_config
from .decoder import (
    decode,
    decode_delimited,
    decode_legacy_spreadsheet,
    decode_path,
    decode_spreadsheet,
)
from .detector import DEFAULT_STRATEGIES, detect, locate_header
from .matcher import HistoryIndex, find_unassigned, match, normalize_description
from .models import (
    AccountContext,
    AccountType,
    Category,
    CategoryKind,
    Confidence,
    DetectedFormat,
    HistoricalTransaction,
    LedgerEntry,
    MatchResult,
    MovementType,
    ParsedAmount,
    Row,
    SignDecision,
    StagedTransaction,
)
from .normalizer import parse_amount, parse_date
from .pipeline import NoTransactionsFound, stage_content, stage_rows
from .session import ImportOutcome, ImportSession, InvalidTransition, SessionState, TransactionSink

__all__ = [
    # Engine
    "decode",
    "decode_delimited",
    "decode_legacy_spreadsheet",
    "decode_path",
    "decode_spreadsheet",
    "detect",
    "locate_header",
    "DEFAULT_STRATEGIES",
    "parse_amount",
    "parse_date",
    "classify",
    "classify_directional",
    "is_reimbursement_description",
    "HistoryIndex",
    "match",
    "find_unassigned",
    "normalize_description",
    "stage_rows",
    "stage_content",
    "NoTransactionsFound",
    # Session
    "ImportSession",
    "ImportOutcome",
    "InvalidTransition",
    "SessionState",
    "TransactionSink",
    # Configuration
    "ImportConfig",
    "config_from_env",
    "default_config",
    # Models / types
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
