"""SplitLedger - Reconcile shared-expense ledgers: splits, integrity and balances."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .models import (
    Allocation,
    Finding,
    IntegrityReport,
    LedgerSnapshot,
    Participant,
    ParticipantBalance,
    Transaction,
)
from .reconcile.allocator import allocate, equal_shares, materialize_splits, validate_splits
from .reconcile.balances import summarize
from .reconcile.integrity import check, scan_health
from .reconcile.service import LedgerService

__all__ = [
    "Settings",
    "load_settings",
    "Allocation",
    "Finding",
    "IntegrityReport",
    "LedgerSnapshot",
    "Participant",
    "ParticipantBalance",
    "Transaction",
    "allocate",
    "equal_shares",
    "materialize_splits",
    "validate_splits",
    "summarize",
    "check",
    "scan_health",
    "LedgerService",
]
