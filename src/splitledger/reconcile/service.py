"""Service layer that composes the reconciliation passes.

This module provides a higher-level API that applies settings (owner id,
tolerance, allocation policies, soft-delete handling) on top of the pure
engine functions.
"""

import logging
from collections.abc import Iterable, Mapping, Set

from ..config import Settings
from ..ingest import build_registry, ingest_transactions
from ..models import (
    Allocation,
    Amount,
    HealthScan,
    IntegrityReport,
    LedgerSnapshot,
    Participant,
    ParticipantBalance,
    SplitValidation,
    Transaction,
)
from .allocator import allocate, materialize_splits, validate_splits
from .balances import net_position, summarize
from .integrity import check, scan_health

logger = logging.getLogger(__name__)


class LedgerService:
    """Runs allocation, integrity checks and balances for one ledger snapshot."""

    def __init__(self, settings: Settings, snapshot: LedgerSnapshot | None = None):
        """Initialize the service with settings and an optional snapshot."""
        self.settings = settings
        self.snapshot = snapshot or LedgerSnapshot()

        # Fail fast on a broken registry
        build_registry(self.snapshot.participants, settings.owner_id)

    def live_transactions(self) -> list[Transaction]:
        """Snapshot transactions, without soft-deleted ones unless configured."""
        txns = ingest_transactions(self.snapshot.transactions, operation="service")
        if self.settings.include_deleted:
            return txns

        live = [txn for txn in txns if not txn.is_deleted]
        if len(live) != len(txns):
            logger.debug(f"Skipping {len(txns) - len(live)} soft-deleted transactions")
        return live

    def check(self) -> IntegrityReport:
        """Run the integrity checks over the live transactions."""
        return check(
            self.live_transactions(),
            self.snapshot.participants,
            owner_id=self.settings.owner_id,
            tolerance=self.settings.amount_tolerance,
            require_timestamp=self.settings.require_timestamp,
        )

    def scan_health(self) -> HealthScan:
        """Run the data health scan over the snapshot."""
        return scan_health(self.snapshot.transactions)

    def balances(self) -> dict[str, ParticipantBalance]:
        """Compute balances relative to the owner over the live transactions."""
        return summarize(self.live_transactions(), owner_id=self.settings.owner_id)

    def net_position(self) -> Amount:
        """Overall amount the owner is owed (negative: owes)."""
        return net_position(self.balances())

    def participant_name(self, participant_id: str) -> str:
        """Display name for an id, falling back to the id itself."""
        if participant_id == self.settings.owner_id:
            return "You"
        for participant in self.snapshot.participants:
            if participant.unique_id == participant_id:
                return participant.name or participant_id
        return participant_id

    def allocate(
        self,
        method: str,
        participants: Iterable[str | Participant],
        total_amount: int,
        current_splits: Mapping[str, Amount],
        changed_participant_id: str,
        raw_input_value: str | None,
        locked: Set[str] = frozenset(),
    ) -> Allocation:
        """Apply one split edit using the configured input and remainder policies."""
        return allocate(
            method,
            participants,
            total_amount,
            current_splits,
            changed_participant_id,
            raw_input_value,
            locked,
            input_policy=self.settings.invalid_input_policy,
            remainder=self.settings.dynamic_remainder,
            minor_units_per_major=self.settings.minor_units_per_major,
        )

    def validate_splits(
        self, method: str, total_amount: int, splits: Mapping[str, Amount]
    ) -> SplitValidation:
        """Check an in-progress split map using the configured currency."""
        return validate_splits(
            total_amount,
            splits,
            method,
            currency_symbol=self.settings.currency_symbol,
            minor_units_per_major=self.settings.minor_units_per_major,
        )

    def finalize_splits(
        self,
        method: str,
        total_amount: int,
        splits: Mapping[str, Amount],
        participant_ids: Iterable[str],
    ) -> dict[str, int]:
        """Produce the minor-unit split map the caller will store."""
        final = materialize_splits(method, total_amount, splits, participant_ids)
        logger.info(f"Materialized {method} split over {len(final)} participants")
        return final
