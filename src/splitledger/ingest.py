"""Turning caller-supplied records into engine models.

Records may arrive as already-built models or as the ledger's camelCase
dictionaries. Shape problems inside a record are left for the integrity
checker; only contract violations (wrong container types, duplicate
participant ids) raise here.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .exceptions import (
    DuplicateParticipantError,
    LedgerContractError,
    SnapshotLoadError,
)
from .models import LedgerSnapshot, Participant, Transaction

logger = logging.getLogger(__name__)


def ingest_transactions(transactions: Any, operation: str = "engine") -> list[Transaction]:
    """
    Validate the snapshot container and build Transaction models.

    Args:
        transactions: Sequence of Transaction models or record mappings
        operation: Name of the calling operation, used in error messages

    Returns:
        Transactions in the order supplied

    Raises:
        LedgerContractError: If the input is not a sequence of records
    """
    if isinstance(transactions, (str, bytes, Mapping)) or not isinstance(
        transactions, Sequence
    ):
        raise LedgerContractError(
            f"{operation} expects a sequence of transactions, "
            f"got {type(transactions).__name__}"
        )

    result = []
    for index, record in enumerate(transactions):
        if isinstance(record, Transaction):
            result.append(record)
        elif isinstance(record, Mapping):
            try:
                result.append(Transaction.model_validate(record))
            except ValidationError as e:
                raise LedgerContractError(
                    f"{operation}: transaction at index {index} is not a ledger record: {e}"
                ) from e
        else:
            raise LedgerContractError(
                f"{operation}: transaction at index {index} is a "
                f"{type(record).__name__}, not a ledger record"
            )
    return result


def build_registry(
    participants: Iterable[Participant | Mapping[str, Any]], owner_id: str = "me"
) -> frozenset[str]:
    """
    Collect the valid participant ids, owner included.

    Raises:
        DuplicateParticipantError: If an id repeats or the owner is listed
        LedgerContractError: If an entry is not a participant record
    """
    seen: set[str] = set()
    for entry in participants:
        if isinstance(entry, Participant):
            participant = entry
        elif isinstance(entry, Mapping):
            try:
                participant = Participant.model_validate(entry)
            except ValidationError as e:
                raise LedgerContractError(f"Invalid participant record: {e}") from e
        else:
            raise LedgerContractError(
                f"Participant registry entries must be records, got {type(entry).__name__}"
            )

        if participant.unique_id == owner_id or participant.unique_id in seen:
            raise DuplicateParticipantError(participant.unique_id)
        seen.add(participant.unique_id)

    return frozenset(seen | {owner_id})


def load_snapshot(path: Path) -> LedgerSnapshot:
    """
    Read a ``{"participants": [...], "transactions": [...]}`` JSON file.

    Raises:
        SnapshotLoadError: If the file is missing or not a valid snapshot
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotLoadError(f"Cannot read snapshot {path}: {e}") from e

    try:
        snapshot = LedgerSnapshot.model_validate_json(raw)
    except ValidationError as e:
        raise SnapshotLoadError(f"Invalid snapshot {path}: {e}") from e

    logger.info(
        f"Loaded snapshot with {len(snapshot.participants)} participants "
        f"and {len(snapshot.transactions)} transactions"
    )
    return snapshot
