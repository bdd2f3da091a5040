"""Read-only integrity checks over a ledger snapshot.

Every pass appends findings in transaction order; passes run in a fixed
order and never suppress or deduplicate one another. Dirty data is reported,
never raised.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from ..ingest import build_registry, ingest_transactions
from ..models import (
    TRANSACTION_TYPES,
    CheckName,
    Finding,
    HealthIssue,
    HealthScan,
    IntegrityReport,
    Participant,
    Severity,
    Transaction,
)
from ..money import is_finite_amount

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1  # minor units


def _finding(
    severity: Severity, check: CheckName, txn: Transaction | None, message: str
) -> Finding:
    logger.debug(f"[{check}] {severity}: {message}")
    return Finding(
        severity=severity,
        message=message,
        check=check,
        transaction_id=txn.id if txn else None,
    )


def check(
    transactions: Any,
    participants: Iterable[Participant | Mapping[str, Any]],
    *,
    owner_id: str = "me",
    tolerance: int = DEFAULT_TOLERANCE,
    require_timestamp: bool = False,
) -> IntegrityReport:
    """
    Run every integrity pass over a snapshot.

    Pass order: refund parents, net amounts, references, monetary validity,
    settlement structure. Within a pass transactions are visited in the
    order supplied.

    Args:
        transactions: Sequence of transactions (models or record mappings)
        participants: Participant registry, owner not included
        owner_id: Reserved identifier of the ledger owner
        tolerance: Minor units allowed between stored and derived sums
        require_timestamp: Warn about transactions with no timestamp

    Returns:
        Report with one finding per issue

    Raises:
        LedgerContractError: If transactions is not a sequence of records
        DuplicateParticipantError: If the registry repeats an id
    """
    txns = ingest_transactions(transactions, operation="check")
    known_ids = build_registry(participants, owner_id)

    findings: list[Finding] = []
    findings.extend(check_refund_parents(txns))
    findings.extend(check_net_amounts(txns, tolerance=tolerance))
    findings.extend(check_references(txns, known_ids, owner_id=owner_id))
    findings.extend(
        check_monetary_validity(
            txns, tolerance=tolerance, require_timestamp=require_timestamp
        )
    )
    findings.extend(check_settlements(txns, owner_id=owner_id))

    report = IntegrityReport(issue_count=len(findings), findings=findings)

    if report.issue_count == 0:
        logger.info(f"No integrity issues found in {len(txns)} transactions")
    else:
        logger.info(
            f"Found {report.issue_count} integrity issues "
            f"({len(report.errors)} errors, {len(report.warnings)} warnings)"
        )

    return report


def check_refund_parents(txns: list[Transaction]) -> list[Finding]:
    """Each parent id a refund references must exist in the snapshot."""
    findings = []
    existing_ids = {txn.id for txn in txns}

    for txn in txns:
        if txn.refund_link is None:
            if txn.is_linked_refund:
                findings.append(
                    _finding(
                        "error",
                        "refund_parent",
                        txn,
                        f"Orphan refund found: ID {txn.id} is marked as a linked "
                        f"refund but references no parent",
                    )
                )
            continue

        for parent_id in txn.parent_ids:
            if parent_id not in existing_ids:
                findings.append(
                    _finding(
                        "error",
                        "refund_parent",
                        txn,
                        f"Orphan refund found: ID {txn.id} links to missing "
                        f"parent {parent_id}",
                    )
                )

    return findings


def _is_parent_expense(txn: Transaction) -> bool:
    return txn.type == "expense" and not txn.is_return and not txn.is_refund


def _counts_as_refund(txn: Transaction) -> bool:
    return (
        is_finite_amount(txn.amount)
        and txn.amount < 0
        and not txn.is_return
        and txn.type != "income"
    )


def check_net_amounts(
    txns: list[Transaction], tolerance: int = DEFAULT_TOLERANCE
) -> list[Finding]:
    """
    Stored net amounts must match the expense plus its attributed refunds.

    A refund carrying ``linkedTransactions`` contributes its allocation for
    this parent; otherwise it contributes its full amount.
    """
    findings = []

    refunds_by_parent: dict[str, list[Transaction]] = defaultdict(list)
    for txn in txns:
        if _counts_as_refund(txn):
            for parent_id in txn.parent_ids:
                refunds_by_parent[parent_id].append(txn)

    for parent in txns:
        if not _is_parent_expense(parent) or parent.net_amount is None:
            continue

        stored = parent.net_amount
        refunds = refunds_by_parent.get(parent.id, [])
        expected = parent.amount + sum(
            refund.refund_allocation_for(parent.id) for refund in refunds
        )

        # an unreadable stored value can never match
        if not is_finite_amount(stored) or abs(stored - expected) > tolerance:
            findings.append(
                _finding(
                    "error",
                    "net_amount",
                    parent,
                    f"Net Amount mismatch for {parent.display_name}. "
                    f"Stored: {stored}, Calc: {expected}",
                )
            )

    return findings


def check_references(
    txns: list[Transaction], known_ids: frozenset[str], owner_id: str = "me"
) -> list[Finding]:
    """Payers, participants and split keys must be registered (or the owner)."""
    findings = []

    for txn in txns:
        payer = txn.resolved_payer(owner_id)
        if payer not in known_ids:
            findings.append(
                _finding("error", "reference", txn, f"Txn {txn.id}: Unknown payer '{payer}'")
            )

        for participant_id in txn.participants:
            if participant_id not in known_ids:
                findings.append(
                    _finding(
                        "error",
                        "reference",
                        txn,
                        f"Txn {txn.id}: Unknown participant '{participant_id}'",
                    )
                )

        for split_id in txn.splits or {}:
            if split_id not in known_ids:
                findings.append(
                    _finding(
                        "error",
                        "reference",
                        txn,
                        f"Txn {txn.id}: Unknown split participant '{split_id}'",
                    )
                )

    return findings


def check_monetary_validity(
    txns: list[Transaction],
    tolerance: int = DEFAULT_TOLERANCE,
    require_timestamp: bool = False,
) -> list[Finding]:
    """
    Amounts, split sums, timestamps, types and stored fields must be well formed.

    A missing timestamp is only reported (as a warning) with ``require_timestamp``.
    """
    findings = []

    for txn in txns:
        amount_ok = is_finite_amount(txn.amount)
        if not amount_ok:
            findings.append(
                _finding("error", "monetary", txn, f"Txn {txn.id}: Invalid amount {txn.amount!r}")
            )
        elif txn.amount == 0:
            findings.append(_finding("warning", "monetary", txn, f"Txn {txn.id}: Zero amount"))

        if txn.splits:
            bad_shares = [key for key, share in txn.splits.items() if not is_finite_amount(share)]
            for key in bad_shares:
                findings.append(
                    _finding(
                        "error",
                        "monetary",
                        txn,
                        f"Txn {txn.id}: Invalid split value for '{key}'",
                    )
                )
            if amount_ok and not bad_shares:
                split_sum = sum(txn.splits.values())
                if abs(abs(split_sum) - abs(txn.amount)) > tolerance:
                    findings.append(
                        _finding(
                            "error",
                            "monetary",
                            txn,
                            f"Split mismatch {txn.id}. Total: {txn.amount}, "
                            f"Split Sum: {split_sum}",
                        )
                    )

        if txn.timestamp is None:
            if require_timestamp:
                findings.append(
                    _finding("warning", "monetary", txn, f"Txn {txn.id}: Missing timestamp")
                )
        elif txn.occurred_at is None:
            findings.append(
                _finding(
                    "error",
                    "monetary",
                    txn,
                    f"Txn {txn.id}: Invalid timestamp {txn.timestamp!r}",
                )
            )

        if txn.type not in TRANSACTION_TYPES:
            findings.append(
                _finding("error", "monetary", txn, f"Txn {txn.id}: Invalid type '{txn.type}'")
            )

        for field_name in txn.malformed_fields:
            findings.append(
                _finding(
                    "error",
                    "monetary",
                    txn,
                    f"Txn {txn.id}: Unreadable value for '{field_name}'",
                )
            )

    return findings


def check_settlements(txns: list[Transaction], owner_id: str = "me") -> list[Finding]:
    """A settlement names exactly one recipient, distinct from the payer."""
    findings = []

    for txn in txns:
        if not txn.is_return:
            continue

        if not txn.participants:
            findings.append(
                _finding("error", "settlement", txn, f"Settlement {txn.id} has no recipient")
            )
            continue

        if len(txn.participants) > 1:
            findings.append(
                _finding(
                    "warning",
                    "settlement",
                    txn,
                    f"Settlement {txn.id} names {len(txn.participants)} recipients; "
                    f"only '{txn.participants[0]}' is used",
                )
            )

        if txn.participants[0] == txn.resolved_payer(owner_id):
            findings.append(
                _finding(
                    "error",
                    "settlement",
                    txn,
                    f"Settlement {txn.id}: payer and recipient are the same person "
                    f"('{txn.participants[0]}')",
                )
            )

    return findings


def scan_health(transactions: Any) -> HealthScan:
    """
    Bucket live transactions by common data hygiene problems.

    Soft-deleted transactions are ignored. Buckets: refunds whose parent is
    missing, expenses without a category, expenses without a payment mode,
    and expenses whose net amount has gone negative.
    """
    txns = [txn for txn in ingest_transactions(transactions, "scan_health") if not txn.is_deleted]
    existing_ids = {txn.id for txn in txns}
    scan = HealthScan()

    for txn in txns:
        for parent_id in txn.parent_ids:
            if parent_id not in existing_ids:
                scan.orphaned_refunds.append(
                    HealthIssue(id=txn.id, name=txn.expense_name, issue=f"Missing parent: {parent_id}")
                )

        if txn.type != "expense" or txn.is_return:
            continue

        if not txn.category:
            scan.missing_category.append(HealthIssue(id=txn.id, name=txn.expense_name))
        if not txn.mode_of_payment:
            scan.missing_payment_mode.append(HealthIssue(id=txn.id, name=txn.expense_name))
        if (
            txn.net_amount is not None
            and is_finite_amount(txn.net_amount)
            and txn.net_amount < 0
        ):
            scan.invalid_amounts.append(
                HealthIssue(id=txn.id, name=txn.expense_name, net_amount=txn.net_amount)
            )

    scan.total = (
        len(scan.orphaned_refunds)
        + len(scan.missing_category)
        + len(scan.missing_payment_mode)
        + len(scan.invalid_amounts)
    )
    logger.info(f"Data health scan found {scan.total} issues in {len(txns)} transactions")
    return scan
