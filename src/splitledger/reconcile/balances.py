"""Per-participant balances relative to the ledger owner."""

import logging
from collections.abc import Mapping
from typing import Any

from ..ingest import ingest_transactions
from ..models import Amount, BalanceTag, ParticipantBalance, RelatedTransaction, Transaction

logger = logging.getLogger(__name__)


def _record(
    balances: dict[str, ParticipantBalance],
    participant_id: str,
    txn: Transaction,
    tag: BalanceTag,
    amount: Amount,
) -> None:
    balance = balances.get(participant_id)
    if balance is None:
        balance = balances[participant_id] = ParticipantBalance(participant_id=participant_id)

    if tag in ("credit", "settlement-in"):
        balance.owed_to_me += amount
    else:
        balance.i_owe += amount
    balance.related_txns.append(RelatedTransaction(transaction=txn, tag=tag, amount=amount))


def summarize(transactions: Any, owner_id: str = "me") -> dict[str, ParticipantBalance]:
    """
    Derive every counterparty's position relative to the owner.

    Rules per transaction, in the order supplied:
    - Settlement paid by the owner to someone: that person's ``i_owe``
      drops by the settlement amount (settlement-out).
    - Settlement paid to the owner: the payer's ``owed_to_me`` drops by the
      settlement amount (settlement-in).
    - Shared expense paid by the owner: every other split participant's
      ``owed_to_me`` grows by their share (credit).
    - Shared expense paid by someone else with an owner share: the payer's
      ``i_owe`` grows by the owner's share (debt).

    Income, settlements between two other people, and expenses that do not
    involve the owner are not tracked. Balances are rebuilt from scratch on
    every call.

    Args:
        transactions: Sequence of transactions (models or record mappings)
        owner_id: Reserved identifier of the ledger owner

    Returns:
        Mapping of participant id to balance, in order of first appearance

    Raises:
        LedgerContractError: If transactions is not a sequence of records
    """
    txns = ingest_transactions(transactions, operation="summarize")
    balances: dict[str, ParticipantBalance] = {}

    for txn in txns:
        payer = txn.resolved_payer(owner_id)

        if txn.type == "income":
            continue

        if txn.is_return:
            recipient = txn.participants[0] if txn.participants else None
            if not recipient or recipient == payer:
                continue

            if payer == owner_id:
                _record(balances, recipient, txn, "settlement-out", -abs(txn.amount))
            elif recipient == owner_id:
                _record(balances, payer, txn, "settlement-in", -abs(txn.amount))
            continue

        if not txn.splits:
            continue

        if payer == owner_id:
            for participant_id, share in txn.splits.items():
                if participant_id != owner_id:
                    _record(balances, participant_id, txn, "credit", share)
        else:
            my_share = txn.splits.get(owner_id, 0)
            if my_share > 0:
                _record(balances, payer, txn, "debt", my_share)

    logger.info(f"Computed balances for {len(balances)} participants from {len(txns)} transactions")
    return balances


def related_transactions(
    balances: Mapping[str, ParticipantBalance], participant_id: str
) -> list[RelatedTransaction]:
    """Feed entries for one participant (empty when they have none)."""
    balance = balances.get(participant_id)
    return list(balance.related_txns) if balance else []


def net_position(balances: Mapping[str, ParticipantBalance]) -> Amount:
    """Sum of all net balances; positive means the owner is owed overall."""
    return sum((balance.net_balance for balance in balances.values()), 0)
