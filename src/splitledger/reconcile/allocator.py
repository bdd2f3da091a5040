"""Split allocation for a single transaction.

The allocator works one user edit at a time: given the current split map and
the caller-owned set of locked participants, it returns the next split map and
the next locked set. It never mutates its inputs.
"""

import logging
from collections.abc import Iterable, Mapping, Set
from decimal import Decimal
from typing import Literal

from ..exceptions import UnknownSplitMethodError
from ..models import Allocation, Amount, Participant, SplitValidation
from ..money import (
    InputPolicy,
    format_minor_units,
    parse_amount_input,
    parse_percentage_input,
    round_half_ceiling,
    round_half_up,
    to_minor_units,
)

logger = logging.getLogger(__name__)

RemainderPolicy = Literal["drift", "absorb"]

SPLIT_METHODS = ("equal", "percentage", "dynamic")
PERCENT_TOLERANCE = 0.01


def _participant_ids(participants: Iterable[str | Participant]) -> list[str]:
    return [p.unique_id if isinstance(p, Participant) else p for p in participants]


def allocate(
    method: str,
    participants: Iterable[str | Participant],
    total_amount: int,
    current_splits: Mapping[str, Amount],
    changed_participant_id: str,
    raw_input_value: str | None,
    locked: Set[str] = frozenset(),
    *,
    input_policy: InputPolicy = "zero",
    remainder: RemainderPolicy = "drift",
    minor_units_per_major: int = 100,
) -> Allocation:
    """
    Apply one participant edit and compute the resulting split map.

    Methods:
    - equal: nothing is computed; the current map is echoed back and
      ``participant_count`` tells the caller how many heads to divide by.
    - percentage: only the edited participant's percentage changes.
    - dynamic: the edited participant is locked (or unlocked when the input is
      cleared), then whatever the locked participants do not cover is spread
      evenly over the unlocked ones, each share rounded independently
      with halves going toward positive infinity.

    Args:
        method: One of "equal", "percentage", "dynamic"
        participants: Participants sharing the transaction, in display order
        total_amount: Transaction total in minor units
        current_splits: Split map before the edit
        changed_participant_id: Participant whose input changed
        raw_input_value: Text as typed (major units for dynamic, percent otherwise)
        locked: Participants pinned by earlier edits (owned by the caller)
        input_policy: How unparseable text is treated ("zero" or "reject")
        remainder: "drift" keeps independent rounding, "absorb" spreads the
            leftover minor units so the map sums to the total
        minor_units_per_major: Currency scale used to read raw input

    Returns:
        The new split map and locked set

    Raises:
        UnknownSplitMethodError: If the method is not supported
    """
    if method not in SPLIT_METHODS:
        raise UnknownSplitMethodError(method)

    ids = _participant_ids(participants)
    splits: dict[str, Amount] = dict(current_splits)

    if method == "equal":
        return Allocation(
            method="equal",
            splits=splits,
            locked=frozenset(locked),
            participant_count=len(ids),
        )

    if method == "percentage":
        splits[changed_participant_id] = parse_percentage_input(
            raw_input_value, input_policy
        )
        return Allocation(
            method="percentage",
            splits=splits,
            locked=frozenset(locked),
            participant_count=len(ids),
        )

    return _allocate_dynamic(
        ids,
        total_amount,
        splits,
        changed_participant_id,
        raw_input_value,
        set(locked),
        input_policy=input_policy,
        remainder=remainder,
        minor_units_per_major=minor_units_per_major,
    )


def _allocate_dynamic(
    ids: list[str],
    total_amount: int,
    splits: dict[str, Amount],
    changed_id: str,
    raw_input_value: str | None,
    locked: set[str],
    *,
    input_policy: InputPolicy,
    remainder: RemainderPolicy,
    minor_units_per_major: int,
) -> Allocation:
    new_value = to_minor_units(
        parse_amount_input(raw_input_value, input_policy), minor_units_per_major
    )

    if raw_input_value is not None and raw_input_value != "":
        locked.add(changed_id)
    else:
        locked.discard(changed_id)

    splits[changed_id] = new_value

    locked_sum: Amount = 0
    unlocked: list[str] = []
    for pid in ids:
        if pid == changed_id and pid in locked:
            locked_sum += new_value
        elif pid in locked:
            locked_sum += splits.get(pid, 0)
        else:
            unlocked.append(pid)

    remaining = total_amount - locked_sum

    if unlocked:
        if remainder == "absorb":
            base, extra = divmod(int(remaining), len(unlocked))
            for index, pid in enumerate(unlocked):
                splits[pid] = base + (1 if index < extra else 0)
        else:
            share = round_half_ceiling(Decimal(remaining) / len(unlocked))
            for pid in unlocked:
                splits[pid] = share
            drift = remaining - share * len(unlocked)
            if drift:
                logger.debug(
                    f"Dynamic split rounding left {drift} minor units unallocated "
                    f"across {len(unlocked)} unlocked participants"
                )
    else:
        logger.debug(
            f"All participants locked; locked sum {locked_sum} vs total {total_amount}"
        )

    return Allocation(
        method="dynamic",
        splits=splits,
        locked=frozenset(locked),
        participant_count=len(ids),
    )


def equal_shares(total_amount: int, participant_ids: Iterable[str]) -> dict[str, int]:
    """
    Divide a total evenly, handing the remainder to the first participants.

    The division is done on the absolute amount and the sign restored after,
    so a refund of -1000 over three heads gives -334, -333, -333.
    """
    ids = list(participant_ids)
    if not ids:
        return {}

    sign = -1 if total_amount < 0 else 1
    share, leftover = divmod(abs(int(total_amount)), len(ids))
    return {
        pid: (share + (1 if index < leftover else 0)) * sign
        for index, pid in enumerate(ids)
    }


def materialize_splits(
    method: str,
    total_amount: int,
    splits: Mapping[str, Amount],
    participant_ids: Iterable[str],
) -> dict[str, int]:
    """
    Turn an in-progress split map into the minor-unit map that gets stored.

    Percentages are converted against the absolute total and dynamic values
    are taken as magnitudes; a negative total (refund) flips every share.

    Raises:
        UnknownSplitMethodError: If the method is not supported
    """
    if method not in SPLIT_METHODS:
        raise UnknownSplitMethodError(method)

    if method == "equal":
        return equal_shares(total_amount, participant_ids)

    multiplier = -1 if total_amount < 0 else 1
    absolute = abs(total_amount)

    if method == "percentage":
        return {
            pid: round_half_up(Decimal(str(percent)) / 100 * absolute) * multiplier
            for pid, percent in splits.items()
        }

    return {pid: round_half_up(Decimal(str(value))) * multiplier for pid, value in splits.items()}


def validate_splits(
    total_amount: int,
    splits: Mapping[str, Amount],
    method: str,
    *,
    currency_symbol: str = "₹",
    minor_units_per_major: int = 100,
) -> SplitValidation:
    """
    Check whether an in-progress split map adds up.

    Equal splits are always valid. Percentages must total 100 (within 0.01).
    Dynamic shares must match the total exactly; the message says how much is
    left over or over-allocated.

    Raises:
        UnknownSplitMethodError: If the method is not supported
    """
    if method not in SPLIT_METHODS:
        raise UnknownSplitMethodError(method)

    if method == "equal":
        return SplitValidation(is_valid=True)

    if method == "percentage":
        total_percent = sum(float(value or 0) for value in splits.values())
        if abs(total_percent - 100) < PERCENT_TOLERANCE:
            return SplitValidation(is_valid=True, message="✓ Total is 100%")
        return SplitValidation(
            is_valid=False, message=f"Total is {total_percent:g}%. Must be 100%."
        )

    def fmt(amount: int) -> str:
        return format_minor_units(amount, currency_symbol, minor_units_per_major)

    total = round_half_up(Decimal(str(total_amount)))
    if total == 0:
        return SplitValidation(is_valid=False, message="Enter total amount first.")

    split_sum = sum(round_half_up(Decimal(str(value))) for value in splits.values())
    diff = total - split_sum

    if diff == 0:
        return SplitValidation(is_valid=True, message=f"✓ Total matches {fmt(total)}")
    if diff > 0:
        return SplitValidation(is_valid=False, message=f"{fmt(diff)} remaining.")
    return SplitValidation(is_valid=False, message=f"{fmt(abs(diff))} over.")
