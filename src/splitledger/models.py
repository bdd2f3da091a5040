"""Pydantic domain models for SplitLedger."""

import math
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

Amount = int | float  # minor units; float only survives for dirty input
TransactionType = Literal["expense", "income", "refund"]
TRANSACTION_TYPES: frozenset[str] = frozenset({"expense", "income", "refund"})


def coerce_amount(value: Any) -> Any:
    """
    Best-effort numeric coercion for stored amounts.

    Numeric strings become numbers, anything else unparseable becomes NaN so
    the integrity checker can report it rather than ingestion failing.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return float("nan")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return float("nan")
    return float("nan")


def coerce_text(value: Any) -> str | None:
    """Stringify a loosely stored scalar so it can be compared and reported."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


_TRUE_TEXT = frozenset({"true", "1", "yes"})
_FALSE_TEXT = frozenset({"false", "0", "no", ""})


def coerce_flag(value: Any) -> bool | None:
    """Read a loosely stored boolean. Returns None when it cannot be read."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    return None


def coerce_id_list(value: Any) -> list[str] | None:
    """
    Read a stored list of participant ids.

    A bare id becomes a one-item list and ids are stringified. Returns None
    when the value is not a list at all.
    """
    if value is None:
        return []
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return [str(value)]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """
    Convert a stored timestamp to a datetime.

    Accepts datetime/date objects, ISO-8601 strings, epoch seconds and
    ``{"seconds": ..., "nanoseconds": ...}`` mappings. Returns None when the
    value cannot be converted to a valid instant.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time(), tzinfo=UTC)
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return None
        if isinstance(nanos, bool) or not isinstance(nanos, (int, float)):
            return None
        value = seconds + nanos / 1_000_000_000
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


class LedgerModel(BaseModel):
    """Base for records ingested from the ledger's camelCase storage shape."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# ============================================================================
# Participants
# ============================================================================


class Participant(LedgerModel):
    """A registered participant. The owner ("me") is never listed."""

    unique_id: str
    name: str = ""

    @field_validator("unique_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> Any:
        return coerce_text(value) or ""


# ============================================================================
# Refund linkage
# ============================================================================


class LinkedAllocation(LedgerModel):
    """Share of a multi-parent refund attributed to one parent expense."""

    id: str
    amount: Amount = 0

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return coerce_text(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return 0 if value is None else coerce_amount(value)


class SingleParent(LedgerModel):
    """Refund reducing exactly one expense; its full amount goes to that parent."""

    kind: Literal["single"] = "single"
    parent_id: str

    @property
    def parent_ids(self) -> list[str]:
        return [self.parent_id]

    def allocation_for(self, parent_id: str, refund_amount: Amount) -> Amount:
        return refund_amount


class MultiParent(LedgerModel):
    """Refund referencing several expenses without a per-parent breakdown."""

    kind: Literal["multi"] = "multi"
    parent_ids: list[str]

    def allocation_for(self, parent_id: str, refund_amount: Amount) -> Amount:
        return refund_amount


class AllocatedMultiParent(LedgerModel):
    """Refund split across parents by explicit ``linkedTransactions`` entries."""

    kind: Literal["allocated"] = "allocated"
    parent_ids: list[str]
    allocations: list[LinkedAllocation]

    def allocation_for(self, parent_id: str, refund_amount: Amount) -> Amount:
        """Allocated amount for this parent, or the full refund if none matches."""
        for allocation in self.allocations:
            if allocation.id == parent_id:
                return allocation.amount
        return refund_amount


RefundLink = Annotated[
    SingleParent | MultiParent | AllocatedMultiParent,
    Field(discriminator="kind"),
]


def resolve_refund_link(
    parent_id: Any = None,
    parent_ids: Any = None,
    linked_transactions: Any = None,
) -> SingleParent | MultiParent | AllocatedMultiParent | None:
    """
    Resolve the loose refund linkage fields of a record into one variant.

    Args:
        parent_id: ``parentTransactionId`` value
        parent_ids: ``parentTransactionIds`` value
        linked_transactions: ``linkedTransactions`` value

    Returns:
        The resolved link, or None if the record references no parent
    """
    explicit_ids = [str(pid) for pid in (parent_ids or []) if pid]
    ids: list[str] = []
    for pid in ([str(parent_id)] if parent_id else []) + explicit_ids:
        if pid not in ids:
            ids.append(pid)

    allocations = [LinkedAllocation.model_validate(entry) for entry in linked_transactions or []]
    if allocations:
        if not ids:
            for allocation in allocations:
                if allocation.id not in ids:
                    ids.append(allocation.id)
        return AllocatedMultiParent(parent_ids=ids, allocations=allocations)

    if not ids:
        return None
    if explicit_ids:
        return MultiParent(parent_ids=ids)
    return SingleParent(parent_id=ids[0])


# ============================================================================
# Transactions
# ============================================================================


_LINK_KEYS = {
    "parent_id": ("parentTransactionId", "parent_transaction_id"),
    "parent_ids": ("parentTransactionIds", "parent_transaction_ids"),
    "linked_transactions": ("linkedTransactions", "linked_transactions"),
}
_TEXT_KEYS = (
    "type",
    "payer",
    "expenseName",
    "expense_name",
    "category",
    "modeOfPayment",
    "mode_of_payment",
)
_FLAG_KEYS = (
    "isReturn",
    "is_return",
    "isLinkedRefund",
    "is_linked_refund",
    "isDeleted",
    "is_deleted",
)


def _read_link_field(name: str, value: Any) -> tuple[Any, bool]:
    """Clean one refund linkage field. The flag is False if any of it was unreadable."""
    if value is None:
        return None, True
    if name == "parent_id":
        if isinstance(value, (list, tuple, Mapping)):
            return None, False
        return coerce_text(value), True
    if name == "parent_ids":
        ids = coerce_id_list(value)
        return ids, ids is not None
    if not isinstance(value, (list, tuple)):
        return None, False
    entries = [
        entry
        for entry in value
        if isinstance(entry, LinkedAllocation)
        or (isinstance(entry, Mapping) and entry.get("id") is not None)
    ]
    return entries, len(entries) == len(value)


class Transaction(LedgerModel):
    """
    One ledger event.

    Amounts are signed minor units; refunds are negative. Fields the ledger
    stores loosely are normalized here so every reader sees one shape:
    a missing type means "expense", and the refund parent fields are folded
    into ``refund_link``. Values that cannot be read at all are dropped and
    their storage key is listed in ``malformed_fields``.
    """

    id: str
    type: str = "expense"
    amount: Amount = 0
    payer: str | None = None
    participants: list[str] = Field(default_factory=list)
    splits: dict[str, Amount] | None = None
    is_return: bool = False
    is_linked_refund: bool = False
    refund_link: RefundLink | None = None
    net_amount: Amount | None = None
    timestamp: Any = None
    expense_name: str | None = None
    category: str | None = None
    mode_of_payment: str | None = None
    is_deleted: bool = False
    malformed_fields: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _normalize_record(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        record = dict(data)
        malformed = [*record.pop("malformed_fields", ()), *record.pop("malformedFields", ())]

        for key in _TEXT_KEYS:
            if key in record:
                record[key] = coerce_text(record[key])

        for key in _FLAG_KEYS:
            if key in record:
                flag = coerce_flag(record[key])
                if flag is None:
                    malformed.append(key)
                record[key] = bool(flag)

        if "participants" in record:
            ids = coerce_id_list(record["participants"])
            if ids is None:
                malformed.append("participants")
            record["participants"] = ids or []

        splits = record.get("splits")
        if splits is not None and not isinstance(splits, Mapping):
            malformed.append("splits")
            record["splits"] = None

        if "refund_link" not in record and "refundLink" not in record:
            found = {}
            for name, keys in _LINK_KEYS.items():
                for key in keys:
                    if key in record:
                        found[name], readable = _read_link_field(name, record.pop(key))
                        if not readable:
                            malformed.append(key)
            record["refund_link"] = resolve_refund_link(**found)

        record["malformed_fields"] = tuple(malformed)
        return record

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return coerce_text(value)

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value: Any) -> Any:
        return "expense" if value is None or value == "" else value

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        return 0 if value is None else coerce_amount(value)

    @field_validator("net_amount", mode="before")
    @classmethod
    def _coerce_net_amount(cls, value: Any) -> Any:
        return coerce_amount(value)

    @field_validator("splits", mode="before")
    @classmethod
    def _coerce_splits(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                str(key): 0 if share is None else coerce_amount(share)
                for key, share in value.items()
            }
        return value

    @property
    def is_settlement(self) -> bool:
        return self.is_return

    @property
    def is_refund(self) -> bool:
        """True for transactions linked (or flagged as linked) to a parent expense."""
        return self.refund_link is not None or self.is_linked_refund

    @property
    def parent_ids(self) -> list[str]:
        return list(self.refund_link.parent_ids) if self.refund_link else []

    @property
    def display_name(self) -> str:
        return self.expense_name or self.id

    @property
    def occurred_at(self) -> datetime | None:
        return parse_timestamp(self.timestamp)

    def resolved_payer(self, owner_id: str = "me") -> str:
        """The payer id, with a missing payer meaning the owner."""
        return self.payer or owner_id

    def refund_allocation_for(self, parent_id: str) -> Amount:
        """Portion of this refund attributed to ``parent_id``."""
        if self.refund_link is None:
            return self.amount
        return self.refund_link.allocation_for(parent_id, self.amount)


class LedgerSnapshot(LedgerModel):
    """A registry plus transactions, as handed to the engine by its caller."""

    participants: list[Participant] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


# ============================================================================
# Allocation
# ============================================================================


SplitMethod = Literal["equal", "percentage", "dynamic"]


class Allocation(BaseModel):
    """Result of one allocator edit: the new split map and the new locked set."""

    model_config = ConfigDict(frozen=True)

    method: SplitMethod
    splits: dict[str, Amount]
    locked: frozenset[str] = frozenset()
    participant_count: int = 0


class SplitValidation(BaseModel):
    """Whether a split map adds up for its method, with a display message."""

    is_valid: bool
    message: str = ""


# ============================================================================
# Integrity
# ============================================================================


Severity = Literal["warning", "error"]
CheckName = Literal["refund_parent", "net_amount", "reference", "monetary", "settlement"]


class Finding(BaseModel):
    """One integrity issue."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    message: str
    check: CheckName
    transaction_id: str | None = None


class IntegrityReport(BaseModel):
    """Findings from one integrity check pass, in pass order."""

    issue_count: int = 0
    findings: list[Finding] = Field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "error"]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        return any(f.severity == "error" for f in self.findings)


class HealthIssue(BaseModel):
    """A transaction flagged by the data health scan."""

    id: str
    name: str | None = None
    issue: str | None = None
    net_amount: Amount | None = None


class HealthScan(BaseModel):
    """Hygiene buckets from the data health scan."""

    orphaned_refunds: list[HealthIssue] = Field(default_factory=list)
    missing_category: list[HealthIssue] = Field(default_factory=list)
    missing_payment_mode: list[HealthIssue] = Field(default_factory=list)
    invalid_amounts: list[HealthIssue] = Field(default_factory=list)
    total: int = 0


# ============================================================================
# Balances
# ============================================================================


BalanceTag = Literal["credit", "debt", "settlement-in", "settlement-out"]


class RelatedTransaction(BaseModel):
    """A feed entry: how one transaction moved a participant's balance."""

    transaction: Transaction
    tag: BalanceTag
    amount: Amount  # signed effect on the balance field the tag refers to


class ParticipantBalance(BaseModel):
    """Position of one counterparty relative to the owner."""

    participant_id: str
    owed_to_me: Amount = 0
    i_owe: Amount = 0
    related_txns: list[RelatedTransaction] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def net_balance(self) -> Amount:
        """Positive: they owe the owner. Negative: the owner owes them."""
        return self.owed_to_me - self.i_owe
