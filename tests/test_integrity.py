"""Tests for the ledger integrity checks."""

import pytest

from splitledger.exceptions import DuplicateParticipantError, LedgerContractError
from splitledger.models import Participant, Transaction
from splitledger.reconcile.integrity import check, scan_health


@pytest.fixture
def participants():
    """Registry with two people besides the owner."""
    return [
        {"uniqueId": "p1", "name": "Person 1"},
        {"uniqueId": "p2", "name": "Person 2"},
    ]


def messages(report):
    return [finding.message for finding in report.findings]


class TestRefundParents:
    """Refund links must resolve inside the snapshot."""

    def test_orphan_refund(self, participants):
        """A missing parent is exactly one error."""
        transactions = [
            {
                "id": "refund1",
                "isLinkedRefund": True,
                "parentTransactionId": "missing",
                "amount": -100,
            }
        ]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "error"
        assert "Orphan refund" in report.findings[0].message
        assert report.findings[0].transaction_id == "refund1"

    def test_each_missing_parent_is_reported(self, participants):
        """Multi-parent refunds report each unresolved id on its own."""
        transactions = [
            {"id": "a", "amount": 500, "payer": "me"},
            {"id": "r", "amount": -100, "parentTransactionIds": ["a", "b", "c"]},
        ]

        report = check(transactions, participants)

        assert report.issue_count == 2
        assert "missing parent b" in report.findings[0].message
        assert "missing parent c" in report.findings[1].message

    def test_linked_refund_without_parent(self, participants):
        """A refund flagged as linked but pointing nowhere is an error."""
        transactions = [{"id": "r", "amount": -100, "isLinkedRefund": True}]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].check == "refund_parent"


class TestNetAmounts:
    """Stored net amounts versus the live refund graph."""

    def test_net_amount_mismatch(self, participants):
        """1000 - 100 is 900, not the stored 800."""
        transactions = [
            {
                "id": "parent1",
                "type": "expense",
                "amount": 1000,
                "netAmount": 800,
                "expenseName": "Test Exp",
            },
            {"id": "refund1", "parentTransactionId": "parent1", "amount": -100},
        ]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "error"
        assert "Net Amount mismatch" in report.findings[0].message
        assert "Stored: 800" in report.findings[0].message
        assert "Calc: 900" in report.findings[0].message

    def test_valid_ledger_has_no_findings(self, participants):
        """Consistent parent and refund produce a clean report."""
        transactions = [
            {
                "id": "parent1",
                "type": "expense",
                "amount": 1000,
                "netAmount": 900,
                "payer": "me",
                "expenseName": "Valid Exp",
            },
            {"id": "refund1", "parentTransactionId": "parent1", "amount": -100, "payer": "me"},
        ]

        report = check(transactions, participants)

        assert report.issue_count == 0
        assert report.findings == []

    @pytest.mark.parametrize("stored,flagged", [(899, False), (901, False), (902, True), (898, True)])
    def test_tolerance_of_one_minor_unit(self, participants, stored, flagged):
        """Differences of a single minor unit are tolerated."""
        transactions = [
            {"id": "p", "amount": 1000, "netAmount": stored},
            {"id": "r", "parentTransactionId": "p", "amount": -100},
        ]

        report = check(transactions, participants)

        assert any("Net Amount mismatch" in m for m in messages(report)) is flagged

    def test_allocated_refund_uses_per_parent_amounts(self, participants):
        """linkedTransactions decide how much of the refund each parent gets."""
        transactions = [
            {"id": "a", "amount": 1000, "netAmount": 900},
            {"id": "b", "amount": 2000, "netAmount": 1800},
            {
                "id": "r",
                "amount": -300,
                "parentTransactionIds": ["a", "b"],
                "linkedTransactions": [{"id": "a", "amount": -100}, {"id": "b", "amount": -200}],
            },
        ]

        assert check(transactions, participants).issue_count == 0

    def test_allocated_refund_falls_back_to_full_amount(self, participants):
        """A parent without an allocation entry takes the whole refund."""
        transactions = [
            {"id": "a", "amount": 1000, "netAmount": 900},
            {"id": "b", "amount": 2000, "netAmount": 1700},
            {
                "id": "r",
                "amount": -300,
                "parentTransactionIds": ["a", "b"],
                "linkedTransactions": [{"id": "a", "amount": -100}],
            },
        ]

        assert check(transactions, participants).issue_count == 0

    def test_settlements_and_income_do_not_reduce_net(self, participants):
        """Only real refunds count towards an expense's net amount."""
        transactions = [
            {"id": "a", "amount": 1000, "netAmount": 1000, "payer": "me"},
            {
                "id": "s",
                "amount": -50,
                "isReturn": True,
                "payer": "me",
                "participants": ["p1"],
                "parentTransactionId": "a",
            },
            {"id": "i", "type": "income", "amount": -20, "parentTransactionId": "a"},
        ]

        assert check(transactions, participants).issue_count == 0

    def test_negative_net_amount_is_left_to_health_scan(self, participants):
        """An expense refunded past zero is consistent, so check stays quiet."""
        transactions = [
            {"id": "a", "amount": 100, "netAmount": -50, "expenseName": "Tickets"},
            {"id": "r", "amount": -150, "parentTransactionId": "a"},
        ]

        assert check(transactions, participants).issue_count == 0
        assert [i.id for i in scan_health(transactions).invalid_amounts] == ["a"]

    def test_unreadable_net_amount_is_mismatch(self, participants):
        transactions = [{"id": "a", "amount": 100, "netAmount": "lots"}]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert "Net Amount mismatch for a" in report.findings[0].message

    def test_missing_name_falls_back_to_id(self, participants):
        """A missing display name degrades the message, not the check."""
        transactions = [{"id": "nameless", "amount": 1000, "netAmount": 10}]

        report = check(transactions, participants)

        assert "Net Amount mismatch for nameless" in report.findings[0].message


class TestReferences:
    """Identifiers must be registered participants or the owner."""

    def test_unknown_payer(self, participants):
        """An unregistered payer is one error."""
        transactions = [
            {"id": "t1", "expenseName": "Bad User Txn", "payer": "unknown-user", "amount": 100}
        ]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "error"
        assert "Unknown payer" in report.findings[0].message

    def test_owner_payer_is_valid(self, participants):
        """The owner is always a valid identifier."""
        transactions = [{"id": "t1", "payer": "me", "amount": 100}]

        assert check(transactions, participants).issue_count == 0

    def test_unknown_participant_and_split_key(self, participants):
        """Participants and split keys are checked one by one."""
        transactions = [
            {
                "id": "t",
                "payer": "me",
                "amount": 100,
                "participants": ["p1", "ghost"],
                "splits": {"me": 50, "ghost": 50},
            }
        ]

        report = check(transactions, participants)

        assert messages(report) == [
            "Txn t: Unknown participant 'ghost'",
            "Txn t: Unknown split participant 'ghost'",
        ]

    def test_registry_models_are_accepted(self):
        """The registry may be given as Participant models."""
        registry = [Participant(unique_id="p1", name="Person 1")]
        transactions = [Transaction(id="t", payer="p1", amount=100)]

        assert check(transactions, registry).issue_count == 0


class TestMonetaryValidity:
    """Amounts, splits, timestamps and types."""

    def test_zero_amount_is_warning(self, participants):
        report = check([{"id": "t", "amount": 0}], participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "warning"
        assert "Zero amount" in report.findings[0].message

    def test_unparseable_amount_is_error(self, participants):
        """Garbage amounts are reported rather than rejected at ingestion."""
        report = check([{"id": "t", "amount": "abc"}], participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "error"
        assert "Invalid amount" in report.findings[0].message

    def test_fractional_amount_is_not_reported(self, participants):
        """Only non-finite amounts break the amount invariant."""
        assert check([{"id": "t", "amount": 10.5}], participants).issue_count == 0

    def test_split_mismatch(self, participants):
        """Split values must add up to the amount."""
        transactions = [{"id": "t", "amount": 1000, "splits": {"me": 500, "p1": 400}}]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert "Split mismatch t" in report.findings[0].message

    def test_split_sum_within_tolerance(self, participants):
        transactions = [{"id": "t", "amount": 1000, "splits": {"me": 500, "p1": 499}}]

        assert check(transactions, participants).issue_count == 0

    def test_refund_splits_compare_absolute_values(self, participants):
        """Negative refund splits match a negative amount."""
        transactions = [
            {"id": "a", "amount": 1000, "splits": {"me": 500, "p1": 500}},
            {
                "id": "r",
                "amount": -1000,
                "splits": {"me": -500, "p1": -500},
                "parentTransactionId": "a",
            },
        ]

        assert check(transactions, participants).issue_count == 0

    @pytest.mark.parametrize(
        "timestamp",
        ["2024-01-15T10:00:00", "2024-01-15T10:00:00+05:30", 1700000000, {"seconds": 1700000000, "nanoseconds": 0}],
    )
    def test_valid_timestamps(self, participants, timestamp):
        transactions = [{"id": "t", "amount": 100, "timestamp": timestamp}]

        assert check(transactions, participants).issue_count == 0

    def test_missing_timestamp_is_quiet_by_default(self, participants):
        assert check([{"id": "t", "amount": 100}], participants).issue_count == 0

    def test_missing_timestamp_warns_when_required(self, participants):
        report = check([{"id": "t", "amount": 100}], participants, require_timestamp=True)

        assert report.issue_count == 1
        assert report.findings[0].severity == "warning"
        assert "Missing timestamp" in report.findings[0].message

    @pytest.mark.parametrize("timestamp", ["not-a-date", "", float("nan"), {"seconds": "x"}])
    def test_invalid_timestamps(self, participants, timestamp):
        """Timestamps that do not convert to an instant are errors."""
        transactions = [{"id": "t", "amount": 100, "timestamp": timestamp}]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert "Invalid timestamp" in report.findings[0].message

    def test_invalid_type(self, participants):
        report = check([{"id": "t", "amount": 100, "type": "transfer"}], participants)

        assert report.issue_count == 1
        assert "Invalid type 'transfer'" in report.findings[0].message


class TestSettlements:
    """Settlement structure."""

    def test_settlement_to_self(self, participants):
        """Paying yourself is an error."""
        transactions = [
            {"id": "s1", "isReturn": True, "payer": "p1", "participants": ["p1"], "amount": 500}
        ]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "error"
        assert "same person" in report.findings[0].message

    def test_settlement_without_recipient(self, participants):
        transactions = [{"id": "s1", "isReturn": True, "payer": "p1", "amount": 500}]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "error"
        assert "no recipient" in report.findings[0].message

    def test_settlement_with_several_recipients(self, participants):
        """More than one recipient is only a warning."""
        transactions = [
            {
                "id": "s1",
                "isReturn": True,
                "payer": "p1",
                "participants": ["me", "p2"],
                "amount": 500,
            }
        ]

        report = check(transactions, participants)

        assert report.issue_count == 1
        assert report.findings[0].severity == "warning"

    def test_owner_settlement_with_missing_payer(self, participants):
        """A missing payer means the owner, so paying the owner is a self-settlement."""
        transactions = [{"id": "s1", "isReturn": True, "participants": ["me"], "amount": 500}]

        report = check(transactions, participants)

        assert "same person" in report.findings[0].message


class TestLooselyTypedRecords:
    """Badly typed fields are reported, never raised."""

    def test_numeric_type_is_invalid_type(self, participants):
        report = check([{"id": "t1", "type": 42, "amount": 100}], participants)

        assert messages(report) == ["Txn t1: Invalid type '42'"]

    def test_numeric_payer_is_unknown_payer(self, participants):
        report = check([{"id": "t1", "payer": 7, "amount": 100}], participants)

        assert messages(report) == ["Txn t1: Unknown payer '7'"]

    def test_bare_participant_id_is_a_list(self, participants):
        """A single id stored without a list still names the recipient."""
        transactions = [
            {"id": "s1", "isReturn": True, "payer": "me", "participants": "p1", "amount": 100}
        ]

        assert check(transactions, participants).issue_count == 0

    def test_numeric_expense_name(self, participants):
        transactions = [{"id": "t1", "expenseName": 12, "amount": 100, "netAmount": 5}]

        report = check(transactions, participants)

        assert "Net Amount mismatch for 12" in report.findings[0].message

    def test_linked_allocation_without_id(self, participants):
        """Allocation entries without an id are dropped and reported."""
        transactions = [
            {"id": "t1", "amount": -50, "linkedTransactions": [{"amount": -50}]}
        ]

        report = check(transactions, participants)

        assert messages(report) == ["Txn t1: Unreadable value for 'linkedTransactions'"]

    @pytest.mark.parametrize(
        "record,key",
        [
            ({"id": "t1", "amount": 100, "splits": [50, 50]}, "splits"),
            ({"id": "t1", "amount": 100, "participants": {"p1": True}}, "participants"),
            ({"id": "t1", "amount": 100, "isDeleted": "maybe"}, "isDeleted"),
            ({"id": "t1", "amount": -100, "parentTransactionIds": 5.5}, "parentTransactionIds"),
        ],
    )
    def test_unreadable_fields(self, participants, record, key):
        report = check([record], participants)

        assert f"Unreadable value for '{key}'" in messages(report)[-1]
        assert report.findings[-1].severity == "error"

    def test_broken_record_does_not_stop_other_checks(self, participants):
        """Every transaction is still checked after a thoroughly broken one."""
        transactions = [
            {"id": "bad", "type": [1], "payer": 3, "amount": {}, "splits": "x"},
            {"id": "t2", "payer": "ghost", "amount": 100},
        ]

        report = check(transactions, participants)

        assert "Txn t2: Unknown payer 'ghost'" in messages(report)
        assert all(f.transaction_id in ("bad", "t2") for f in report.findings)


class TestReport:
    """Report-level behavior."""

    @pytest.fixture
    def messy_ledger(self):
        return [
            {"id": "r", "amount": -100, "parentTransactionId": "gone"},
            {"id": "e", "amount": 1000, "netAmount": 1, "payer": "ghost"},
            {"id": "z", "amount": 0, "isReturn": True, "payer": "p1", "participants": ["p1"]},
        ]

    def test_fixed_pass_order(self, participants, messy_ledger):
        """Findings follow pass order regardless of transaction order."""
        report = check(messy_ledger, participants)

        assert [f.check for f in report.findings] == [
            "refund_parent",
            "net_amount",
            "reference",
            "monetary",
            "settlement",
        ]
        assert [f.transaction_id for f in report.findings] == ["r", "e", "e", "z", "z"]

    def test_check_is_idempotent(self, participants, messy_ledger):
        """Running twice on one snapshot gives the same report."""
        first = check(messy_ledger, participants)
        second = check(messy_ledger, participants)

        assert first == second
        assert first.issue_count == len(first.findings) == 5

    def test_checks_are_additive(self, participants):
        """One transaction can fail several checks."""
        report = check([{"id": "t", "amount": 0, "payer": "ghost"}], participants)

        assert report.issue_count == 2
        assert len(report.errors) == 1
        assert len(report.warnings) == 1

    def test_duplicate_registry_ids_raise(self):
        """A registry with repeated ids is a caller bug."""
        registry = [{"uniqueId": "p1", "name": "A"}, {"uniqueId": "p1", "name": "B"}]

        with pytest.raises(DuplicateParticipantError):
            check([], registry)

    def test_owner_listed_in_registry_raises(self):
        with pytest.raises(DuplicateParticipantError):
            check([], [{"uniqueId": "me", "name": "Me"}])

    @pytest.mark.parametrize("bad", [None, "transactions", {"id": "t"}, 42])
    def test_non_sequence_raises(self, participants, bad):
        with pytest.raises(LedgerContractError):
            check(bad, participants)


class TestHealthScan:
    """Data hygiene buckets."""

    def test_buckets(self):
        transactions = [
            {
                "id": "ok",
                "amount": 100,
                "category": "Food",
                "modeOfPayment": "UPI",
                "expenseName": "Lunch",
            },
            {"id": "bare", "amount": 100, "expenseName": "Mystery"},
            {
                "id": "neg",
                "amount": 100,
                "netAmount": -10,
                "category": "Food",
                "modeOfPayment": "Cash",
            },
            {
                "id": "orphan",
                "amount": -10,
                "parentTransactionId": "nope",
                "category": "Food",
                "modeOfPayment": "Cash",
            },
            {"id": "settle", "amount": 100, "isReturn": True, "participants": ["p1"]},
        ]

        scan = scan_health(transactions)

        assert [i.id for i in scan.orphaned_refunds] == ["orphan"]
        assert scan.orphaned_refunds[0].issue == "Missing parent: nope"
        assert [i.id for i in scan.missing_category] == ["bare"]
        assert [i.id for i in scan.missing_payment_mode] == ["bare"]
        assert [i.id for i in scan.invalid_amounts] == ["neg"]
        assert scan.total == 4

    def test_deleted_transactions_are_ignored(self):
        scan = scan_health([{"id": "d", "amount": 100, "isDeleted": True}])

        assert scan.total == 0
