"""Custom exceptions for SplitLedger.

Ledger data problems are never raised; they are reported as findings by the
integrity checker. The exceptions below signal caller bugs or broken setup.
"""


class LedgerError(Exception):
    """Base exception for all SplitLedger errors."""

    pass


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class LedgerContractError(LedgerError):
    """Raised when an engine call is made with inputs that break its contract."""

    pass


class DuplicateParticipantError(LedgerContractError):
    """Raised when the participant registry contains the same id twice."""

    def __init__(self, participant_id: str, message: str | None = None):
        self.participant_id = participant_id
        super().__init__(
            message
            or f"Participant id '{participant_id}' appears more than once in the registry"
        )


class UnknownSplitMethodError(LedgerContractError):
    """Raised when an allocation is requested for an unsupported split method."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(
            f"Unknown split method '{method}' (expected equal, percentage or dynamic)"
        )


class InvalidAmountInputError(LedgerError):
    """Raised for unparseable amount text when the input policy is 'reject'."""

    def __init__(self, raw_value: str):
        self.raw_value = raw_value
        super().__init__(f"Cannot parse amount input: {raw_value!r}")


class SnapshotLoadError(LedgerError):
    """Raised when a ledger snapshot file cannot be read or parsed."""

    pass
