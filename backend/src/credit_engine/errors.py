"""Error kinds raised by the ledger engine."""


class LedgerError(Exception):
    """Base class for all ledger failures.

    Every subclass carries a machine readable ``code`` alongside the
    human readable message so the API layer can map it to a response.
    """

    code = "ledger_error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class LedgerValidationError(LedgerError):
    """Raised when a request is rejected before any store mutation."""

    code = "validation_error"


class IneligibleReferrerError(LedgerError):
    """Raised when a referrer has no prior ledger history."""

    code = "ineligible_referrer"

    def __init__(self, referrer_id: str):
        self.referrer_id = referrer_id
        super().__init__("Invalid referrer ID")


class StoreError(LedgerError):
    """Raised when the event store cannot complete an operation."""

    code = "store_error"
