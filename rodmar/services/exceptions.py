"""Domain errors raised by the services and mapped to HTTP responses by the routers"""


class RodmarError(Exception):
    """Base class for all domain errors"""
    pass


class AccountNotFoundError(RodmarError):
    """Raised when an account id or reference does not resolve"""
    pass


class DuplicateAccountError(RodmarError):
    """Raised when an account with the same kind and code already exists"""
    pass


class AccountInUseError(RodmarError):
    """Raised when deleting an account that ledger entries still reference"""
    pass


class LedgerEntryNotFoundError(RodmarError):
    """Raised when a transaction or investment is not found"""
    pass


class InvalidLedgerEntryError(RodmarError):
    """Raised when a ledger entry fails validation at creation or edit time"""
    pass


class InvalidStateTransitionError(RodmarError):
    """Raised when a transaction is moved to a status it cannot reach"""
    pass


class LedgerIntegrityError(RodmarError):
    """Raised when a ledger entry points at an account that does not exist

    Aborts a balance recalculation before anything is written.
    """

    def __init__(self, entry_label: str, ref):
        self.entry_label = entry_label
        self.ref = ref
        super().__init__(f"{entry_label} references unknown account {ref}")


class InvalidAccountError(RodmarError):
    """Raised when an account name or code cannot be used"""
    pass
