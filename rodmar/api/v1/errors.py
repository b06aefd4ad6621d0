from fastapi import HTTPException, status

from rodmar.services.exceptions import (
    AccountInUseError,
    AccountNotFoundError,
    DuplicateAccountError,
    InvalidAccountError,
    InvalidLedgerEntryError,
    InvalidStateTransitionError,
    LedgerEntryNotFoundError,
    LedgerIntegrityError,
    RodmarError,
)

# Most specific first
ERROR_MAP = [
    (AccountNotFoundError, status.HTTP_404_NOT_FOUND, "Account Not Found"),
    (LedgerEntryNotFoundError, status.HTTP_404_NOT_FOUND, "Ledger Entry Not Found"),
    (DuplicateAccountError, status.HTTP_409_CONFLICT, "Duplicate Account"),
    (AccountInUseError, status.HTTP_409_CONFLICT, "Account In Use"),
    (LedgerIntegrityError, status.HTTP_409_CONFLICT, "Ledger Integrity Error"),
    (InvalidAccountError, status.HTTP_400_BAD_REQUEST, "Invalid Account"),
    (InvalidLedgerEntryError, status.HTTP_400_BAD_REQUEST, "Invalid Ledger Entry"),
    (InvalidStateTransitionError, status.HTTP_400_BAD_REQUEST, "Invalid State Transition"),
    (RodmarError, status.HTTP_409_CONFLICT, "Conflict"),
]


def domain_http_error(exc: RodmarError, **context) -> HTTPException:
    """Build the HTTPException for a domain error, with request context in the body"""
    for error_type, status_code, title in ERROR_MAP:
        if isinstance(exc, error_type):
            break
    detail = {"error": title, "message": str(exc)}
    if isinstance(exc, LedgerIntegrityError):
        detail["entry"] = exc.entry_label
        detail["account"] = str(exc.ref)
    detail.update({key: value for key, value in context.items() if value is not None})
    return HTTPException(status_code=status_code, detail=detail)


def internal_http_error(title: str, exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": title,
            "message": str(exc),
            "type": type(exc).__name__
        }
    )
