"""Balance Schemas - Recalculation and validation results"""
from pydantic import BaseModel
from decimal import Decimal
from datetime import datetime
from typing import List

from rodmar.services.balance_engine import (
    AccountRecalculation,
    BalanceValidation,
    RecalculationSummary,
)


class RecalculationResponse(BaseModel):
    """Response schema for a full balance recalculation"""
    accounts_updated: int
    entries_processed: int
    pending_skipped: int
    accounts_changed: int
    finished_at: datetime

    @classmethod
    def from_summary(cls, summary: RecalculationSummary) -> "RecalculationResponse":
        return cls(
            accounts_updated=summary.accounts_updated,
            entries_processed=summary.entries_processed,
            pending_skipped=summary.pending_skipped,
            accounts_changed=summary.accounts_changed,
            finished_at=summary.finished_at,
        )


class AccountRecalculationResponse(BaseModel):
    """Response schema for recalculating a single account"""
    account_id: int
    previous_balance: Decimal
    balance: Decimal
    entries_processed: int
    pending_skipped: int

    @classmethod
    def from_result(cls, result: AccountRecalculation) -> "AccountRecalculationResponse":
        return cls(
            account_id=result.account_id,
            previous_balance=result.previous_balance,
            balance=result.balance,
            entries_processed=result.entries_processed,
            pending_skipped=result.pending_skipped,
        )


class StaleRecalculationResponse(BaseModel):
    accounts: List[AccountRecalculationResponse]


class BalanceValidationResponse(BaseModel):
    """Cached balance compared against a fresh fold of the ledger"""
    account_id: int
    cached_balance: Decimal
    computed_balance: Decimal
    difference: Decimal
    valid: bool

    @classmethod
    def from_validation(cls, validation: BalanceValidation) -> "BalanceValidationResponse":
        return cls(
            account_id=validation.account_id,
            cached_balance=validation.cached_balance,
            computed_balance=validation.computed_balance,
            difference=validation.difference,
            valid=validation.valid,
        )
