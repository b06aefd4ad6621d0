from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from contextlib import asynccontextmanager
from decimal import Decimal
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set
import logging

from rodmar.models import (
    Account,
    AccountRef,
    Investment,
    Transaction,
    TransactionStatus,
)
from rodmar.services.account_service import AccountService
from rodmar.services.exceptions import (
    AccountNotFoundError,
    InvalidLedgerEntryError,
    InvalidStateTransitionError,
    LedgerEntryNotFoundError,
    RodmarError,
)
from rodmar.services.ledger_repository import touching
from rodmar.services.locks import BalanceLockManager, balance_locks

logger = logging.getLogger(__name__)

# Attempts at locking an entry's accounts before giving up when a
# concurrent edit keeps moving the entry to other accounts
MAX_LOCK_ATTEMPTS = 3

TRANSACTION_FIELDS = {"origin", "destination", "amount", "concept", "payment_method", "voucher", "comment", "occurred_at"}
INVESTMENT_FIELDS = {"origin", "destination", "amount", "concept", "notes", "voucher", "occurred_at"}

# Fields an edit may change but never clear
REQUIRED_TRANSACTION_FIELDS = {"destination", "amount", "concept", "occurred_at"}
REQUIRED_INVESTMENT_FIELDS = {"origin", "destination", "amount", "concept", "occurred_at"}


def _validate_entry(origin: Optional[AccountRef], destination: AccountRef, amount: Decimal):
    if amount is None or Decimal(amount) <= 0:
        raise InvalidLedgerEntryError("Amount must be greater than 0")
    if origin is not None and origin == destination:
        raise InvalidLedgerEntryError(f"Origin and destination must be different accounts (both {origin})")


def _check_changes(changes: dict, allowed: Set[str], required: Set[str]):
    unknown = set(changes) - allowed
    if unknown:
        raise InvalidLedgerEntryError(f"Cannot edit fields: {', '.join(sorted(unknown))}")
    cleared = {key for key in required if key in changes and changes[key] is None}
    if cleared:
        raise InvalidLedgerEntryError(f"Fields cannot be cleared: {', '.join(sorted(cleared))}")


def _refs_of(entry) -> Set[AccountRef]:
    return {ref for ref in (entry.origin, entry.destination) if ref is not None}


def _shift(rows: Dict[AccountRef, Account], origin: AccountRef, destination: AccountRef, amount: Decimal, sign: int = 1):
    """Apply (sign=1) or reverse (sign=-1) one entry on the cached balances"""
    delta = Decimal(amount) * sign
    rows[origin].balance = Decimal(rows[origin].balance) - delta
    rows[destination].balance = Decimal(rows[destination].balance) + delta


class LedgerService:
    """Ledger Service - Transactions and investments

    Keeps cached balances in step with every change: a completed
    transaction or an investment shifts its two accounts when created,
    is reversed when deleted, and is reversed then re-applied when
    edited. All of it happens under the per-account locks and inside a
    single commit.
    """

    def __init__(self, db: AsyncSession, locks: Optional[BalanceLockManager] = None):
        self.db = db
        self.locks = locks or balance_locks
        self.accounts = AccountService(db, self.locks)

    @asynccontextmanager
    async def _balance_writer(self, refs: Iterable[AccountRef]):
        """
        Resolve refs, take the in-process locks and the row locks of their
        accounts (ascending id) and yield the locked rows keyed by ref.
        Commits on success, rolls back on error.
        """
        resolved = await self.accounts.resolve_many(refs)
        account_ids = sorted({account.id for account in resolved.values()})

        async with self.locks.accounts(*account_ids):
            try:
                stmt = (
                    select(Account)
                    .where(Account.id.in_(account_ids))
                    .with_for_update()
                    .order_by(Account.id)
                    .execution_options(populate_existing=True)
                )
                result = await self.db.execute(stmt)
                rows = {account.ref: account for account in result.scalars().all()}
                for ref in resolved:
                    # Deleted between lookup and lock
                    if ref not in rows:
                        raise AccountNotFoundError(f"Account {ref} not found")

                yield rows

                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    @asynccontextmanager
    async def _entry_writer(self, entry, extra_refs: Iterable[AccountRef] = ()):
        """
        Lock the accounts of an existing entry plus extra_refs. The entry is
        re-read under the locks; if a concurrent edit moved it to other
        accounts meanwhile, the locks are released and taken again.
        """
        extra_refs = {ref for ref in extra_refs if ref is not None}
        for attempt in range(MAX_LOCK_ATTEMPTS):
            wanted = _refs_of(entry) | extra_refs
            async with self._balance_writer(wanted) as rows:
                await self.db.refresh(entry, with_for_update=True)
                if _refs_of(entry) <= set(rows):
                    yield rows
                    return
            logger.info(f"{type(entry).__name__} {entry.id} changed accounts while locking, retrying")
        raise RodmarError(f"Could not lock the accounts of {type(entry).__name__} {entry.id}, try again")

    # ----- Transactions -----

    async def get_transaction(self, transaction_id: int) -> Transaction:
        transaction = await self.db.get(Transaction, transaction_id)
        if transaction is None:
            raise LedgerEntryNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    async def list_transactions(
        self,
        status: Optional[TransactionStatus] = None,
        account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Transaction]:
        stmt = select(Transaction)
        if status is not None:
            stmt = stmt.where(Transaction.status == status)
        if account_id is not None:
            account = await self.accounts.get_account(account_id)
            stmt = stmt.where(touching(Transaction, account.ref))
        stmt = stmt.order_by(Transaction.occurred_at.desc(), Transaction.id.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_transaction(
        self,
        destination: AccountRef,
        amount: Decimal,
        concept: str,
        occurred_at: datetime,
        origin: Optional[AccountRef] = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        payment_method: Optional[str] = None,
        voucher: Optional[str] = None,
        comment: Optional[str] = None
    ) -> Transaction:
        """
        Record a transaction
        COMPLETED moves the money right away; PENDING is a payment request
        that leaves balances alone and may not name its origin yet
        """
        _validate_entry(origin, destination, amount)
        if status == TransactionStatus.COMPLETED and origin is None:
            raise InvalidLedgerEntryError("A completed transaction needs an origin account")

        transaction = Transaction(
            origin=origin,
            destination=destination,
            amount=Decimal(amount),
            status=status,
            concept=concept,
            payment_method=payment_method,
            voucher=voucher,
            comment=comment,
            occurred_at=occurred_at,
        )

        async with self._balance_writer([origin, destination]) as rows:
            if status == TransactionStatus.COMPLETED:
                transaction.completed_at = datetime.now(timezone.utc)
                _shift(rows, origin, destination, transaction.amount)
            self.db.add(transaction)

        await self.db.refresh(transaction)
        logger.info(f"Created transaction {transaction.id}: {origin} -> {destination} {amount} ({status.value})")
        return transaction

    async def complete_transaction(
        self,
        transaction_id: int,
        origin: Optional[AccountRef] = None,
        payment_method: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
        voucher: Optional[str] = None
    ) -> Transaction:
        """Settle a pending transaction; from here on it counts towards balances"""
        transaction = await self.get_transaction(transaction_id)
        if transaction.status != TransactionStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Transaction {transaction_id} is {transaction.status.value}, only PENDING transactions can be completed"
            )

        async with self._entry_writer(transaction, [origin]) as rows:
            if transaction.status != TransactionStatus.PENDING:
                raise InvalidStateTransitionError(
                    f"Transaction {transaction_id} was completed by another request"
                )
            new_origin = origin or transaction.origin
            if new_origin is None:
                raise InvalidLedgerEntryError("An origin account is required to complete the transaction")
            _validate_entry(new_origin, transaction.destination, transaction.amount)

            transaction.origin = new_origin
            if payment_method is not None:
                transaction.payment_method = payment_method
            if occurred_at is not None:
                transaction.occurred_at = occurred_at
            if voucher is not None:
                transaction.voucher = voucher
            transaction.status = TransactionStatus.COMPLETED
            transaction.completed_at = datetime.now(timezone.utc)

            _shift(rows, new_origin, transaction.destination, transaction.amount)

        await self.db.refresh(transaction)
        logger.info(f"Completed transaction {transaction.id}: {transaction.origin} -> {transaction.destination} {transaction.amount}")
        return transaction

    async def update_transaction(self, transaction_id: int, changes: dict) -> Transaction:
        """Edit a transaction; a completed one is reversed and re-applied"""
        _check_changes(changes, TRANSACTION_FIELDS, REQUIRED_TRANSACTION_FIELDS)

        transaction = await self.get_transaction(transaction_id)

        async with self._entry_writer(transaction, [changes.get("origin"), changes.get("destination")]) as rows:
            completed = transaction.status == TransactionStatus.COMPLETED
            new_origin = changes.get("origin", transaction.origin)
            new_destination = changes.get("destination", transaction.destination)
            new_amount = Decimal(changes.get("amount", transaction.amount))

            _validate_entry(new_origin, new_destination, new_amount)
            if completed and new_origin is None:
                raise InvalidLedgerEntryError("A completed transaction needs an origin account")

            if completed:
                _shift(rows, transaction.origin, transaction.destination, transaction.amount, sign=-1)

            for key, value in changes.items():
                setattr(transaction, key, value)
            transaction.amount = new_amount

            if completed:
                _shift(rows, new_origin, new_destination, new_amount)

        await self.db.refresh(transaction)
        logger.info(f"Updated transaction {transaction.id}: {', '.join(sorted(changes))}")
        return transaction

    async def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction, reversing it first when it is completed"""
        transaction = await self.get_transaction(transaction_id)

        async with self._entry_writer(transaction) as rows:
            if transaction.status == TransactionStatus.COMPLETED:
                _shift(rows, transaction.origin, transaction.destination, transaction.amount, sign=-1)
            await self.db.delete(transaction)

        logger.info(f"Deleted transaction {transaction_id}")

    # ----- Investments -----

    async def get_investment(self, investment_id: int) -> Investment:
        investment = await self.db.get(Investment, investment_id)
        if investment is None:
            raise LedgerEntryNotFoundError(f"Investment {investment_id} not found")
        return investment

    async def list_investments(
        self,
        account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Investment]:
        stmt = select(Investment)
        if account_id is not None:
            account = await self.accounts.get_account(account_id)
            stmt = stmt.where(touching(Investment, account.ref))
        stmt = stmt.order_by(Investment.occurred_at.desc(), Investment.id.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_investment(
        self,
        origin: AccountRef,
        destination: AccountRef,
        amount: Decimal,
        concept: str,
        occurred_at: datetime,
        notes: Optional[str] = None,
        voucher: Optional[str] = None
    ) -> Investment:
        """Record an investment; it moves the money immediately"""
        if origin is None:
            raise InvalidLedgerEntryError("An investment needs an origin account")
        _validate_entry(origin, destination, amount)

        investment = Investment(
            origin=origin,
            destination=destination,
            amount=Decimal(amount),
            concept=concept,
            notes=notes,
            voucher=voucher,
            occurred_at=occurred_at,
        )

        async with self._balance_writer([origin, destination]) as rows:
            _shift(rows, origin, destination, investment.amount)
            self.db.add(investment)

        await self.db.refresh(investment)
        logger.info(f"Created investment {investment.id}: {origin} -> {destination} {amount}")
        return investment

    async def update_investment(self, investment_id: int, changes: dict) -> Investment:
        _check_changes(changes, INVESTMENT_FIELDS, REQUIRED_INVESTMENT_FIELDS)

        investment = await self.get_investment(investment_id)

        async with self._entry_writer(investment, [changes.get("origin"), changes.get("destination")]) as rows:
            new_origin = changes.get("origin", investment.origin)
            new_destination = changes.get("destination", investment.destination)
            new_amount = Decimal(changes.get("amount", investment.amount))
            if new_origin is None:
                raise InvalidLedgerEntryError("An investment needs an origin account")
            _validate_entry(new_origin, new_destination, new_amount)

            _shift(rows, investment.origin, investment.destination, investment.amount, sign=-1)
            for key, value in changes.items():
                setattr(investment, key, value)
            investment.amount = new_amount
            _shift(rows, new_origin, new_destination, new_amount)

        await self.db.refresh(investment)
        logger.info(f"Updated investment {investment.id}: {', '.join(sorted(changes))}")
        return investment

    async def delete_investment(self, investment_id: int) -> None:
        investment = await self.get_investment(investment_id)

        async with self._entry_writer(investment) as rows:
            _shift(rows, investment.origin, investment.destination, investment.amount, sign=-1)
            await self.db.delete(investment)

        logger.info(f"Deleted investment {investment_id}")
