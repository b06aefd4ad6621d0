"""Balance Recalculation Engine

Regenerates the cached `Account.balance` values from the ledger.

Sign convention for every entry that counts:
    origin balance      -= amount
    destination balance += amount

Completed transactions and all investments count; pending transactions
never do. A counted entry whose account reference does not resolve is a
data-integrity error: the whole recalculation is rolled back and nothing
is written.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rodmar.models import Account, AccountRef
from rodmar.services.exceptions import AccountNotFoundError, LedgerIntegrityError
from rodmar.services.ledger_repository import LedgerEntry, LedgerRepository
from rodmar.services.locks import BalanceLockManager, balance_locks

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class RecalculationSummary:
    accounts_updated: int
    entries_processed: int
    pending_skipped: int
    accounts_changed: int
    finished_at: datetime
    balances: Dict[int, Decimal] = field(default_factory=dict)


@dataclass
class AccountRecalculation:
    account_id: int
    previous_balance: Decimal
    balance: Decimal
    entries_processed: int
    pending_skipped: int


@dataclass
class BalanceValidation:
    account_id: int
    cached_balance: Decimal
    computed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.computed_balance - self.cached_balance

    @property
    def valid(self) -> bool:
        return self.difference == 0


def _require(entry: LedgerEntry, ref: Optional[AccountRef], known: Set[AccountRef]) -> AccountRef:
    if ref is None or ref not in known:
        raise LedgerIntegrityError(entry.label, ref)
    return ref


def fold_balances(
    accounts: Iterable[Account],
    entries: Iterable[LedgerEntry],
) -> Tuple[Dict[int, Decimal], int, int]:
    """Fold the whole ledger into a balance per account id

    Returns (balances, entries_processed, pending_skipped).
    """
    ids_by_ref = {account.ref: account.id for account in accounts}
    known = set(ids_by_ref)
    balances = {account_id: ZERO for account_id in ids_by_ref.values()}
    processed = 0
    skipped = 0

    for entry in entries:
        if not entry.affects_balance:
            skipped += 1
            continue
        origin = _require(entry, entry.origin, known)
        destination = _require(entry, entry.destination, known)
        balances[ids_by_ref[origin]] -= entry.amount
        balances[ids_by_ref[destination]] += entry.amount
        processed += 1

    return balances, processed, skipped


def fold_account_balance(
    ref: AccountRef,
    entries: Iterable[LedgerEntry],
    known: Set[AccountRef],
) -> Tuple[Decimal, int, int]:
    """Fold only the entries touching `ref`

    Gives the same balance as `fold_balances` does for that account.
    Returns (balance, entries_processed, pending_skipped).
    """
    balance = ZERO
    processed = 0
    skipped = 0

    for entry in entries:
        if not entry.touches(ref):
            continue
        if not entry.affects_balance:
            skipped += 1
            continue
        origin = _require(entry, entry.origin, known)
        destination = _require(entry, entry.destination, known)
        if origin == ref:
            balance -= entry.amount
        if destination == ref:
            balance += entry.amount
        processed += 1

    return balance, processed, skipped


class BalanceRecalculationEngine:
    """Rebuilds cached balances from transactions and investments"""

    def __init__(self, db: AsyncSession, locks: Optional[BalanceLockManager] = None):
        self.db = db
        self.repository = LedgerRepository(db)
        self.locks = locks or balance_locks

    async def _fold_one(self, account: Account) -> Tuple[Decimal, int, int]:
        entries = await self.repository.list_ledger_entries_for(account.ref)
        refs = {entry.origin for entry in entries} | {entry.destination for entry in entries}
        known = set(await self.repository.get_accounts_by_refs(refs))
        known.add(account.ref)
        return fold_account_balance(account.ref, entries, known)

    async def recalculate_all(self) -> RecalculationSummary:
        """
        Recompute every account balance from the full ledger
        Runs alone and commits once; on any error nothing is written
        """
        async with self.locks.sweep():
            logger.info("Starting full balance recalculation")
            try:
                accounts = await self.repository.list_accounts(for_update=True)
                entries = await self.repository.list_ledger_entries()
                balances, processed, skipped = fold_balances(accounts, entries)

                changed = 0
                for account in accounts:
                    if Decimal(account.balance or 0) != balances[account.id]:
                        changed += 1
                    await self.repository.update_account_balance(account.id, balances[account.id])

                await self.db.commit()
            except LedgerIntegrityError as e:
                await self.db.rollback()
                logger.error(f"Balance recalculation aborted: {e}")
                raise
            except Exception:
                await self.db.rollback()
                raise

        summary = RecalculationSummary(
            accounts_updated=len(accounts),
            entries_processed=processed,
            pending_skipped=skipped,
            accounts_changed=changed,
            finished_at=datetime.now(timezone.utc),
            balances=balances,
        )
        logger.info(
            f"Balance recalculation finished: {summary.accounts_updated} accounts, "
            f"{summary.entries_processed} entries, {summary.accounts_changed} changed"
        )
        return summary

    async def recalculate_for_account(self, account_id: int) -> AccountRecalculation:
        """Recompute one account from the entries that touch it"""
        async with self.locks.accounts(account_id):
            try:
                account = await self.repository.get_account(account_id, for_update=True)
                if account is None:
                    raise AccountNotFoundError(f"Account {account_id} not found")

                previous = Decimal(account.balance or 0)
                balance, processed, skipped = await self._fold_one(account)
                await self.repository.update_account_balance(account.id, balance)

                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(f"Recalculated {account.ref}: {previous} -> {balance}")
        return AccountRecalculation(
            account_id=account_id,
            previous_balance=previous,
            balance=balance,
            entries_processed=processed,
            pending_skipped=skipped,
        )

    async def validate_account(self, account_id: int) -> BalanceValidation:
        """Compare the cached balance with a fresh fold, without writing"""
        account = await self.repository.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")

        computed, _, _ = await self._fold_one(account)
        validation = BalanceValidation(
            account_id=account_id,
            cached_balance=Decimal(account.balance or 0),
            computed_balance=computed,
        )
        if not validation.valid:
            logger.warning(
                f"Cached balance of {account.ref} is off by {validation.difference} "
                f"(cached {validation.cached_balance}, ledger {validation.computed_balance})"
            )
        return validation

    async def mark_stale(self, account_id: int) -> Account:
        """Flag an account whose cached balance can no longer be trusted"""
        async with self.locks.accounts(account_id):
            try:
                account = await self.repository.get_account(account_id, for_update=True)
                if account is None:
                    raise AccountNotFoundError(f"Account {account_id} not found")
                account.balance_stale = True
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        await self.db.refresh(account)
        return account

    async def list_stale(self) -> List[Account]:
        result = await self.db.execute(
            select(Account).where(Account.balance_stale.is_(True)).order_by(Account.id)
        )
        return list(result.scalars().all())

    async def recalculate_stale(self) -> List[AccountRecalculation]:
        """Recompute every account flagged stale, in one commit"""
        async with self.locks.sweep():
            try:
                result = await self.db.execute(
                    select(Account)
                    .where(Account.balance_stale.is_(True))
                    .order_by(Account.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                stale = list(result.scalars().all())

                recalculated = []
                for account in stale:
                    previous = Decimal(account.balance or 0)
                    balance, processed, skipped = await self._fold_one(account)
                    await self.repository.update_account_balance(account.id, balance)
                    recalculated.append(AccountRecalculation(
                        account_id=account.id,
                        previous_balance=previous,
                        balance=balance,
                        entries_processed=processed,
                        pending_skipped=skipped,
                    ))

                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(f"Recalculated {len(recalculated)} stale balances")
        return recalculated
