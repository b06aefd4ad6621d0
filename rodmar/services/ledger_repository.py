"""Read/write interface the balance engine works through"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rodmar.models import Account, AccountRef, Investment, Transaction, TransactionStatus


@dataclass(frozen=True)
class LedgerEntry:
    """A transaction or an investment, reduced to its effect on balances"""
    entry_type: str  # "transaction" or "investment"
    entry_id: int
    origin: Optional[AccountRef]
    destination: AccountRef
    amount: Decimal
    affects_balance: bool

    @property
    def label(self) -> str:
        return f"{self.entry_type} #{self.entry_id}"

    def touches(self, ref: AccountRef) -> bool:
        return self.origin == ref or self.destination == ref

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "LedgerEntry":
        return cls(
            entry_type="transaction",
            entry_id=transaction.id,
            origin=transaction.origin,
            destination=transaction.destination,
            amount=Decimal(transaction.amount),
            affects_balance=transaction.status == TransactionStatus.COMPLETED,
        )

    @classmethod
    def from_investment(cls, investment: Investment) -> "LedgerEntry":
        return cls(
            entry_type="investment",
            entry_id=investment.id,
            origin=investment.origin,
            destination=investment.destination,
            amount=Decimal(investment.amount),
            affects_balance=True,
        )


def touching(model, ref: AccountRef):
    return or_(
        and_(model.origin_kind == ref.kind, model.origin_code == ref.code),
        and_(model.destination_kind == ref.kind, model.destination_code == ref.code),
    )


class LedgerRepository:
    """SQLAlchemy-backed access to accounts and ledger entries

    Accounts loaded through `list_accounts` / `get_account` are kept so
    that `update_account_balance` writes to the same row objects; nothing
    is committed here, the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self._accounts: Dict[int, Account] = {}

    async def list_accounts(self, for_update: bool = False) -> List[Account]:
        stmt = select(Account).order_by(Account.id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        accounts = list(result.scalars().all())
        self._accounts.update((account.id, account) for account in accounts)
        return accounts

    async def get_account(self, account_id: int, for_update: bool = False) -> Optional[Account]:
        stmt = select(Account).where(Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        account = result.scalar_one_or_none()
        if account is not None:
            self._accounts[account.id] = account
        return account

    async def get_accounts_by_refs(self, refs: Iterable[AccountRef]) -> Dict[AccountRef, Account]:
        refs = {ref for ref in refs if ref is not None}
        if not refs:
            return {}
        stmt = select(Account).where(
            or_(*[and_(Account.kind == ref.kind, Account.code == ref.code) for ref in refs])
        )
        result = await self.db.execute(stmt)
        return {account.ref: account for account in result.scalars().all()}

    async def list_ledger_entries(self) -> List[LedgerEntry]:
        transactions = await self.db.execute(select(Transaction).order_by(Transaction.id))
        investments = await self.db.execute(select(Investment).order_by(Investment.id))
        return (
            [LedgerEntry.from_transaction(t) for t in transactions.scalars().all()]
            + [LedgerEntry.from_investment(i) for i in investments.scalars().all()]
        )

    async def list_ledger_entries_for(self, ref: AccountRef) -> List[LedgerEntry]:
        transactions = await self.db.execute(
            select(Transaction).where(touching(Transaction, ref)).order_by(Transaction.id)
        )
        investments = await self.db.execute(
            select(Investment).where(touching(Investment, ref)).order_by(Investment.id)
        )
        return (
            [LedgerEntry.from_transaction(t) for t in transactions.scalars().all()]
            + [LedgerEntry.from_investment(i) for i in investments.scalars().all()]
        )

    async def has_entries_for(self, ref: AccountRef) -> bool:
        for model in (Transaction, Investment):
            result = await self.db.execute(
                select(model.id).where(touching(model, ref)).limit(1)
            )
            if result.scalar_one_or_none() is not None:
                return True
        return False

    async def update_account_balance(self, account_id: int, new_balance: Decimal) -> None:
        account = self._accounts.get(account_id)
        if account is None:
            account = await self.get_account(account_id)
        account.balance = new_balance
        account.balance_stale = False
        account.last_recalculated_at = datetime.now(timezone.utc)
