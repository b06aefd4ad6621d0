from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import logging

from rodmar.models import Account, AccountKind, AccountRef
from rodmar.services.exceptions import (
    AccountInUseError,
    AccountNotFoundError,
    DuplicateAccountError,
    InvalidAccountError,
)
from rodmar.services.ledger_repository import LedgerRepository
from rodmar.services.locks import BalanceLockManager, balance_locks
from rodmar.utils.codes import normalize_name_to_code

logger = logging.getLogger(__name__)

# Width of the accounts.code column
MAX_CODE_LENGTH = 100


class AccountService:
    """Account Service - Account administration and reference lookup

    `resolve` / `resolve_many` are the only way ledger code turns an
    AccountRef into an Account row.
    """

    def __init__(self, db: AsyncSession, locks: Optional[BalanceLockManager] = None):
        self.db = db
        self.repository = LedgerRepository(db)
        self.locks = locks or balance_locks

    async def create_account(self, kind: AccountKind, name: str, code: Optional[str] = None) -> Account:
        """Create an account; the code defaults to the normalized name"""
        name = name.strip()
        try:
            code = normalize_name_to_code(code or name)
        except ValueError as e:
            raise InvalidAccountError(str(e))
        if len(code) > MAX_CODE_LENGTH:
            raise InvalidAccountError(
                f"Account code {code[:20]}... is longer than {MAX_CODE_LENGTH} characters, pass a shorter code"
            )
        ref = AccountRef(kind, code)

        existing = await self.repository.get_accounts_by_refs([ref])
        if existing:
            raise DuplicateAccountError(f"Account {ref} already exists")

        account = Account(
            kind=ref.kind,
            code=ref.code,
            name=name,
            balance=Decimal("0.00"),
            balance_stale=False,
        )
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateAccountError(f"Account {ref} already exists")

        await self.db.refresh(account)
        logger.info(f"Created account {ref} ({name})")
        return account

    async def get_account(self, account_id: int) -> Account:
        account = await self.repository.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    async def list_accounts(self, kind: Optional[AccountKind] = None) -> List[Account]:
        stmt = select(Account).order_by(Account.kind, Account.name)
        if kind is not None:
            stmt = stmt.where(Account.kind == kind)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def resolve(self, ref: AccountRef) -> Account:
        return (await self.resolve_many([ref]))[ref]

    async def resolve_many(self, refs: Iterable[AccountRef]) -> Dict[AccountRef, Account]:
        """Resolve every reference or fail on the first unknown one"""
        refs = [ref for ref in refs if ref is not None]
        found = await self.repository.get_accounts_by_refs(refs)
        for ref in refs:
            if ref not in found:
                raise AccountNotFoundError(f"Account {ref} not found")
        return found

    async def delete_account(self, account_id: int) -> None:
        """Delete an account no ledger entry references"""
        account = await self.get_account(account_id)
        ref = account.ref

        # Ledger writers hold the same lock while they record entries
        async with self.locks.accounts(account.id):
            try:
                account = await self.repository.get_account(account_id, for_update=True)
                if account is None:
                    raise AccountNotFoundError(f"Account {account_id} not found")

                if await self.repository.has_entries_for(ref):
                    raise AccountInUseError(
                        f"Account {ref} is referenced by ledger entries and cannot be deleted"
                    )

                await self.db.delete(account)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(f"Deleted account {ref}")
