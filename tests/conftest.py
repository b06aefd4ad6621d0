"""Shared fixtures: a throwaway SQLite database per test plus ledger helpers"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rodmar.database import Base
from rodmar.models import AccountRef, Investment, Transaction, TransactionStatus
from rodmar.services.account_service import AccountService
from rodmar.services.locks import BalanceLockManager

OCCURRED_AT = datetime(2026, 3, 20, 10, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh schema in a temporary SQLite file"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rodmar_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return BalanceLockManager()


@pytest.fixture
def make_account(db):
    """Create an account through the account service"""
    service = AccountService(db)

    async def _make(kind, name, code=None):
        return await service.create_account(kind, name, code)

    return _make


@pytest.fixture
def add_transaction(db):
    """Insert a transaction row directly, leaving cached balances alone"""

    async def _add(origin, destination, amount, status=TransactionStatus.COMPLETED):
        transaction = Transaction(
            origin=origin.ref if hasattr(origin, "ref") else origin,
            destination=destination.ref if hasattr(destination, "ref") else destination,
            amount=Decimal(amount),
            status=status,
            concept="test",
            occurred_at=OCCURRED_AT,
        )
        db.add(transaction)
        await db.commit()
        await db.refresh(transaction)
        return transaction

    return _add


@pytest.fixture
def add_investment(db):
    """Insert an investment row directly, leaving cached balances alone"""

    async def _add(origin, destination, amount):
        investment = Investment(
            origin=origin.ref if hasattr(origin, "ref") else origin,
            destination=destination.ref if hasattr(destination, "ref") else destination,
            amount=Decimal(amount),
            concept="test",
            occurred_at=OCCURRED_AT,
        )
        db.add(investment)
        await db.commit()
        await db.refresh(investment)
        return investment

    return _add


@pytest.fixture
def balance_of(db):
    """Read an account's cached balance as stored in the database"""

    async def _balance(account):
        await db.refresh(account)
        return Decimal(account.balance)

    return _balance


@pytest.fixture
def ghost_ref():
    """A reference to an account that was never created"""
    return AccountRef("TERCERO", "NO_EXISTE")
