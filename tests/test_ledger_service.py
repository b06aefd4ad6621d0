"""Ledger service: incremental balance maintenance for transactions and investments"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from rodmar.models import AccountKind, AccountRef, Transaction, TransactionStatus
from rodmar.services.account_service import AccountService
from rodmar.services.balance_engine import BalanceRecalculationEngine
from rodmar.services.exceptions import (
    AccountNotFoundError,
    InvalidLedgerEntryError,
    InvalidStateTransitionError,
    LedgerEntryNotFoundError,
)
from rodmar.services.ledger_service import LedgerService

WHEN = datetime(2026, 3, 20, 10, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def accounts(make_account):
    """Efectivo (RodMar), Banco (tercero) and a mina"""
    efectivo = await make_account(AccountKind.RODMAR, "Efectivo")
    banco = await make_account(AccountKind.TERCERO, "Banco")
    mina = await make_account(AccountKind.MINA, "La Esperanza")
    return efectivo, banco, mina


@pytest.fixture
def service(db, locks):
    return LedgerService(db, locks)


async def _assert_cache_matches_ledger(db, locks):
    summary = await BalanceRecalculationEngine(db, locks).recalculate_all()
    assert summary.accounts_changed == 0


class TestTransactions:
    """Creating, completing, editing and deleting transactions"""

    @pytest.mark.asyncio
    async def test_completed_transaction_moves_money(self, service, accounts, balance_of):
        efectivo, banco, _ = accounts

        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("1000"),
            concept="Consignación", occurred_at=WHEN,
        )

        assert transaction.status == TransactionStatus.COMPLETED
        assert transaction.completed_at is not None
        assert await balance_of(efectivo) == Decimal("-1000")
        assert await balance_of(banco) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_pending_transaction_then_complete(self, service, accounts, balance_of):
        efectivo, banco, _ = accounts

        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("1000"),
            concept="Solicitud", occurred_at=WHEN, status=TransactionStatus.PENDING,
        )
        assert transaction.completed_at is None
        assert await balance_of(efectivo) == 0
        assert await balance_of(banco) == 0

        completed = await service.complete_transaction(transaction.id, payment_method="Efectivo")

        assert completed.status == TransactionStatus.COMPLETED
        assert completed.payment_method == "Efectivo"
        assert await balance_of(efectivo) == Decimal("-1000")
        assert await balance_of(banco) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_pending_without_origin_needs_one_to_complete(self, service, accounts, balance_of):
        efectivo, banco, mina = accounts

        transaction = await service.create_transaction(
            destination=mina.ref, amount=Decimal("250000"),
            concept="Pago pendiente", occurred_at=WHEN, status=TransactionStatus.PENDING,
        )
        assert transaction.origin is None
        transaction_id = transaction.id
        banco_ref = banco.ref

        with pytest.raises(InvalidLedgerEntryError):
            await service.complete_transaction(transaction_id)

        completed = await service.complete_transaction(transaction_id, origin=banco_ref)

        assert completed.origin == banco_ref
        assert await balance_of(banco) == Decimal("-250000")
        assert await balance_of(mina) == Decimal("250000")

    @pytest.mark.asyncio
    async def test_completing_twice_is_rejected(self, service, accounts):
        efectivo, banco, _ = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("10"),
            concept="x", occurred_at=WHEN,
        )

        with pytest.raises(InvalidStateTransitionError):
            await service.complete_transaction(transaction.id)

    @pytest.mark.asyncio
    async def test_update_completed_transaction_moves_balances(self, db, locks, service, accounts, balance_of):
        efectivo, banco, mina = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("1000"),
            concept="x", occurred_at=WHEN,
        )

        await service.update_transaction(
            transaction.id, {"destination": mina.ref, "amount": Decimal("400")}
        )

        assert await balance_of(efectivo) == Decimal("-400")
        assert await balance_of(banco) == 0
        assert await balance_of(mina) == Decimal("400")
        await _assert_cache_matches_ledger(db, locks)

    @pytest.mark.asyncio
    async def test_update_pending_transaction_leaves_balances(self, service, accounts, balance_of):
        efectivo, banco, _ = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("1000"),
            concept="x", occurred_at=WHEN, status=TransactionStatus.PENDING,
        )

        updated = await service.update_transaction(transaction.id, {"amount": Decimal("5"), "comment": "ajuste"})

        assert updated.amount == Decimal("5")
        assert updated.comment == "ajuste"
        assert await balance_of(efectivo) == 0

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, service, accounts):
        efectivo, banco, _ = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("1"),
            concept="x", occurred_at=WHEN,
        )

        with pytest.raises(InvalidLedgerEntryError):
            await service.update_transaction(transaction.id, {"status": TransactionStatus.PENDING})

    @pytest.mark.asyncio
    async def test_update_cannot_clear_required_fields(self, service, accounts, balance_of):
        efectivo, banco, _ = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("5"),
            concept="x", occurred_at=WHEN,
        )

        for field in ("destination", "amount", "concept", "occurred_at"):
            with pytest.raises(InvalidLedgerEntryError):
                await service.update_transaction(transaction.id, {field: None})

        assert await balance_of(banco) == Decimal("5")

    @pytest.mark.asyncio
    async def test_invalid_update_changes_nothing(self, service, accounts, balance_of):
        efectivo, banco, _ = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("30"),
            concept="x", occurred_at=WHEN,
        )

        with pytest.raises(InvalidLedgerEntryError):
            await service.update_transaction(transaction.id, {"destination": efectivo.ref})

        assert await balance_of(efectivo) == Decimal("-30")
        assert await balance_of(banco) == Decimal("30")

    @pytest.mark.asyncio
    async def test_delete_completed_transaction_reverses_it(self, db, service, accounts, balance_of):
        efectivo, banco, _ = accounts
        transaction = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("75.50"),
            concept="x", occurred_at=WHEN,
        )
        transaction_id = transaction.id

        await service.delete_transaction(transaction_id)

        assert await balance_of(efectivo) == 0
        assert await balance_of(banco) == 0
        assert await db.get(Transaction, transaction_id) is None

    @pytest.mark.asyncio
    async def test_missing_transaction(self, service):
        with pytest.raises(LedgerEntryNotFoundError):
            await service.get_transaction(999)
        with pytest.raises(LedgerEntryNotFoundError):
            await service.delete_transaction(999)

    @pytest.mark.asyncio
    async def test_list_filters(self, service, accounts):
        efectivo, banco, mina = accounts
        await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("1"), concept="a", occurred_at=WHEN,
        )
        await service.create_transaction(
            origin=banco.ref, destination=mina.ref, amount=Decimal("2"), concept="b", occurred_at=WHEN,
            status=TransactionStatus.PENDING,
        )

        pending = await service.list_transactions(status=TransactionStatus.PENDING)
        touching_mina = await service.list_transactions(account_id=mina.id)
        touching_banco = await service.list_transactions(account_id=banco.id)

        assert [t.concept for t in pending] == ["b"]
        assert [t.concept for t in touching_mina] == ["b"]
        assert len(touching_banco) == 2


class TestValidation:
    """Entries that must be rejected before anything is written"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    async def test_amount_must_be_positive(self, service, accounts, amount):
        efectivo, banco, _ = accounts
        with pytest.raises(InvalidLedgerEntryError):
            await service.create_transaction(
                origin=efectivo.ref, destination=banco.ref, amount=amount, concept="x", occurred_at=WHEN,
            )

    @pytest.mark.asyncio
    async def test_origin_and_destination_must_differ(self, service, accounts):
        efectivo, _, _ = accounts
        with pytest.raises(InvalidLedgerEntryError):
            await service.create_investment(
                origin=efectivo.ref, destination=efectivo.ref, amount=Decimal("1"), concept="x", occurred_at=WHEN,
            )

    @pytest.mark.asyncio
    async def test_completed_needs_origin(self, service, accounts):
        _, banco, _ = accounts
        with pytest.raises(InvalidLedgerEntryError):
            await service.create_transaction(
                destination=banco.ref, amount=Decimal("1"), concept="x", occurred_at=WHEN,
            )

    @pytest.mark.asyncio
    async def test_unknown_account_writes_nothing(self, service, accounts, balance_of):
        efectivo, _, _ = accounts
        ghost = AccountRef(AccountKind.COMPRADOR, "NO_EXISTE")

        with pytest.raises(AccountNotFoundError) as excinfo:
            await service.create_transaction(
                origin=efectivo.ref, destination=ghost, amount=Decimal("1"), concept="x", occurred_at=WHEN,
            )

        assert "COMPRADOR:NO_EXISTE" in str(excinfo.value)
        assert await balance_of(efectivo) == 0
        assert await service.list_transactions() == []

    @pytest.mark.asyncio
    async def test_account_deleted_before_locking(self, db, locks, service, accounts, balance_of):
        efectivo, banco, _ = accounts
        efectivo_ref, banco_ref, banco_id = efectivo.ref, banco.ref, banco.id
        resolve_many = service.accounts.resolve_many

        async def resolve_then_delete(refs):
            resolved = await resolve_many(refs)
            # Another request removes the destination before the locks are taken
            await AccountService(db, locks).delete_account(banco_id)
            return resolved

        service.accounts.resolve_many = resolve_then_delete

        with pytest.raises(AccountNotFoundError) as excinfo:
            await service.create_transaction(
                origin=efectivo_ref, destination=banco_ref, amount=Decimal("1"), concept="x", occurred_at=WHEN,
            )

        assert str(banco_ref) in str(excinfo.value)
        assert await service.list_transactions() == []
        assert await balance_of(efectivo) == 0


class TestInvestments:
    """Investments move money as soon as they are recorded"""

    @pytest.mark.asyncio
    async def test_create_update_delete(self, db, locks, service, accounts, balance_of):
        efectivo, banco, mina = accounts

        investment = await service.create_investment(
            origin=efectivo.ref, destination=mina.ref, amount=Decimal("500"),
            concept="Inversión en mina", occurred_at=WHEN, notes="socio",
        )
        assert await balance_of(efectivo) == Decimal("-500")
        assert await balance_of(mina) == Decimal("500")

        await service.update_investment(investment.id, {"origin": banco.ref, "amount": Decimal("800")})
        assert await balance_of(efectivo) == 0
        assert await balance_of(banco) == Decimal("-800")
        assert await balance_of(mina) == Decimal("800")
        await _assert_cache_matches_ledger(db, locks)

        await service.delete_investment(investment.id)
        assert await balance_of(banco) == 0
        assert await balance_of(mina) == 0

    @pytest.mark.asyncio
    async def test_list_by_account(self, service, accounts):
        efectivo, banco, mina = accounts
        await service.create_investment(
            origin=efectivo.ref, destination=mina.ref, amount=Decimal("1"), concept="a", occurred_at=WHEN,
        )
        await service.create_investment(
            origin=banco.ref, destination=efectivo.ref, amount=Decimal("1"), concept="b", occurred_at=WHEN,
        )

        assert len(await service.list_investments(account_id=efectivo.id)) == 2
        assert [i.concept for i in await service.list_investments(account_id=mina.id)] == ["a"]

    @pytest.mark.asyncio
    async def test_update_cannot_clear_origin(self, service, accounts, balance_of):
        efectivo, _, mina = accounts
        investment = await service.create_investment(
            origin=efectivo.ref, destination=mina.ref, amount=Decimal("20"), concept="a", occurred_at=WHEN,
        )

        with pytest.raises(InvalidLedgerEntryError):
            await service.update_investment(investment.id, {"origin": None})

        assert await balance_of(efectivo) == Decimal("-20")

    @pytest.mark.asyncio
    async def test_missing_investment(self, service):
        with pytest.raises(LedgerEntryNotFoundError):
            await service.update_investment(999, {"amount": Decimal("1")})


class TestCacheAgreesWithLedger:
    """Incremental maintenance and a full recalculation always agree"""

    @pytest.mark.asyncio
    async def test_after_mixed_sequence(self, db, locks, service, accounts):
        efectivo, banco, mina = accounts

        t1 = await service.create_transaction(
            origin=efectivo.ref, destination=banco.ref, amount=Decimal("100.10"), concept="t1", occurred_at=WHEN,
        )
        t2 = await service.create_transaction(
            destination=mina.ref, amount=Decimal("40"), concept="t2", occurred_at=WHEN,
            status=TransactionStatus.PENDING,
        )
        i1 = await service.create_investment(
            origin=mina.ref, destination=efectivo.ref, amount=Decimal("9.90"), concept="i1", occurred_at=WHEN,
        )
        await service.complete_transaction(t2.id, origin=banco.ref)
        await service.update_transaction(t1.id, {"origin": mina.ref})
        await service.update_investment(i1.id, {"amount": Decimal("19.90")})
        await service.delete_transaction(t2.id)
        await service.create_transaction(
            origin=banco.ref, destination=efectivo.ref, amount=Decimal("5"), concept="t3", occurred_at=WHEN,
        )

        await _assert_cache_matches_ledger(db, locks)
        engine = BalanceRecalculationEngine(db, locks)
        for account in accounts:
            assert (await engine.validate_account(account.id)).valid
