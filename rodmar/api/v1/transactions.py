from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
import logging

from rodmar.database import get_db
from rodmar.models import TransactionStatus
from rodmar.schemas.ledger import (
    TransactionCreateRequest,
    TransactionCompleteRequest,
    TransactionUpdateRequest,
    TransactionResponse,
)
from rodmar.services.ledger_service import LedgerService
from rodmar.services.exceptions import RodmarError
from rodmar.api.v1.errors import domain_http_error, internal_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: TransactionCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Record a transaction between two accounts

    A COMPLETED transaction moves the money right away (origin -= amount,
    destination += amount). A PENDING one is a payment request: it does
    not touch balances and may leave the origin empty until it is completed.

    Example:
    ```
    POST /api/v1/transactions
    Body: {
        "origin": {"kind": "MINA", "code": "LA_ESPERANZA"},
        "destination": {"kind": "COMPRADOR", "code": "CARBONES_DEL_NORTE"},
        "amount": "2000000.00",
        "status": "COMPLETED",
        "concept": "Pago carbón semana 12",
        "occurred_at": "2026-03-20T10:00:00-05:00",
        "payment_method": "Transferencia"
    }
    ```
    """
    service = LedgerService(db)

    try:
        transaction = await service.create_transaction(
            origin=request.origin.to_ref() if request.origin else None,
            destination=request.destination.to_ref(),
            amount=request.amount,
            status=request.status,
            concept=request.concept,
            occurred_at=request.occurred_at,
            payment_method=request.payment_method,
            voucher=request.voucher,
            comment=request.comment
        )
        return TransactionResponse.from_model(transaction)

    except RodmarError as e:
        raise domain_http_error(e, amount=str(request.amount))
    except Exception as e:
        await db.rollback()
        logger.error(f"Create transaction failed: {e}", exc_info=True)
        raise internal_http_error("Transaction Failed", e)


@router.get("", response_model=List[TransactionResponse])
async def list_transactions(
    status: Optional[TransactionStatus] = None,
    account_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db)
):
    """
    List transactions, newest first

    Example:
    ```
    GET /api/v1/transactions?status=PENDING&account_id=3&limit=20
    ```
    """
    service = LedgerService(db)

    try:
        transactions = await service.list_transactions(
            status=status,
            account_id=account_id,
            limit=min(limit, 100),
            offset=offset
        )
        return [TransactionResponse.from_model(t) for t in transactions]

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = LedgerService(db)

    try:
        transaction = await service.get_transaction(transaction_id)
        return TransactionResponse.from_model(transaction)

    except RodmarError as e:
        raise domain_http_error(e, transaction_id=transaction_id)


@router.post("/{transaction_id}/complete", response_model=TransactionResponse)
async def complete_transaction(
    transaction_id: int,
    request: TransactionCompleteRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Complete a pending transaction

    The origin is required when the pending transaction was recorded without one.
    """
    service = LedgerService(db)

    try:
        transaction = await service.complete_transaction(
            transaction_id,
            origin=request.origin.to_ref() if request.origin else None,
            payment_method=request.payment_method,
            occurred_at=request.occurred_at,
            voucher=request.voucher
        )
        return TransactionResponse.from_model(transaction)

    except RodmarError as e:
        raise domain_http_error(e, transaction_id=transaction_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Complete transaction failed: {e}", exc_info=True)
        raise internal_http_error("Transaction Failed", e)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    request: TransactionUpdateRequest,
    db: AsyncSession = Depends(get_db)
):
    """Edit a transaction; balances follow the new amount and accounts"""
    service = LedgerService(db)

    try:
        transaction = await service.update_transaction(transaction_id, request.to_changes())
        return TransactionResponse.from_model(transaction)

    except RodmarError as e:
        raise domain_http_error(e, transaction_id=transaction_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Update transaction failed: {e}", exc_info=True)
        raise internal_http_error("Transaction Failed", e)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Delete a transaction; a completed one is reversed on both accounts"""
    service = LedgerService(db)

    try:
        await service.delete_transaction(transaction_id)

    except RodmarError as e:
        raise domain_http_error(e, transaction_id=transaction_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Delete transaction failed: {e}", exc_info=True)
        raise internal_http_error("Transaction Failed", e)
