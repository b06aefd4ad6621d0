from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
import logging

from rodmar.database import get_db
from rodmar.schemas.ledger import (
    InvestmentCreateRequest,
    InvestmentUpdateRequest,
    InvestmentResponse,
)
from rodmar.services.ledger_service import LedgerService
from rodmar.services.exceptions import RodmarError
from rodmar.api.v1.errors import domain_http_error, internal_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/investments", tags=["Investments"])


@router.post("", response_model=InvestmentResponse, status_code=status.HTTP_201_CREATED)
async def create_investment(
    request: InvestmentCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Record an investment

    Investments have no pending state: the money moves immediately.

    Example:
    ```
    POST /api/v1/investments
    Body: {
        "origin": {"kind": "RODMAR", "code": "BEMOVIL"},
        "destination": {"kind": "TERCERO", "code": "POSTOBON"},
        "amount": "300000.00",
        "concept": "Inversión cuenta Santa Rosa",
        "occurred_at": "2026-03-21T09:00:00-05:00"
    }
    ```
    """
    service = LedgerService(db)

    try:
        investment = await service.create_investment(
            origin=request.origin.to_ref(),
            destination=request.destination.to_ref(),
            amount=request.amount,
            concept=request.concept,
            occurred_at=request.occurred_at,
            notes=request.notes,
            voucher=request.voucher
        )
        return InvestmentResponse.from_model(investment)

    except RodmarError as e:
        raise domain_http_error(e, amount=str(request.amount))
    except Exception as e:
        await db.rollback()
        logger.error(f"Create investment failed: {e}", exc_info=True)
        raise internal_http_error("Investment Failed", e)


@router.get("", response_model=List[InvestmentResponse])
async def list_investments(
    account_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db)
):
    service = LedgerService(db)

    try:
        investments = await service.list_investments(
            account_id=account_id,
            limit=min(limit, 100),
            offset=offset
        )
        return [InvestmentResponse.from_model(i) for i in investments]

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)


@router.get("/{investment_id}", response_model=InvestmentResponse)
async def get_investment(
    investment_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = LedgerService(db)

    try:
        investment = await service.get_investment(investment_id)
        return InvestmentResponse.from_model(investment)

    except RodmarError as e:
        raise domain_http_error(e, investment_id=investment_id)


@router.patch("/{investment_id}", response_model=InvestmentResponse)
async def update_investment(
    investment_id: int,
    request: InvestmentUpdateRequest,
    db: AsyncSession = Depends(get_db)
):
    service = LedgerService(db)

    try:
        investment = await service.update_investment(investment_id, request.to_changes())
        return InvestmentResponse.from_model(investment)

    except RodmarError as e:
        raise domain_http_error(e, investment_id=investment_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Update investment failed: {e}", exc_info=True)
        raise internal_http_error("Investment Failed", e)


@router.delete("/{investment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_investment(
    investment_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = LedgerService(db)

    try:
        await service.delete_investment(investment_id)

    except RodmarError as e:
        raise domain_http_error(e, investment_id=investment_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Delete investment failed: {e}", exc_info=True)
        raise internal_http_error("Investment Failed", e)
