from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from rodmar.database import get_db
from rodmar.schemas.account import AccountResponse
from rodmar.schemas.balance import (
    RecalculationResponse,
    AccountRecalculationResponse,
    StaleRecalculationResponse,
    BalanceValidationResponse,
)
from rodmar.services.balance_engine import BalanceRecalculationEngine
from rodmar.services.exceptions import RodmarError
from rodmar.api.v1.errors import domain_http_error, internal_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/balances", tags=["Balances"])


@router.post("/recalculate", response_model=RecalculationResponse)
async def recalculate_all(db: AsyncSession = Depends(get_db)):
    """
    Rebuild every cached balance from the ledger

    Maintenance action. Runs alone: ledger edits arriving meanwhile wait for it.
    All balances are written in one commit; if any completed transaction or
    investment points at an unknown account nothing is written and the
    offending entry is reported (409).
    """
    engine = BalanceRecalculationEngine(db)

    try:
        summary = await engine.recalculate_all()
        return RecalculationResponse.from_summary(summary)

    except RodmarError as e:
        raise domain_http_error(e)
    except Exception as e:
        logger.error(f"Balance recalculation failed: {e}", exc_info=True)
        raise internal_http_error("Recalculation Failed", e)


@router.post("/recalculate-stale", response_model=StaleRecalculationResponse)
async def recalculate_stale(db: AsyncSession = Depends(get_db)):
    """Rebuild only the balances flagged as stale"""
    engine = BalanceRecalculationEngine(db)

    try:
        results = await engine.recalculate_stale()
        return StaleRecalculationResponse(
            accounts=[AccountRecalculationResponse.from_result(r) for r in results]
        )

    except RodmarError as e:
        raise domain_http_error(e)
    except Exception as e:
        logger.error(f"Stale balance recalculation failed: {e}", exc_info=True)
        raise internal_http_error("Recalculation Failed", e)


@router.get("/stale", response_model=List[AccountResponse])
async def list_stale(db: AsyncSession = Depends(get_db)):
    engine = BalanceRecalculationEngine(db)
    accounts = await engine.list_stale()
    return [AccountResponse.model_validate(a) for a in accounts]


@router.post("/accounts/{account_id}/recalculate", response_model=AccountRecalculationResponse)
async def recalculate_account(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Rebuild one account's balance from the entries that touch it"""
    engine = BalanceRecalculationEngine(db)

    try:
        result = await engine.recalculate_for_account(account_id)
        return AccountRecalculationResponse.from_result(result)

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)
    except Exception as e:
        logger.error(f"Account recalculation failed: {e}", exc_info=True)
        raise internal_http_error("Recalculation Failed", e)


@router.post("/accounts/{account_id}/stale", response_model=AccountResponse)
async def mark_stale(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Flag an account's cached balance as out of date after a manual correction"""
    engine = BalanceRecalculationEngine(db)

    try:
        account = await engine.mark_stale(account_id)
        return AccountResponse.model_validate(account)

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)


@router.get("/accounts/{account_id}/validation", response_model=BalanceValidationResponse)
async def validate_account(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Compare an account's cached balance with the ledger, without writing"""
    engine = BalanceRecalculationEngine(db)

    try:
        validation = await engine.validate_account(account_id)
        return BalanceValidationResponse.from_validation(validation)

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)
