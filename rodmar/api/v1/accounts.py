from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
import logging

from rodmar.database import get_db
from rodmar.models import AccountKind
from rodmar.schemas.account import AccountCreateRequest, AccountResponse
from rodmar.services.account_service import AccountService
from rodmar.services.exceptions import RodmarError
from rodmar.api.v1.errors import domain_http_error, internal_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    request: AccountCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a mina, comprador, volquetero, RodMar account or tercero

    Example:
    ```
    POST /api/v1/accounts
    Body: {"kind": "RODMAR", "name": "Cuentas German"}
    ```
    The code defaults to the normalized name (`CUENTAS_GERMAN`).
    """
    service = AccountService(db)

    try:
        account = await service.create_account(request.kind, request.name, request.code)
        return AccountResponse.model_validate(account)

    except RodmarError as e:
        raise domain_http_error(e, kind=request.kind.value, name=request.name)
    except Exception as e:
        await db.rollback()
        logger.error(f"Create account failed: {e}", exc_info=True)
        raise internal_http_error("Failed to Create Account", e)


@router.get("", response_model=List[AccountResponse])
async def list_accounts(
    kind: Optional[AccountKind] = None,
    db: AsyncSession = Depends(get_db)
):
    """List accounts, optionally of one kind"""
    service = AccountService(db)
    accounts = await service.list_accounts(kind)
    return [AccountResponse.model_validate(a) for a in accounts]


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = AccountService(db)

    try:
        account = await service.get_account(account_id)
        return AccountResponse.model_validate(account)

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Delete an account

    Rejected with 409 while any transaction or investment references it.
    """
    service = AccountService(db)

    try:
        await service.delete_account(account_id)

    except RodmarError as e:
        raise domain_http_error(e, account_id=account_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Delete account failed: {e}", exc_info=True)
        raise internal_http_error("Failed to Delete Account", e)
