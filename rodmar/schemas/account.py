"""Account Schemas - Request/Response Models"""
from pydantic import BaseModel, ConfigDict, Field
from decimal import Decimal
from datetime import datetime
from typing import Optional

from rodmar.models import AccountKind, AccountRef


class AccountRefSchema(BaseModel):
    """Reference to an account: its kind plus its code"""
    kind: AccountKind = Field(..., description="Account kind (MINA, COMPRADOR, VOLQUETERO, RODMAR, TERCERO)")
    code: str = Field(..., min_length=1, max_length=100, description="Account code, e.g. LA_ESPERANZA")

    def to_ref(self) -> AccountRef:
        return AccountRef(self.kind, self.code)

    @classmethod
    def from_ref(cls, ref: Optional[AccountRef]) -> Optional["AccountRefSchema"]:
        if ref is None:
            return None
        return cls(kind=ref.kind, code=ref.code)


class AccountCreateRequest(BaseModel):
    """Request schema for creating an account"""
    kind: AccountKind
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    code: Optional[str] = Field(None, max_length=100, description="Defaults to the normalized name")


class AccountResponse(BaseModel):
    """Response schema for an account and its cached balance"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: AccountKind
    code: str
    name: str
    balance: Decimal
    balance_stale: bool
    last_recalculated_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
