"""Ledger Schemas - Transactions and investments"""
from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal
from datetime import datetime
from typing import Optional

from rodmar.models import Investment, Transaction, TransactionStatus
from rodmar.schemas.account import AccountRefSchema


def _check_amount(v):
    if v is None:
        return v
    if v <= 0:
        raise ValueError('Amount must be greater than 0')
    # Ensure max 2 decimal places
    if v.as_tuple().exponent < -2:
        raise ValueError('Amount cannot have more than 2 decimal places')
    return v


def _check_distinct(origin, destination):
    if origin is not None and destination is not None and origin.to_ref() == destination.to_ref():
        raise ValueError('Origin and destination must be different accounts')


def _check_not_null(model, fields):
    for key in fields:
        if key in model.model_fields_set and getattr(model, key) is None:
            raise ValueError(f"{key} cannot be null")


class TransactionCreateRequest(BaseModel):
    """Request schema for recording a transaction"""
    origin: Optional[AccountRefSchema] = Field(None, description="Paying account; optional only for PENDING")
    destination: AccountRefSchema
    amount: Decimal = Field(..., gt=0, description="Amount moved (must be positive)")
    status: TransactionStatus = TransactionStatus.COMPLETED
    concept: str = Field(..., min_length=1, max_length=500)
    occurred_at: datetime
    payment_method: Optional[str] = Field(None, max_length=100)
    voucher: Optional[str] = Field(None, max_length=1000)
    comment: Optional[str] = Field(None, max_length=1000)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        return _check_amount(v)

    @model_validator(mode='after')
    def validate_accounts(self):
        _check_distinct(self.origin, self.destination)
        if self.status == TransactionStatus.COMPLETED and self.origin is None:
            raise ValueError('A completed transaction needs an origin account')
        return self


class TransactionCompleteRequest(BaseModel):
    """Request schema for completing a pending transaction"""
    origin: Optional[AccountRefSchema] = Field(None, description="Required when the pending transaction has none")
    payment_method: Optional[str] = Field(None, max_length=100)
    occurred_at: Optional[datetime] = None
    voucher: Optional[str] = Field(None, max_length=1000)


class TransactionUpdateRequest(BaseModel):
    """Request schema for editing a transaction; only the fields sent are changed"""
    origin: Optional[AccountRefSchema] = None
    destination: Optional[AccountRefSchema] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    concept: Optional[str] = Field(None, min_length=1, max_length=500)
    occurred_at: Optional[datetime] = None
    payment_method: Optional[str] = Field(None, max_length=100)
    voucher: Optional[str] = Field(None, max_length=1000)
    comment: Optional[str] = Field(None, max_length=1000)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        return _check_amount(v)

    @model_validator(mode='after')
    def validate_required(self):
        # origin may be cleared on a transaction that is still pending
        _check_not_null(self, ('destination', 'amount', 'concept', 'occurred_at'))
        _check_distinct(self.origin, self.destination)
        return self

    def to_changes(self) -> dict:
        changes = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if key in ('origin', 'destination'):
                value = value.to_ref() if value is not None else None
            changes[key] = value
        return changes


class TransactionResponse(BaseModel):
    """Response schema for transaction operations"""
    id: int
    origin: Optional[AccountRefSchema]
    destination: AccountRefSchema
    amount: Decimal
    status: TransactionStatus
    concept: str
    payment_method: Optional[str]
    voucher: Optional[str]
    comment: Optional[str]
    occurred_at: datetime
    created_at: datetime
    completed_at: Optional[datetime]

    @classmethod
    def from_model(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            origin=AccountRefSchema.from_ref(transaction.origin),
            destination=AccountRefSchema.from_ref(transaction.destination),
            amount=transaction.amount,
            status=transaction.status,
            concept=transaction.concept,
            payment_method=transaction.payment_method,
            voucher=transaction.voucher,
            comment=transaction.comment,
            occurred_at=transaction.occurred_at,
            created_at=transaction.created_at,
            completed_at=transaction.completed_at,
        )


class InvestmentCreateRequest(BaseModel):
    """Request schema for recording an investment"""
    origin: AccountRefSchema
    destination: AccountRefSchema
    amount: Decimal = Field(..., gt=0)
    concept: str = Field(..., min_length=1, max_length=500)
    occurred_at: datetime
    notes: Optional[str] = Field(None, max_length=1000)
    voucher: Optional[str] = Field(None, max_length=1000)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        return _check_amount(v)

    @model_validator(mode='after')
    def validate_accounts(self):
        _check_distinct(self.origin, self.destination)
        return self


class InvestmentUpdateRequest(BaseModel):
    """Request schema for editing an investment; only the fields sent are changed"""
    origin: Optional[AccountRefSchema] = None
    destination: Optional[AccountRefSchema] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    concept: Optional[str] = Field(None, min_length=1, max_length=500)
    occurred_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    voucher: Optional[str] = Field(None, max_length=1000)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        return _check_amount(v)

    @model_validator(mode='after')
    def validate_required(self):
        _check_not_null(self, ('origin', 'destination', 'amount', 'concept', 'occurred_at'))
        _check_distinct(self.origin, self.destination)
        return self

    def to_changes(self) -> dict:
        changes = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if key in ('origin', 'destination'):
                value = value.to_ref() if value is not None else None
            changes[key] = value
        return changes


class InvestmentResponse(BaseModel):
    """Response schema for investment operations"""
    id: int
    origin: AccountRefSchema
    destination: AccountRefSchema
    amount: Decimal
    concept: str
    notes: Optional[str]
    voucher: Optional[str]
    occurred_at: datetime
    created_at: datetime

    @classmethod
    def from_model(cls, investment: Investment) -> "InvestmentResponse":
        return cls(
            id=investment.id,
            origin=AccountRefSchema.from_ref(investment.origin),
            destination=AccountRefSchema.from_ref(investment.destination),
            amount=investment.amount,
            concept=investment.concept,
            notes=investment.notes,
            voucher=investment.voucher,
            occurred_at=investment.occurred_at,
            created_at=investment.created_at,
        )
