"""Pydantic Schemas for Request/Response Validation"""
from rodmar.schemas.account import (
    AccountRefSchema,
    AccountCreateRequest,
    AccountResponse,
)
from rodmar.schemas.ledger import (
    TransactionCreateRequest,
    TransactionCompleteRequest,
    TransactionUpdateRequest,
    TransactionResponse,
    InvestmentCreateRequest,
    InvestmentUpdateRequest,
    InvestmentResponse,
)
from rodmar.schemas.balance import (
    RecalculationResponse,
    AccountRecalculationResponse,
    StaleRecalculationResponse,
    BalanceValidationResponse,
)

__all__ = [
    "AccountRefSchema",
    "AccountCreateRequest",
    "AccountResponse",
    "TransactionCreateRequest",
    "TransactionCompleteRequest",
    "TransactionUpdateRequest",
    "TransactionResponse",
    "InvestmentCreateRequest",
    "InvestmentUpdateRequest",
    "InvestmentResponse",
    "RecalculationResponse",
    "AccountRecalculationResponse",
    "StaleRecalculationResponse",
    "BalanceValidationResponse",
]
