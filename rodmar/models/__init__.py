"""Database Models"""
from rodmar.models.account import Account, AccountKind, AccountRef
from rodmar.models.transaction import Transaction, TransactionStatus
from rodmar.models.investment import Investment

__all__ = [
    "Account",
    "AccountKind",
    "AccountRef",
    "Transaction",
    "TransactionStatus",
    "Investment",
]
