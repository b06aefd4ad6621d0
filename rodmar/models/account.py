"""Account Model - Counterparties and internal cash accounts"""
from dataclasses import dataclass
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Enum, Index, UniqueConstraint
from sqlalchemy.sql import func
import enum

from rodmar.database import Base


class AccountKind(str, enum.Enum):
    """Account Kinds"""
    MINA = "MINA"              # Mine supplying material
    COMPRADOR = "COMPRADOR"    # Buyer of material
    VOLQUETERO = "VOLQUETERO"  # Trucker hauling loads
    RODMAR = "RODMAR"          # Internal cash/bank account of the business
    TERCERO = "TERCERO"        # Any other third party (bank, credit card, loan)


@dataclass(frozen=True)
class AccountRef:
    """Reference to an account as stored on ledger entries: KIND:CODE"""
    kind: AccountKind
    code: str

    def __post_init__(self):
        object.__setattr__(self, "kind", AccountKind(self.kind))

    @classmethod
    def parse(cls, value: str) -> "AccountRef":
        kind, sep, code = value.partition(":")
        if not sep or not code:
            raise ValueError(f"Account reference must look like KIND:CODE, got {value!r}")
        try:
            return cls(AccountKind(kind.strip().upper()), code.strip())
        except ValueError:
            raise ValueError(f"Unknown account kind {kind!r} in reference {value!r}")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.code}"


class Account(Base):
    """Account Model

    One row per mina, comprador, volquetero, RodMar account or tercero.
    `balance` is a cached value: it must always equal the fold of the
    ledger entries that reference the account, and the balance engine
    regenerates it from the ledger on demand.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(Enum(AccountKind), nullable=False)
    code = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)

    balance = Column(Numeric(precision=15, scale=2), default=0, nullable=False)
    balance_stale = Column(Boolean, default=False, nullable=False)
    last_recalculated_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('kind', 'code', name='uq_account_kind_code'),
        Index('idx_account_stale', 'balance_stale'),
    )

    @property
    def ref(self) -> AccountRef:
        return AccountRef(self.kind, self.code)

    def __repr__(self):
        return f"<Account(id={self.id}, ref='{self.ref}', balance={self.balance})>"
