"""Transaction Model - Money moved between two accounts"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, Index, CheckConstraint
from sqlalchemy.sql import func
import enum

from rodmar.database import Base
from rodmar.models.account import AccountKind, AccountRef


class TransactionStatus(str, enum.Enum):
    """Transaction Status"""
    PENDING = "PENDING"      # Payment request, does not touch balances
    COMPLETED = "COMPLETED"  # Settled, moves money between the two accounts


class Transaction(Base):
    """Transaction Model

    Moves `amount` from the origin account to the destination account.
    Accounts are referenced by (kind, code) rather than by foreign key.
    Only COMPLETED transactions count towards balances. A PENDING
    transaction may not know its origin yet; it is supplied on completion.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)

    origin_kind = Column(Enum(AccountKind))
    origin_code = Column(String(100))
    destination_kind = Column(Enum(AccountKind), nullable=False)
    destination_code = Column(String(100), nullable=False)

    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)

    concept = Column(String(500), nullable=False)
    payment_method = Column(String(100))
    voucher = Column(String(1000))
    comment = Column(String(1000))

    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_transaction_status', 'status'),
        Index('idx_transaction_origin', 'origin_kind', 'origin_code'),
        Index('idx_transaction_destination', 'destination_kind', 'destination_code'),
        Index('idx_transaction_occurred', 'occurred_at'),
        CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
    )

    @property
    def origin(self):
        if self.origin_kind is None or self.origin_code is None:
            return None
        return AccountRef(self.origin_kind, self.origin_code)

    @origin.setter
    def origin(self, ref):
        self.origin_kind = ref.kind if ref else None
        self.origin_code = ref.code if ref else None

    @property
    def destination(self) -> AccountRef:
        return AccountRef(self.destination_kind, self.destination_code)

    @destination.setter
    def destination(self, ref: AccountRef):
        self.destination_kind = ref.kind
        self.destination_code = ref.code

    def __repr__(self):
        return f"<Transaction(id={self.id}, {self.origin} -> {self.destination}, amount={self.amount}, status={self.status})>"
