"""Investment Model"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, Index, CheckConstraint
from sqlalchemy.sql import func

from rodmar.database import Base
from rodmar.models.account import AccountKind, AccountRef


class Investment(Base):
    """Investment Model

    Same ledger effect as a completed transaction, tracked separately.
    Investments have no pending state: they always count towards balances.
    """
    __tablename__ = "investments"

    id = Column(Integer, primary_key=True, index=True)

    origin_kind = Column(Enum(AccountKind), nullable=False)
    origin_code = Column(String(100), nullable=False)
    destination_kind = Column(Enum(AccountKind), nullable=False)
    destination_code = Column(String(100), nullable=False)

    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    concept = Column(String(500), nullable=False)
    notes = Column(String(1000))
    voucher = Column(String(1000))

    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_investment_origin', 'origin_kind', 'origin_code'),
        Index('idx_investment_destination', 'destination_kind', 'destination_code'),
        CheckConstraint('amount > 0', name='ck_investment_amount_positive'),
    )

    @property
    def origin(self) -> AccountRef:
        return AccountRef(self.origin_kind, self.origin_code)

    @origin.setter
    def origin(self, ref: AccountRef):
        self.origin_kind = ref.kind
        self.origin_code = ref.code

    @property
    def destination(self) -> AccountRef:
        return AccountRef(self.destination_kind, self.destination_code)

    @destination.setter
    def destination(self, ref: AccountRef):
        self.destination_kind = ref.kind
        self.destination_code = ref.code

    def __repr__(self):
        return f"<Investment(id={self.id}, {self.origin} -> {self.destination}, amount={self.amount})>"
