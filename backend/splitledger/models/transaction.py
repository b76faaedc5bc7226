"""
Transaction model for shared expenses and their splits.
"""
from sqlalchemy import Column, String, Numeric, Date, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from splitledger.db.base import BaseModel
import enum


class TransactionType(str, enum.Enum):
    """Transaction type enumeration."""
    EXPENSE = "expense"
    INCOME = "income"


class Transaction(BaseModel):
    """A single shared expense paid by one participant."""
    __tablename__ = "transactions"

    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, index=True)
    type = Column(SQLEnum(TransactionType), default=TransactionType.EXPENSE, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=True, index=True)
    paid_by_participant_id = Column(String(36), ForeignKey("participants.id", ondelete="SET NULL"), nullable=True, index=True)
    paid_by = Column(String(36), nullable=True)  # Legacy payer user id, predates participants

    # Relationships
    group = relationship("Group", back_populates="transactions")
    splits = relationship("TransactionSplit", back_populates="transaction", cascade="all, delete-orphan")


class TransactionSplit(BaseModel):
    """One participant's share of a transaction."""
    __tablename__ = "transaction_splits"

    transaction_id = Column(String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id = Column(String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(String(36), nullable=True)  # Legacy split user id
    amount = Column(Numeric(12, 2), nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="splits")
