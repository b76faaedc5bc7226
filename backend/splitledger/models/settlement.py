"""
Settlement model for direct payments between participants.
"""
from sqlalchemy import Column, String, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from splitledger.db.base import BaseModel


class Settlement(BaseModel):
    """Payment from one participant to another, outside any expense split."""
    __tablename__ = "settlements"

    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    from_participant_id = Column(String(36), ForeignKey("participants.id", ondelete="SET NULL"), nullable=True, index=True)
    to_participant_id = Column(String(36), ForeignKey("participants.id", ondelete="SET NULL"), nullable=True, index=True)
    from_user_id = Column(String(36), nullable=True)  # Legacy sender user id
    to_user_id = Column(String(36), nullable=True)  # Legacy receiver user id
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Relationships
    group = relationship("Group", back_populates="settlements")
