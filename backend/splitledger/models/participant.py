"""
Participant model: every party in a group's expense graph.
"""
from sqlalchemy import Column, String, Text, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
from splitledger.db.base import BaseModel
import enum


class ParticipantType(str, enum.Enum):
    """Participant membership type."""
    MEMBER = "member"  # Active account holder
    INVITED = "invited"  # Invited by email, no account linked yet
    FORMER = "former"  # Removed from the group, kept for history


class Participant(BaseModel):
    """
    A party that can pay for or share in expenses.
    Rows are never deleted so historical records stay attributable.
    """
    __tablename__ = "participants"

    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)
    type = Column(SQLEnum(ParticipantType), default=ParticipantType.MEMBER, nullable=False)

    # Relationships
    group = relationship("Group", back_populates="participants")
