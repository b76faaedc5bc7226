"""
Group model for expense-sharing groups.
"""
from sqlalchemy import Column, String, Text, Enum as SQLEnum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from splitledger.db.base import BaseModel
import enum


class MemberRole(str, enum.Enum):
    """Group member role enumeration."""
    OWNER = "owner"
    MEMBER = "member"


class MembershipStatus(str, enum.Enum):
    """Group membership status enumeration."""
    ACTIVE = "active"
    LEFT = "left"


class Group(BaseModel):
    """Group of people sharing expenses."""
    __tablename__ = "groups"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Relationships
    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")
    participants = relationship("Participant", back_populates="group", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="group", cascade="all, delete-orphan")
    settlements = relationship("Settlement", back_populates="group", cascade="all, delete-orphan")


class GroupMember(BaseModel):
    """Junction table for Group and User membership."""
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(SQLEnum(MemberRole), default=MemberRole.MEMBER, nullable=False)
    status = Column(SQLEnum(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False)

    # Relationships
    group = relationship("Group", back_populates="members")
    user = relationship("User", back_populates="memberships")
