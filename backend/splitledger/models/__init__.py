"""Models package - Import all models for SQLAlchemy registration."""
from splitledger.models.user import User, Profile
from splitledger.models.group import Group, GroupMember, MemberRole, MembershipStatus
from splitledger.models.participant import Participant, ParticipantType
from splitledger.models.transaction import Transaction, TransactionSplit, TransactionType
from splitledger.models.settlement import Settlement

__all__ = [
    "User",
    "Profile",
    "Group",
    "GroupMember",
    "MemberRole",
    "MembershipStatus",
    "Participant",
    "ParticipantType",
    "Transaction",
    "TransactionSplit",
    "TransactionType",
    "Settlement",
]
