"""
Read-only queries against the ledger store.

Every query converts SQLAlchemy failures into StoreAccessError so callers
can isolate a failing group without knowing about the ORM.
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, List, Optional, Tuple
import logging
from splitledger.core.errors import StoreAccessError
from splitledger.models.user import User, Profile
from splitledger.models.group import Group, GroupMember, MembershipStatus
from splitledger.models.participant import Participant
from splitledger.models.transaction import Transaction, TransactionType
from splitledger.models.settlement import Settlement

logger = logging.getLogger(__name__)


def _store_error(query: str, error: SQLAlchemyError) -> StoreAccessError:
    logger.error(f"Store query '{query}' failed: {error}")
    return StoreAccessError(f"Failed to load {query}", details=str(error))


def fetch_user(db: Session, user_id: str) -> Optional[User]:
    """Load one account by id."""
    try:
        return db.query(User).filter(User.id == user_id).first()
    except SQLAlchemyError as e:
        raise _store_error("user", e)


def fetch_memberships(db: Session, user_id: str) -> List[Tuple[str, str]]:
    """
    Active group memberships of a user as (group_id, group_name) pairs,
    ordered by group name.
    """
    try:
        rows = db.query(Group.id, Group.name).join(
            GroupMember, GroupMember.group_id == Group.id
        ).filter(
            GroupMember.user_id == user_id,
            GroupMember.status == MembershipStatus.ACTIVE
        ).order_by(Group.name, Group.id).all()
    except SQLAlchemyError as e:
        raise _store_error("memberships", e)
    return [(row.id, row.name) for row in rows]


def fetch_participants(db: Session, group_id: str) -> List[Participant]:
    """All participants of a group, former and invited included."""
    try:
        return db.query(Participant).filter(
            Participant.group_id == group_id
        ).order_by(Participant.id).all()
    except SQLAlchemyError as e:
        raise _store_error("participants", e)


def fetch_expense_transactions(db: Session, group_id: str) -> List[Transaction]:
    """Expense transactions of a group with their splits loaded."""
    try:
        return db.query(Transaction).options(
            selectinload(Transaction.splits)
        ).filter(
            Transaction.group_id == group_id,
            Transaction.type == TransactionType.EXPENSE
        ).order_by(Transaction.id).all()
    except SQLAlchemyError as e:
        raise _store_error("transactions", e)


def fetch_settlements(db: Session, group_id: str) -> List[Settlement]:
    """Settlements recorded in a group."""
    try:
        return db.query(Settlement).filter(
            Settlement.group_id == group_id
        ).order_by(Settlement.id).all()
    except SQLAlchemyError as e:
        raise _store_error("settlements", e)


def fetch_user_emails(db: Session, user_ids: List[str]) -> Dict[str, str]:
    """Map user id -> account email for one batch of ids."""
    if not user_ids:
        return {}
    try:
        rows = db.query(User.id, User.email).filter(User.id.in_(user_ids)).all()
    except SQLAlchemyError as e:
        raise _store_error("user emails", e)
    return {row.id: row.email for row in rows if row.email}


def fetch_profiles(db: Session, user_ids: List[str]) -> Dict[str, Profile]:
    """Map user id -> profile for one batch of ids."""
    if not user_ids:
        return {}
    try:
        profiles = db.query(Profile).filter(Profile.id.in_(user_ids)).all()
    except SQLAlchemyError as e:
        raise _store_error("profiles", e)
    return {profile.id: profile for profile in profiles}
