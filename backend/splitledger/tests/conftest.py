"""
Shared fixtures: a throwaway SQLite ledger per test and a builder for rows.
"""
import pytest
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from splitledger.db.base import Base
from splitledger.models import (
    User, Profile, Group, GroupMember, MembershipStatus, Participant,
    ParticipantType, Transaction, TransactionSplit, TransactionType, Settlement
)
from splitledger.services.balance_service import LedgerContext


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh file database (threads get their own connections)."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class LedgerBuilder:
    """Creates users, groups and ledger records with sensible defaults."""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, email: str, full_name: str = None, avatar_url: str = None) -> User:
        user = self._save(User(email=email))
        if full_name or avatar_url:
            self._save(Profile(id=user.id, full_name=full_name, avatar_url=avatar_url))
        return user

    def group(self, name: str) -> Group:
        return self._save(Group(name=name))

    def member(self, group: Group, user: User, status: MembershipStatus = MembershipStatus.ACTIVE) -> Participant:
        self._save(GroupMember(group_id=group.id, user_id=user.id, status=status))
        participant_type = ParticipantType.MEMBER if status == MembershipStatus.ACTIVE else ParticipantType.FORMER
        return self._save(Participant(group_id=group.id, user_id=user.id, type=participant_type))

    def invite(self, group: Group, email: str, full_name: str = None) -> Participant:
        return self._save(Participant(
            group_id=group.id, email=email, full_name=full_name, type=ParticipantType.INVITED
        ))

    def expense(self, group: Group, payer: Participant, amount, currency: str = "USD", splits=None, **fields) -> Transaction:
        """Record an expense; splits maps participant -> share amount."""
        transaction = Transaction(
            group_id=group.id,
            paid_by_participant_id=payer.id if payer is not None else None,
            amount=Decimal(str(amount)),
            currency=currency,
            type=fields.pop("type", TransactionType.EXPENSE),
            description=fields.pop("description", "Shared expense"),
            **fields
        )
        for participant, share in (splits or {}).items():
            transaction.splits.append(TransactionSplit(
                participant_id=participant.id, amount=Decimal(str(share))
            ))
        return self._save(transaction)

    def settle(self, group: Group, sender: Participant, receiver: Participant, amount, currency: str = "USD", **fields) -> Settlement:
        return self._save(Settlement(
            group_id=group.id,
            from_participant_id=sender.id if sender is not None else None,
            to_participant_id=receiver.id if receiver is not None else None,
            amount=Decimal(str(amount)),
            currency=currency,
            **fields
        ))


@pytest.fixture
def builder(db):
    return LedgerBuilder(db)


@pytest.fixture
def make_context(session_factory):
    """Build a request context for a viewer."""
    def _make(user: User, **kwargs) -> LedgerContext:
        return LedgerContext(
            viewer_id=user.id,
            viewer_email=kwargs.pop("viewer_email", user.email),
            session_factory=session_factory,
            **kwargs
        )
    return _make
