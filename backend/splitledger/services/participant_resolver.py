"""
Participant resolution for balance computation.

Ledger records point at parties either by participant id or, for rows
written before participants existed, by user id only. Both are resolved here
into a single ParticipantRef so the netting engine never looks at raw ids.
"""
from collections import Counter
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
import logging
from splitledger.models.participant import Participant, ParticipantType
from splitledger.services import ledger_store

logger = logging.getLogger(__name__)


class ParticipantRef:
    """Resolved identity of one party: participant id plus optional account."""

    def __init__(
        self,
        participant_id: str,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        participant_type: ParticipantType = ParticipantType.MEMBER
    ):
        self.participant_id = participant_id
        self.user_id = user_id
        self.email = email
        self.full_name = full_name
        self.avatar_url = avatar_url
        self.participant_type = participant_type

    @classmethod
    def from_model(cls, participant: Participant) -> "ParticipantRef":
        return cls(
            participant_id=participant.id,
            user_id=participant.user_id,
            email=participant.email,
            full_name=participant.full_name,
            avatar_url=participant.avatar_url,
            participant_type=participant.type or ParticipantType.MEMBER
        )

    def __eq__(self, other):
        return isinstance(other, ParticipantRef) and other.participant_id == self.participant_id

    def __hash__(self):
        return hash(self.participant_id)

    def __repr__(self):
        return f"ParticipantRef(participant_id={self.participant_id!r}, user_id={self.user_id!r})"


class ParticipantDirectory:
    """All participants of one group, indexed by participant id and user id."""

    def __init__(self, group_id: str, participants: Iterable[ParticipantRef] = ()):
        self.group_id = group_id
        self.participants: List[ParticipantRef] = list(participants)
        self.by_id: Dict[str, ParticipantRef] = {}
        self.by_user_id: Dict[str, ParticipantRef] = {}
        for ref in self.participants:
            self.by_id[ref.participant_id] = ref
            if ref.user_id:
                # A user can only be one participant per group; keep the first.
                self.by_user_id.setdefault(ref.user_id, ref)

    def __len__(self):
        return len(self.participants)

    def resolve(self, participant_id: Optional[str] = None, user_id: Optional[str] = None) -> Optional[ParticipantRef]:
        """
        Resolve a record reference to a participant.

        Args:
            participant_id: Participant reference, preferred when present
            user_id: Legacy account reference, used when the participant
                reference is missing or unknown

        Returns:
            The matching ParticipantRef, or None if neither id resolves
        """
        if participant_id and participant_id in self.by_id:
            return self.by_id[participant_id]
        if user_id and user_id in self.by_user_id:
            return self.by_user_id[user_id]
        return None


def resolve_participants(group_id: str, db: Session) -> ParticipantDirectory:
    """
    Load a group's participants into a directory.
    An unknown group yields an empty directory.
    """
    participants = ledger_store.fetch_participants(db, group_id)
    directory = ParticipantDirectory(group_id, [ParticipantRef.from_model(p) for p in participants])
    counts = Counter(ref.participant_type for ref in directory.participants)
    logger.debug(
        f"Group {group_id}: {len(directory)} participants "
        f"({counts[ParticipantType.INVITED]} invited, {counts[ParticipantType.FORMER]} former)"
    )
    return directory
