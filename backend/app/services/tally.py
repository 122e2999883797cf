"""
Vote tallying for a closing cycle.

Pure computation over (suggestion id → vote count); the voting service
turns the result into bulk status updates. Ties are never broken here:
every suggestion at the top count is a winner.
"""

from dataclasses import dataclass, field
from typing import Dict, List
from uuid import UUID

from app.models.enums import TallyOutcome


@dataclass(frozen=True)
class Tally:
    max_votes: int
    winner_ids: List[UUID] = field(default_factory=list)
    rejected_ids: List[UUID] = field(default_factory=list)
    expired_ids: List[UUID] = field(default_factory=list)

    @property
    def outcome(self) -> TallyOutcome:
        if self.max_votes == 0:
            return TallyOutcome.NO_VOTES
        if len(self.winner_ids) == 1:
            return TallyOutcome.SINGLE_WINNER
        return TallyOutcome.TIE


def compute_tally(vote_counts: Dict[UUID, int]) -> Tally:
    """
    Split the ACTIVE suggestions of a closing cycle.

    max_votes > 0: suggestions at max_votes stay ACTIVE (winners), the rest
    are rejected. max_votes == 0 (including no suggestions at all): every
    suggestion expires. Input order is preserved in each list.
    """
    max_votes = max(vote_counts.values(), default=0)
    if max_votes == 0:
        return Tally(max_votes=0, expired_ids=list(vote_counts))

    winners = [sid for sid, count in vote_counts.items() if count == max_votes]
    rejected = [sid for sid, count in vote_counts.items() if count != max_votes]
    return Tally(max_votes=max_votes, winner_ids=winners, rejected_ids=rejected)
