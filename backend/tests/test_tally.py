"""
ClubShelf Voting Backend — Tally Unit Tests
=============================================

What:  The pure split of a closing ballot into winners / rejected / expired.

What we test:
    ✅ Single winner, tie, no votes, empty ballot
    ✅ Every suggestion lands in exactly one bucket
"""

from uuid import uuid4

from app.models import TallyOutcome
from app.services.tally import compute_tally


class TestComputeTally:

    def test_single_winner(self):
        s1, s2, s3 = uuid4(), uuid4(), uuid4()
        tally = compute_tally({s1: 4, s2: 1, s3: 0})

        assert tally.outcome is TallyOutcome.SINGLE_WINNER
        assert tally.max_votes == 4
        assert tally.winner_ids == [s1]
        assert tally.rejected_ids == [s2, s3]
        assert tally.expired_ids == []

    def test_tie_keeps_every_top_suggestion(self):
        s1, s2, s3 = uuid4(), uuid4(), uuid4()
        tally = compute_tally({s1: 3, s2: 3, s3: 1})

        assert tally.outcome is TallyOutcome.TIE
        assert tally.winner_ids == [s1, s2]
        assert tally.rejected_ids == [s3]

    def test_no_votes_expires_everything(self):
        s1, s2 = uuid4(), uuid4()
        tally = compute_tally({s1: 0, s2: 0})

        assert tally.outcome is TallyOutcome.NO_VOTES
        assert tally.max_votes == 0
        assert tally.winner_ids == []
        assert tally.rejected_ids == []
        assert tally.expired_ids == [s1, s2]

    def test_empty_ballot(self):
        tally = compute_tally({})

        assert tally.outcome is TallyOutcome.NO_VOTES
        assert tally.max_votes == 0
        assert tally.expired_ids == []

    def test_buckets_partition_the_ballot(self):
        counts = {uuid4(): n for n in (5, 0, 2, 5, 1)}
        tally = compute_tally(counts)

        buckets = tally.winner_ids + tally.rejected_ids + tally.expired_ids
        assert sorted(buckets) == sorted(counts)
        assert all(counts[sid] == tally.max_votes for sid in tally.winner_ids)
