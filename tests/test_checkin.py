"""
Tests for roster classification into the check-in buckets.
"""
import itertools
from datetime import timedelta, timezone

from catfish_cull.checkin import (
    ARRIVED, WAITING, INCOMPLETE, RosterCounts, bucket_of, classify_roster, specified_partner,
)
from catfish_cull.models import Team

from conftest import BASE_TIME, make_team


# ============================================================================
# Bucket assignment
# ============================================================================

class TestBucketOf:
    """One team, one bucket."""

    def test_registered_team_has_arrived(self):
        assert bucket_of(make_team(1, registered=True)) == ARRIVED

    def test_unregistered_pair_is_waiting(self):
        assert bucket_of(make_team(2)) == WAITING

    def test_missing_partner_is_incomplete(self):
        assert bucket_of(make_team(3, names=("Carol White",))) == INCOMPLETE

    def test_registered_solo_still_counts_as_arrived(self):
        team = make_team(4, names=("Dave Brown",), registered=True)
        assert bucket_of(team) == ARRIVED

    def test_blank_partner_name_is_treated_as_missing(self):
        team = Team(team_number=5, competitor1_name="Erin", competitor2_name="   ")
        assert team.competitor2_name is None
        assert bucket_of(team) == INCOMPLETE


class TestClassifyRoster:
    """Whole-roster partition and ordering."""

    def test_three_team_scenario(self):
        roster = [
            make_team(1, registered=True),
            make_team(2),
            make_team(3, names=("Carol White",)),
        ]
        buckets = classify_roster(roster)

        assert [t.team_number for t in buckets.arrived] == [1]
        assert [t.team_number for t in buckets.waiting] == [2]
        assert [t.team_number for t in buckets.incomplete] == [3]
        assert buckets.counts() == RosterCounts(total=3, checked_in=1, waiting=1, incomplete=1)

    def test_every_team_lands_in_exactly_one_bucket(self):
        roster = []
        number = 1
        for registered, has_partner in itertools.product([True, False], repeat=2):
            for _ in range(3):
                names = ("A Person", "B Person") if has_partner else ("A Person",)
                roster.append(make_team(number, names=names, registered=registered))
                number += 1

        buckets = classify_roster(roster)
        ids = [t.id for t in buckets.arrived + buckets.waiting + buckets.incomplete]

        assert sorted(ids) == sorted(t.id for t in roster)
        assert len(ids) == len(set(ids))

    def test_waiting_sorted_by_team_number(self):
        roster = [make_team(n) for n in (12, 3, 7)]
        buckets = classify_roster(roster)
        assert [t.team_number for t in buckets.waiting] == [3, 7, 12]

    def test_waiting_without_team_number_goes_last(self):
        roster = [make_team(9), Team(id=50, competitor1_name="X", competitor2_name="Y"), make_team(2)]
        buckets = classify_roster(roster)
        assert [t.team_number for t in buckets.waiting] == [2, 9, None]

    def test_arrived_sorted_most_recent_first(self):
        roster = [
            make_team(1, registered=True, minutes=5),
            make_team(2, registered=True, minutes=30),
            make_team(3, registered=True, minutes=15),
        ]
        buckets = classify_roster(roster)
        assert [t.team_number for t in buckets.arrived] == [2, 3, 1]

    def test_arrived_handles_mixed_timezone_awareness(self):
        aware = make_team(1, registered=True)
        aware = aware.model_copy(update={"updated_at": (BASE_TIME + timedelta(hours=1)).replace(tzinfo=timezone.utc)})
        naive = make_team(2, registered=True, minutes=10)

        buckets = classify_roster([naive, aware])
        assert [t.team_number for t in buckets.arrived] == [1, 2]

    def test_undated_arrivals_go_last(self):
        undated = Team(id=8, team_number=8, competitor1_name="A", competitor2_name="B", registered=True)
        dated = make_team(1, registered=True)
        buckets = classify_roster([undated, dated])
        assert [t.team_number for t in buckets.arrived] == [1, 8]

    def test_empty_roster(self):
        buckets = classify_roster([])
        assert buckets.counts() == RosterCounts()

    def test_check_in_moves_team_from_waiting_to_arrived(self):
        before = classify_roster([make_team(2)])
        after = classify_roster([make_team(2, registered=True, minutes=1)])

        assert [t.team_number for t in before.waiting] == [2]
        assert after.waiting == []
        assert [t.team_number for t in after.arrived] == [2]

    def test_tolerates_malformed_fields(self):
        team = Team.model_validate({
            "id": 1,
            "team_number": "not-a-number",
            "competitor1_name": "Alice",
            "competitor2_name": None,
            "registered": None,
            "updated_at": "yesterday-ish",
        })
        buckets = classify_roster([team])
        assert team.team_number is None
        assert team.updated_at is None
        assert buckets.incomplete == [team]


# ============================================================================
# Partner notes
# ============================================================================

class TestSpecifiedPartner:
    def test_extracts_name_from_import_note(self):
        team = make_team(3, names=("Carol White",), notes="Specified partner: Dan Green (not registered)")
        assert specified_partner(team) == "Dan Green"

    def test_no_note(self):
        assert specified_partner(make_team(3, names=("Carol White",))) is None

    def test_unrelated_note(self):
        team = make_team(3, names=("Carol White",), notes="Paid cash")
        assert specified_partner(team) is None
